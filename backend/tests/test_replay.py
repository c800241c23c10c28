from dataclasses import replace

import pytest

from backend.poker_core.cards import parse_cards
from backend.poker_core.errors import InvalidReplayError
from backend.poker_core.evaluator import HandCategory
from backend.poker_core.replay import (
    ActionKind,
    HandLog,
    Phase,
    ReplayAction,
    ReplayPlayer,
    initial_snapshot,
    reconstruct,
    replay_snapshots,
    showdown_results,
)


def _cards(labels: str) -> tuple:
    return tuple(parse_cards(labels.split()))


def build_log(actions=None, **overrides) -> HandLog:
    if actions is None:
        actions = (
            ReplayAction(Phase.PREFLOP, "carol", ActionKind.RAISE, pot_after=45, amount=30),
            ReplayAction(Phase.PREFLOP, "alice", ActionKind.CALL, pot_after=70, amount=30),
            ReplayAction(Phase.PREFLOP, "bob", ActionKind.FOLD, pot_after=70),
            ReplayAction(Phase.FLOP, "alice", ActionKind.CHECK, pot_after=70),
            ReplayAction(Phase.FLOP, "carol", ActionKind.BET, pot_after=120, amount=50),
            ReplayAction(Phase.FLOP, "alice", ActionKind.RAISE, pot_after=270, amount=150),
            ReplayAction(Phase.FLOP, "carol", ActionKind.ALL_IN, pot_after=690),
            ReplayAction(Phase.FLOP, "alice", ActionKind.CALL, pot_after=1010, amount=470),
        )
    fields = dict(
        hand_id="h-1",
        players=(
            ReplayPlayer("alice", "Alice", 1, 1000, _cards("Qs Qd")),
            ReplayPlayer("bob", "Bob", 2, 1000),
            ReplayPlayer("carol", "Carol", 3, 500, _cards("As 7s")),
        ),
        small_blind_player="alice",
        big_blind_player="bob",
        small_blind=5,
        big_blind=10,
        community_cards=_cards("Ah Kd 7c 2s 9h"),
        actions=tuple(actions),
        button_player="carol",
    )
    fields.update(overrides)
    return HandLog(**fields)


def test_initial_snapshot_posts_blinds() -> None:
    snapshot = initial_snapshot(build_log())
    assert snapshot.step == -1
    assert snapshot.pot == 15
    assert snapshot.bets == {"alice": 5, "bob": 10, "carol": 0}
    assert snapshot.stacks == {"alice": 995, "bob": 990, "carol": 500}
    assert snapshot.next_to_act == "carol"
    assert snapshot.community_cards == ()


def test_preflop_call_charges_only_the_difference() -> None:
    snapshot = reconstruct(build_log(), 1)
    assert snapshot.stacks == {"alice": 970, "bob": 990, "carol": 470}
    assert snapshot.bets["alice"] == 30
    assert snapshot.pot == 70
    assert snapshot.next_to_act == "bob"


def test_street_change_reveals_board_and_resets_bets() -> None:
    snapshot = reconstruct(build_log(), 3)
    assert snapshot.phase == Phase.FLOP
    assert snapshot.community_cards == _cards("Ah Kd 7c")
    assert set(snapshot.bets.values()) == {0}
    assert snapshot.folded_players == frozenset({"bob"})
    assert snapshot.last_action.action == ActionKind.CHECK


def test_all_in_without_amount_commits_whole_stack() -> None:
    snapshot = reconstruct(build_log(), 6)
    carol = snapshot.player("carol")
    assert carol.stack == 0
    assert carol.bet == 470
    assert carol.is_all_in is True
    assert snapshot.pot == 690


def test_final_snapshot() -> None:
    snapshot = reconstruct(build_log(), 7)
    assert snapshot.stacks == {"alice": 500, "bob": 990, "carol": 0}
    assert snapshot.pot == 1010
    assert snapshot.next_to_act is None


def test_sequential_replay_equals_direct_reconstruction() -> None:
    log = build_log()
    snapshots = replay_snapshots(log)
    assert len(snapshots) == len(log.actions)
    for step, snapshot in enumerate(snapshots):
        assert reconstruct(log, step) == snapshot
        assert reconstruct(log, step) == reconstruct(log, step)


def test_step_minus_one_is_initial_snapshot() -> None:
    log = build_log()
    assert reconstruct(log, -1) == initial_snapshot(log)


@pytest.mark.parametrize("step", [-2, 8])
def test_out_of_range_step_raises_index_error(step: int) -> None:
    with pytest.raises(IndexError):
        reconstruct(build_log(), step)


def test_short_stacked_blind_posts_what_it_has() -> None:
    log = build_log(
        actions=(),
        players=(
            ReplayPlayer("alice", "Alice", 1, 3),
            ReplayPlayer("bob", "Bob", 2, 1000),
        ),
    )
    snapshot = initial_snapshot(log)
    assert snapshot.player("alice").is_all_in is True
    assert snapshot.pot == 13


@pytest.mark.parametrize(
    "action",
    [
        ReplayAction(Phase.PREFLOP, "dave", ActionKind.CALL, pot_after=25, amount=10),
        ReplayAction(Phase.PREFLOP, "carol", ActionKind.CALL, pot_after=25),
        ReplayAction(Phase.PREFLOP, "carol", ActionKind.RAISE, pot_after=615, amount=600),
        ReplayAction(Phase.PREFLOP, "bob", ActionKind.BET, pot_after=15, amount=5),
    ],
)
def test_malformed_actions_are_rejected(action: ReplayAction) -> None:
    with pytest.raises(InvalidReplayError):
        reconstruct(build_log(actions=(action,)), 0)


def test_showdown_picks_best_shown_hand() -> None:
    result = showdown_results(build_log())
    assert result.winners == ("carol",)
    assert result.evaluations["carol"].category == HandCategory.TWO_PAIR
    assert result.evaluations["alice"].category == HandCategory.PAIR
    assert "bob" not in result.evaluations


def test_last_player_standing_wins_without_showdown() -> None:
    log = build_log(
        actions=(
            ReplayAction(Phase.PREFLOP, "carol", ActionKind.FOLD, pot_after=15),
            ReplayAction(Phase.PREFLOP, "alice", ActionKind.FOLD, pot_after=15),
        ),
        community_cards=(),
    )
    result = showdown_results(log)
    assert result.winners == ("bob",)
    assert result.evaluations == {}


def test_showdown_needs_full_board() -> None:
    log = build_log(community_cards=_cards("Ah Kd 7c"))
    with pytest.raises(InvalidReplayError):
        showdown_results(log)


def test_snapshots_do_not_share_state() -> None:
    log = build_log()
    before = reconstruct(log, 2)
    replay_snapshots(replace(log, hand_id="h-2"))
    assert reconstruct(log, 2) == before


def test_showdown_evaluations_are_read_only() -> None:
    result = showdown_results(build_log())
    with pytest.raises(TypeError):
        result.evaluations["bob"] = result.evaluations["carol"]
