from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .cards import Card
from .errors import InvalidReplayError
from .evaluator import HandEvaluation, find_winners


class Phase(str, Enum):
    PREFLOP = "preflop"
    FLOP = "flop"
    TURN = "turn"
    RIVER = "river"
    SHOWDOWN = "showdown"


class ActionKind(str, Enum):
    FOLD = "fold"
    CHECK = "check"
    CALL = "call"
    BET = "bet"
    RAISE = "raise"
    ALL_IN = "all-in"


BOARD_CARDS_BY_PHASE = {
    Phase.PREFLOP: 0,
    Phase.FLOP: 3,
    Phase.TURN: 4,
    Phase.RIVER: 5,
    Phase.SHOWDOWN: 5,
}

CHIP_ACTIONS = frozenset({ActionKind.CALL, ActionKind.BET, ActionKind.RAISE, ActionKind.ALL_IN})


@dataclass(frozen=True)
class ReplayAction:
    phase: Phase
    player_id: str
    action: ActionKind
    pot_after: int
    amount: int | None = None
    timestamp: int = 0


@dataclass(frozen=True)
class ReplayPlayer:
    player_id: str
    name: str
    seat: int
    starting_stack: int
    hole_cards: tuple[Card, ...] | None = None


@dataclass(frozen=True)
class HandLog:
    hand_id: str
    players: tuple[ReplayPlayer, ...]
    small_blind_player: str
    big_blind_player: str
    small_blind: int
    big_blind: int
    community_cards: tuple[Card, ...] = ()
    actions: tuple[ReplayAction, ...] = ()
    button_player: str | None = None
    started_at: datetime | None = None
    table_name: str = ""

    def player(self, player_id: str) -> ReplayPlayer:
        for player in self.players:
            if player.player_id == player_id:
                return player
        raise InvalidReplayError(f"Unknown player in hand {self.hand_id}: {player_id}")


@dataclass(frozen=True)
class PlayerSnapshot:
    player_id: str
    stack: int
    bet: int
    is_all_in: bool = False


@dataclass(frozen=True)
class TableStateSnapshot:
    step: int
    phase: Phase
    community_cards: tuple[Card, ...]
    pot: int
    players: tuple[PlayerSnapshot, ...]
    folded_players: frozenset[str]
    last_action: ReplayAction | None
    next_to_act: str | None

    def player(self, player_id: str) -> PlayerSnapshot:
        for player in self.players:
            if player.player_id == player_id:
                return player
        raise KeyError(f"Player not in snapshot: {player_id}")

    @property
    def bets(self) -> dict[str, int]:
        return {player.player_id: player.bet for player in self.players}

    @property
    def stacks(self) -> dict[str, int]:
        return {player.player_id: player.stack for player in self.players}


@dataclass(frozen=True)
class ShowdownResult:
    winners: tuple[str, ...]
    evaluations: Mapping[str, HandEvaluation]


def _validate_log(log: HandLog) -> None:
    ids = [player.player_id for player in log.players]
    if len(set(ids)) != len(ids):
        raise InvalidReplayError(f"Duplicate player ids in hand {log.hand_id}.")
    if len(log.community_cards) > 5:
        raise InvalidReplayError(f"Hand {log.hand_id} lists {len(log.community_cards)} community cards.")
    log.player(log.small_blind_player)
    log.player(log.big_blind_player)


def _next_to_act(log: HandLog, step: int) -> str | None:
    upcoming = step + 1
    if upcoming < len(log.actions):
        return log.actions[upcoming].player_id
    return None


def _post(players: list[PlayerSnapshot], player_id: str, amount: int) -> int:
    for idx, player in enumerate(players):
        if player.player_id == player_id:
            paid = min(amount, player.stack)
            stack = player.stack - paid
            players[idx] = replace(player, stack=stack, bet=player.bet + paid, is_all_in=stack == 0)
            return paid
    return 0


def initial_snapshot(log: HandLog) -> TableStateSnapshot:
    """State before the first logged action: stacks with both blinds posted."""
    _validate_log(log)
    players = [PlayerSnapshot(player_id=player.player_id, stack=player.starting_stack, bet=0) for player in log.players]
    pot = _post(players, log.small_blind_player, log.small_blind)
    pot += _post(players, log.big_blind_player, log.big_blind)

    return TableStateSnapshot(
        step=-1,
        phase=Phase.PREFLOP,
        community_cards=(),
        pot=pot,
        players=tuple(players),
        folded_players=frozenset(),
        last_action=None,
        next_to_act=_next_to_act(log, -1),
    )


def apply_action(snapshot: TableStateSnapshot, action: ReplayAction, log: HandLog) -> TableStateSnapshot:
    log.player(action.player_id)
    phase = Phase(action.phase)
    kind = ActionKind(action.action)
    step = snapshot.step + 1

    players = list(snapshot.players)
    if phase != snapshot.phase:
        players = [replace(player, bet=0) for player in players]

    folded = snapshot.folded_players
    if kind == ActionKind.FOLD:
        folded = folded | {action.player_id}
    elif kind in CHIP_ACTIONS:
        idx = next(i for i, player in enumerate(players) if player.player_id == action.player_id)
        player = players[idx]
        amount = action.amount
        if amount is None:
            if kind != ActionKind.ALL_IN:
                raise InvalidReplayError(f"Step {step}: {kind.value} by {action.player_id} has no amount.")
            amount = player.bet + player.stack

        additional = amount - player.bet
        if additional < 0:
            raise InvalidReplayError(
                f"Step {step}: {action.player_id} {kind.value} to {amount} is below their bet of {player.bet}."
            )
        if additional > player.stack:
            raise InvalidReplayError(
                f"Step {step}: {action.player_id} commits {additional} with only {player.stack} behind."
            )
        stack = player.stack - additional
        players[idx] = replace(player, stack=stack, bet=amount, is_all_in=stack == 0)

    return TableStateSnapshot(
        step=step,
        phase=phase,
        community_cards=log.community_cards[: BOARD_CARDS_BY_PHASE[phase]],
        pot=action.pot_after,
        players=tuple(players),
        folded_players=folded,
        last_action=action,
        next_to_act=_next_to_act(log, step),
    )


def reconstruct(log: HandLog, step: int) -> TableStateSnapshot:
    """Snapshot after action ``step``; ``-1`` is the state before any action."""
    if step < -1 or step >= len(log.actions):
        raise IndexError(f"Step {step} is outside -1..{len(log.actions) - 1} for hand {log.hand_id}.")

    snapshot = initial_snapshot(log)
    for action in log.actions[: step + 1]:
        snapshot = apply_action(snapshot, action, log)
    return snapshot


def replay_snapshots(log: HandLog) -> list[TableStateSnapshot]:
    snapshots: list[TableStateSnapshot] = []
    snapshot = initial_snapshot(log)
    for action in log.actions:
        snapshot = apply_action(snapshot, action, log)
        snapshots.append(snapshot)
    return snapshots


def showdown_results(log: HandLog) -> ShowdownResult:
    final = reconstruct(log, len(log.actions) - 1)
    contenders = [player for player in log.players if player.player_id not in final.folded_players]

    if len(contenders) == 1:
        return ShowdownResult(winners=(contenders[0].player_id,), evaluations=MappingProxyType({}))

    shown = {player.player_id: player.hole_cards for player in contenders if player.hole_cards}
    if not shown:
        raise InvalidReplayError(f"Hand {log.hand_id} reached showdown without any shown hands.")
    if len(log.community_cards) != 5:
        raise InvalidReplayError(f"Hand {log.hand_id} reached showdown with an incomplete board.")

    winners, evaluations = find_winners(shown, log.community_cards)
    return ShowdownResult(winners=tuple(winners), evaluations=MappingProxyType(evaluations))
