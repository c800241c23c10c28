import pytest

from backend.poker_core.cards import parse_cards
from backend.poker_core.evaluator import HandCategory, evaluate_hand
from backend.poker_core.jackpot import BadBeatRule, JackpotRole, distribute_bad_beat


def _eval(labels: str):
    return evaluate_hand(parse_cards(labels.split()))


def test_default_rule_needs_quad_jacks_or_better() -> None:
    rule = BadBeatRule()
    assert rule.hand_qualifies(_eval("Js Jd Jh Jc 2s"))
    assert rule.hand_qualifies(_eval("5h 6h 7h 8h 9h"))
    assert not rule.hand_qualifies(_eval("Ts Td Th Tc As"))
    assert not rule.hand_qualifies(_eval("As Ad Ah Kc Ks"))
    assert rule.label == "Four of a Kind, J or better"


def test_bad_beat_requires_the_qualifying_hand_to_lose() -> None:
    board = parse_cards("Jh Jc 9h Th 2s".split())
    quads = evaluate_hand([*parse_cards(["Js", "Jd"]), *board])
    straight_flush = evaluate_hand([*parse_cards(["Qh", "Kh"]), *board])
    rule = BadBeatRule()
    assert rule.qualifies(quads, straight_flush)
    assert not rule.qualifies(straight_flush, quads)


def test_rule_from_setting() -> None:
    rule = BadBeatRule.from_setting((HandCategory.FULL_HOUSE, 14))
    assert rule.hand_qualifies(_eval("As Ad Ah Kc Ks"))
    assert not rule.hand_qualifies(_eval("Ks Kd Kh Ac As"))


def test_distribution_splits_fifty_twenty_five_twenty_five() -> None:
    result = distribute_bad_beat(10_000, "alice", "bob", ["alice", "bob", "carol", "dave"])
    amounts = {payout.player_id: payout.amount for payout in result.payouts}
    assert amounts == {"alice": 5_000, "bob": 2_500, "carol": 1_250, "dave": 1_250}
    roles = {payout.player_id: payout.role for payout in result.payouts}
    assert roles["carol"] == JackpotRole.TABLE
    assert result.house_remainder == 0
    assert result.paid_out == 10_000


def test_rounding_remainder_goes_to_house() -> None:
    result = distribute_bad_beat(1_001, "alice", "bob", ["carol", "dave", "erin"])
    assert result.paid_out <= 1_001
    assert result.paid_out + result.house_remainder == 1_001
    assert [payout.amount for payout in result.payouts] == [500, 250, 83, 83, 83]
    assert result.house_remainder == 2


def test_table_share_goes_to_house_when_heads_up() -> None:
    result = distribute_bad_beat(1_000, "alice", "bob", ["alice", "bob"])
    assert len(result.payouts) == 2
    assert result.house_remainder == 250


def test_invalid_distribution_inputs() -> None:
    with pytest.raises(ValueError):
        distribute_bad_beat(-1, "alice", "bob", [])
    with pytest.raises(ValueError):
        distribute_bad_beat(100, "alice", "alice", [])
