import math

import pytest

from backend.poker_core.cards import parse_cards
from backend.poker_core.cashout import (
    AllInScenario,
    Recommendation,
    ScenarioPlayer,
    StraddleVerdict,
    calculate_cashout_offers,
    calculate_insurance_options,
    recommend,
    risk_reduction,
    straddle_ev,
)
from backend.poker_core.config import TableSettings
from backend.poker_core.replay import Phase


def _player(player_id: str, labels: str, contribution: int) -> ScenarioPlayer:
    return ScenarioPlayer(player_id, player_id.title(), tuple(parse_cards(labels.split())), 0, contribution)


def build_scenario(board: str = "2h 7h 9c Qd") -> AllInScenario:
    return AllInScenario(
        players=(_player("alice", "Ah Kh", 500), _player("bob", "Qs Qc", 500)),
        community_cards=tuple(parse_cards(board.split())),
        pot=1000,
        phase=Phase.TURN,
    )


def test_offers_follow_equity_and_fee() -> None:
    settings = TableSettings()
    offers = {offer.player_id: offer for offer in calculate_cashout_offers(build_scenario(), settings)}

    alice = offers["alice"]
    assert alice.current_equity == pytest.approx(7 / 44)
    assert alice.pot_share == 500
    assert alice.cashout_amount == math.floor(500 * (7 / 44) * 0.98)
    assert alice.expected_value == pytest.approx(500 * 7 / 44)
    assert alice.recommendation == Recommendation.ACCEPT
    assert offers["bob"].recommendation == Recommendation.DECLINE

    for offer in offers.values():
        assert 0 <= offer.cashout_amount <= offer.pot_share


def test_pot_share_follows_contributions() -> None:
    scenario = AllInScenario(
        players=(_player("alice", "Ah Kh", 300), _player("bob", "Qs Qc", 100)),
        community_cards=tuple(parse_cards("2h 7h 9c Qd".split())),
        pot=400,
        phase=Phase.TURN,
    )
    offers = calculate_cashout_offers(scenario)
    assert [offer.pot_share for offer in offers] == [300, 100]


def test_single_player_gets_no_offers() -> None:
    scenario = AllInScenario(players=(_player("alice", "Ah Kh", 10),), community_cards=(), pot=10, phase=Phase.PREFLOP)
    assert calculate_cashout_offers(scenario) == []


def test_recommendation_thresholds() -> None:
    settings = TableSettings()
    assert recommend(0.39, settings) == Recommendation.ACCEPT
    assert recommend(0.40, settings) == Recommendation.NEUTRAL
    assert recommend(0.60, settings) == Recommendation.NEUTRAL
    assert recommend(0.61, settings) == Recommendation.DECLINE


def test_risk_reduction_peaks_at_coin_flip() -> None:
    assert risk_reduction(0.5, 2) == pytest.approx(100.0)
    assert risk_reduction(0.0, 2) == 0.0
    assert risk_reduction(0.9, 2) < risk_reduction(0.6, 2)


def test_insurance_is_never_negative_for_insurer() -> None:
    for equity in (0.0, 0.2, 0.55, 0.83, 1.0):
        for option in calculate_insurance_options(equity, 731.0):
            covered = option.coverage * 731.0
            assert option.premium >= (1 - equity) * covered
            assert option.ev <= 0
            assert option.payout == math.floor(covered)


def test_insurance_break_even() -> None:
    (option,) = calculate_insurance_options(0.75, 1000, coverages=(1.0,), margin=0.05)
    assert option.payout == 1000
    assert option.premium == math.ceil(0.25 * 1000 * 1.05)
    assert option.break_even_equity == pytest.approx(1 - option.premium / 1000)


@pytest.mark.parametrize(
    ("equity", "pot_share", "coverages"),
    [(1.5, 100, (0.5,)), (0.5, -1, (0.5,)), (0.5, 100, (0.0,)), (0.5, 100, (1.2,))],
)
def test_insurance_rejects_bad_inputs(equity: float, pot_share: float, coverages) -> None:
    with pytest.raises(ValueError):
        calculate_insurance_options(equity, pot_share, coverages=coverages)


def test_straddle_ev_verdicts() -> None:
    marginal = straddle_ev(10, 20)
    assert marginal.ev == pytest.approx(2.5)
    assert marginal.break_even_win_rate == pytest.approx(0.2)
    assert marginal.recommendation == StraddleVerdict.MARGINAL

    assert straddle_ev(10, 20, win_rate=0.5).recommendation == StraddleVerdict.PROFITABLE
    assert straddle_ev(10, 40, win_rate=0.1).recommendation == StraddleVerdict.UNPROFITABLE


@pytest.mark.parametrize(
    "kwargs",
    [
        {"big_blind": 0, "straddle_amount": 20},
        {"big_blind": 10, "straddle_amount": 5},
        {"big_blind": 10, "straddle_amount": 20, "average_pot_multiplier": 0},
        {"big_blind": 10, "straddle_amount": 20, "win_rate": 1.2},
    ],
)
def test_straddle_rejects_bad_inputs(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        straddle_ev(**kwargs)
