from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from .cards import Card
from .config import TableSettings
from .equity import EquityMode, EquityReport, PlayerHand, calculate_equity
from .replay import Phase

DEFAULT_COVERAGES = (0.5, 0.75, 1.0)


class Recommendation(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class ScenarioPlayer:
    player_id: str
    name: str
    cards: tuple[Card, ...]
    stack: int
    contribution: int


@dataclass(frozen=True)
class AllInScenario:
    players: tuple[ScenarioPlayer, ...]
    community_cards: tuple[Card, ...]
    pot: int
    phase: Phase

    @property
    def total_contributions(self) -> int:
        return sum(player.contribution for player in self.players)

    def pot_share(self, player: ScenarioPlayer) -> float:
        total = self.total_contributions
        if total <= 0:
            raise ValueError("All-in scenario has no contributions to split the pot by.")
        return self.pot * player.contribution / total


@dataclass(frozen=True)
class CashoutOffer:
    player_id: str
    player_name: str
    current_equity: float
    pot_share: float
    cashout_amount: int
    expected_value: float
    risk_reduction: float
    recommendation: Recommendation


@dataclass(frozen=True)
class InsuranceOption:
    coverage: float
    premium: int
    payout: int
    ev: float
    break_even_equity: float


class StraddleVerdict(str, Enum):
    PROFITABLE = "profitable"
    MARGINAL = "marginal"
    UNPROFITABLE = "unprofitable"


@dataclass(frozen=True)
class StraddleEV:
    ev: float
    break_even_win_rate: float
    recommendation: StraddleVerdict


def risk_reduction(equity: float, player_count: int) -> float:
    """Variance removed by cashing out, as a percentage; peaks at 50% equity."""
    return 4 * equity * (1 - equity) * math.log2(max(player_count, 2)) * 100


def recommend(equity: float, settings: TableSettings) -> Recommendation:
    if equity < settings.cashout_accept_below:
        return Recommendation.ACCEPT
    if equity > settings.cashout_decline_above:
        return Recommendation.DECLINE
    return Recommendation.NEUTRAL


def scenario_equity(scenario: AllInScenario, settings: TableSettings, seed: int | None = None) -> EquityReport:
    return calculate_equity(
        [PlayerHand(player.player_id, player.cards) for player in scenario.players],
        scenario.community_cards,
        mode=EquityMode.AUTO,
        samples=settings.equity_samples,
        seed=seed,
        workers=settings.equity_workers,
        exhaustive_limit=settings.equity_exhaustive_limit,
    )


def calculate_cashout_offers(
    scenario: AllInScenario,
    settings: TableSettings | None = None,
    equity_report: EquityReport | None = None,
    seed: int | None = None,
) -> list[CashoutOffer]:
    if len(scenario.players) < 2:
        return []

    settings = settings or TableSettings()
    report = equity_report or scenario_equity(scenario, settings, seed=seed)
    fee_rate = settings.cashout_fee_rate

    offers: list[CashoutOffer] = []
    for player in scenario.players:
        equity = report.for_player(player.player_id).equity
        pot_share = scenario.pot_share(player)
        offers.append(
            CashoutOffer(
                player_id=player.player_id,
                player_name=player.name,
                current_equity=equity,
                pot_share=pot_share,
                cashout_amount=math.floor(pot_share * equity * (1 - fee_rate)),
                expected_value=pot_share * equity,
                risk_reduction=risk_reduction(equity, len(scenario.players)),
                recommendation=recommend(equity, settings),
            )
        )
    return offers


def calculate_insurance_options(
    equity: float,
    pot_share: float,
    coverages: Sequence[float] = DEFAULT_COVERAGES,
    margin: float = 0.05,
) -> list[InsuranceOption]:
    # The premium is priced on the exact covered amount; the payout is floored.
    if not 0.0 <= equity <= 1.0:
        raise ValueError(f"Equity must be between 0 and 1, got {equity}")
    if pot_share < 0 or margin < 0:
        raise ValueError("Pot share and margin must not be negative.")

    options: list[InsuranceOption] = []
    for coverage in coverages:
        if not 0.0 < coverage <= 1.0:
            raise ValueError(f"Coverage must be in (0, 1], got {coverage}")
        covered = coverage * pot_share
        loss_probability = 1 - equity
        premium = math.ceil(loss_probability * covered * (1 + margin))
        payout = math.floor(covered)
        options.append(
            InsuranceOption(
                coverage=coverage,
                premium=premium,
                payout=payout,
                ev=covered * loss_probability - premium,
                break_even_equity=1 - premium / payout if payout else 0.0,
            )
        )
    return options


def straddle_ev(
    big_blind: int,
    straddle_amount: int,
    average_pot_multiplier: float = 5.0,
    win_rate: float = 0.25,
) -> StraddleEV:
    """Expected chips from straddling, given the average pot in big blinds and how often it is won."""
    if big_blind <= 0:
        raise ValueError("Big blind must be positive.")
    if straddle_amount < big_blind:
        raise ValueError(f"Straddle of {straddle_amount} is below the big blind of {big_blind}.")
    if average_pot_multiplier <= 0:
        raise ValueError("Average pot multiplier must be positive.")
    if not 0.0 <= win_rate <= 1.0:
        raise ValueError(f"Win rate must be between 0 and 1, got {win_rate}")

    extra = straddle_amount - big_blind
    average_pot = big_blind * average_pot_multiplier
    ev = average_pot * win_rate - extra
    if ev > big_blind:
        verdict = StraddleVerdict.PROFITABLE
    elif ev > -big_blind:
        verdict = StraddleVerdict.MARGINAL
    else:
        verdict = StraddleVerdict.UNPROFITABLE
    return StraddleEV(ev=ev, break_even_win_rate=extra / average_pot, recommendation=verdict)
