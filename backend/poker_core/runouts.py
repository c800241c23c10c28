from __future__ import annotations

import itertools
import math
import random
from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Sequence

from .cards import Card, deal, deck_without, shuffle
from .errors import InsufficientDeckError, InvalidHandError
from .evaluator import HandCategory, HandEvaluation, evaluate_hand, find_winners, hand_score, score_category

BOARD_SIZE = 5


@dataclass(frozen=True)
class RabbitHuntResult:
    remaining_cards: tuple[Card, ...]
    board: tuple[Card, ...]
    best_hand: HandEvaluation
    winning_hand: HandEvaluation
    would_have_won: bool

    @property
    def description(self) -> str:
        return f"{self.best_hand.description}: {' '.join(card.label for card in self.best_hand.best_five)}"


@dataclass(frozen=True)
class RabbitHuntOdds:
    completions: int
    category_counts: Mapping[HandCategory, int]
    win_probability: float | None


@dataclass(frozen=True)
class RunOutcome:
    run_number: int
    community_cards: tuple[Card, ...]
    winners: tuple[str, ...]
    best_hand: HandEvaluation
    pot_share: int
    payouts: Mapping[str, int]


@dataclass(frozen=True)
class CombinedResult:
    swept: bool
    split_pot: bool
    run_winners: tuple[tuple[str, ...], ...]


@dataclass(frozen=True)
class RunItTwiceResult:
    runs: tuple[RunOutcome, ...]
    combined_result: CombinedResult
    payouts: Mapping[str, int]


def _check_distinct(cards: Sequence[Card], context: str) -> None:
    if len(set(cards)) != len(cards):
        duplicates = sorted(card.label for card, seen in Counter(cards).items() if seen > 1)
        raise InvalidHandError(f"Duplicate cards in {context}: {', '.join(duplicates)}")


def _rabbit_pool(
    folded_hole: Sequence[Card],
    community: Sequence[Card],
    used_cards: Sequence[Card],
    winning_hole: Sequence[Card] | None,
) -> tuple[tuple[Card, ...], int]:
    if len(folded_hole) != 2:
        raise InvalidHandError(f"Folded hand must have 2 cards, got {len(folded_hole)}.")
    if len(community) > BOARD_SIZE:
        raise InvalidHandError(f"Board has {len(community)} cards; at most {BOARD_SIZE} allowed.")
    if winning_hole is not None and len(winning_hole) != 2:
        raise InvalidHandError(f"Winning hand must have 2 cards, got {len(winning_hole)}.")

    _check_distinct([*folded_hole, *community, *(winning_hole or ())], "rabbit hunt")
    needed = BOARD_SIZE - len(community)
    pool = deck_without([*folded_hole, *community, *used_cards, *(winning_hole or ())])
    if len(pool) < needed:
        raise InsufficientDeckError(needed, len(pool))
    return pool, needed


def rabbit_hunt(
    folded_hole: Sequence[Card],
    community: Sequence[Card],
    used_cards: Sequence[Card],
    winning_hole: Sequence[Card],
    rng: random.Random | None = None,
) -> RabbitHuntResult:
    pool, needed = _rabbit_pool(folded_hole, community, used_cards, winning_hole)
    revealed, _ = deal(shuffle(pool, rng), needed)
    board = (*community, *revealed)

    best_hand = evaluate_hand([*folded_hole, *board])
    winning_hand = evaluate_hand([*winning_hole, *board])
    return RabbitHuntResult(
        remaining_cards=revealed,
        board=board,
        best_hand=best_hand,
        winning_hand=winning_hand,
        would_have_won=best_hand.beats(winning_hand),
    )


def rabbit_hunt_odds(
    folded_hole: Sequence[Card],
    community: Sequence[Card],
    used_cards: Sequence[Card],
    winning_hole: Sequence[Card] | None = None,
) -> RabbitHuntOdds:
    """Enumerate every eligible completion instead of drawing one."""
    pool, needed = _rabbit_pool(folded_hole, community, used_cards, winning_hole)
    counts: Counter[HandCategory] = Counter()
    completions = wins = 0
    for fill in itertools.combinations(pool, needed):
        board = (*community, *fill)
        score = hand_score([*folded_hole, *board])
        counts[score_category(score)] += 1
        completions += 1
        if winning_hole is not None and score > hand_score([*winning_hole, *board]):
            wins += 1

    return RabbitHuntOdds(
        completions=completions,
        category_counts=MappingProxyType(dict(counts)),
        win_probability=wins / completions if winning_hole is not None else None,
    )


def split_chips(amount: int, parts: int) -> list[int]:
    """Equal integer shares; the first ``amount % parts`` shares carry the odd chips."""
    base, odd = divmod(amount, parts)
    return [base + (1 if idx < odd else 0) for idx in range(parts)]


def run_it_n_times(
    holdings: Mapping[str, Sequence[Card]],
    community: Sequence[Card],
    pot: int,
    times: int = 2,
    rng: random.Random | None = None,
    dead_cards: Sequence[Card] = (),
) -> RunItTwiceResult:
    # All runs share one shuffled deck; odd chips go to the earliest run and winner.
    if len(holdings) < 2:
        raise InvalidHandError("Running it multiple times needs at least two players.")
    if times < 1:
        raise ValueError("Number of runs must be at least 1.")
    if pot < 0:
        raise ValueError("Pot must not be negative.")
    if len(community) >= BOARD_SIZE:
        raise InvalidHandError("The board is already complete; there is nothing left to run.")
    for player_id, hole in holdings.items():
        if len(hole) != 2:
            raise InvalidHandError(f"Player {player_id} must hold 2 cards, got {len(hole)}.")

    known = [*community, *itertools.chain.from_iterable(holdings.values())]
    _check_distinct(known, "run it twice")

    needed = BOARD_SIZE - len(community)
    deck = shuffle(deck_without([*known, *dead_cards]), rng)
    if len(deck) < needed * times:
        raise InsufficientDeckError(needed * times, len(deck))

    runs: list[RunOutcome] = []
    totals: dict[str, int] = {player_id: 0 for player_id in holdings}
    for run_number, run_pot in enumerate(split_chips(pot, times), start=1):
        fill, deck = deal(deck, needed)
        board = (*community, *fill)
        winners, evaluations = find_winners(holdings, board)
        payouts = dict(zip(winners, split_chips(run_pot, len(winners))))
        for player_id, amount in payouts.items():
            totals[player_id] += amount
        runs.append(
            RunOutcome(
                run_number=run_number,
                community_cards=board,
                winners=tuple(winners),
                best_hand=evaluations[winners[0]],
                pot_share=run_pot,
                payouts=MappingProxyType(payouts),
            )
        )

    run_winners = tuple(run.winners for run in runs)
    swept = len(set(run_winners)) == 1 and len(run_winners[0]) == 1
    return RunItTwiceResult(
        runs=tuple(runs),
        combined_result=CombinedResult(swept=swept, split_pot=not swept, run_winners=run_winners),
        payouts=MappingProxyType(totals),
    )


def run_it_twice(
    holdings: Mapping[str, Sequence[Card]],
    community: Sequence[Card],
    pot: int,
    rng: random.Random | None = None,
    dead_cards: Sequence[Card] = (),
) -> RunItTwiceResult:
    return run_it_n_times(holdings, community, pot, times=2, rng=rng, dead_cards=dead_cards)


@dataclass(frozen=True)
class VarianceReduction:
    runs: int
    single_run_variance: float
    multi_run_variance: float
    reduction_percent: float


def rabbit_hunt_cost(pot: int, board_size: int) -> int:
    # 1% of the pot to see turn and river, 0.5% for the river alone; never below one chip.
    if pot < 0:
        raise ValueError("Pot must not be negative.")
    if not 0 <= board_size < BOARD_SIZE:
        raise InvalidHandError(f"No cards left to reveal on a board of {board_size} cards.")
    rate = 0.01 if board_size <= 3 else 0.005
    return max(1, math.floor(pot * rate))


def can_run_it_n_times(board_size: int, active_players: int, all_in_players: int) -> bool:
    return all_in_players >= 1 and active_players >= 2 and board_size < BOARD_SIZE


def variance_reduction(runs: int, equity: float) -> VarianceReduction:
    """Variance of a win/lose outcome, ``equity * (1 - equity)``, split over ``runs`` boards."""
    if runs < 1:
        raise ValueError("Number of runs must be at least 1.")
    if not 0.0 <= equity <= 1.0:
        raise ValueError(f"Equity must be between 0 and 1, got {equity}")

    single = equity * (1 - equity)
    multi = single / runs
    return VarianceReduction(
        runs=runs,
        single_run_variance=single,
        multi_run_variance=multi,
        reduction_percent=(single - multi) / single * 100 if single else 0.0,
    )
