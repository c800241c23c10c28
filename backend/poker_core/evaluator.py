from __future__ import annotations

import itertools
from collections import Counter
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Mapping, Sequence

from .cards import RANK_NAMES, Card
from .errors import InvalidHandError


class HandCategory(IntEnum):
    HIGH_CARD = 1
    PAIR = 2
    TWO_PAIR = 3
    THREE_OF_A_KIND = 4
    STRAIGHT = 5
    FLUSH = 6
    FULL_HOUSE = 7
    FOUR_OF_A_KIND = 8
    STRAIGHT_FLUSH = 9
    ROYAL_FLUSH = 10

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS = {
    HandCategory.HIGH_CARD: "High Card",
    HandCategory.PAIR: "Pair",
    HandCategory.TWO_PAIR: "Two Pair",
    HandCategory.THREE_OF_A_KIND: "Three of a Kind",
    HandCategory.STRAIGHT: "Straight",
    HandCategory.FLUSH: "Flush",
    HandCategory.FULL_HOUSE: "Full House",
    HandCategory.FOUR_OF_A_KIND: "Four of a Kind",
    HandCategory.STRAIGHT_FLUSH: "Straight Flush",
    HandCategory.ROYAL_FLUSH: "Royal Flush",
}


# Five tiebreak ranks of four bits each sit under the category.
_KICKER_BITS = 4
_KICKER_SLOTS = 5


def pack_score(category: HandCategory, tiebreakers: Sequence[int]) -> int:
    score = int(category)
    for slot in range(_KICKER_SLOTS):
        score = (score << _KICKER_BITS) | (tiebreakers[slot] if slot < len(tiebreakers) else 0)
    return score


def score_category(score: int) -> HandCategory:
    return HandCategory(score >> (_KICKER_BITS * _KICKER_SLOTS))


@dataclass(frozen=True)
class HandEvaluation:
    category: HandCategory
    score: int
    best_five: tuple[Card, ...]
    tiebreakers: tuple[int, ...]

    @property
    def description(self) -> str:
        return describe(self.category, self.tiebreakers)

    def beats(self, other: "HandEvaluation") -> bool:
        return self.score > other.score


def _plural(rank: int) -> str:
    name = RANK_NAMES[rank]
    return f"{name}es" if name == "Six" else f"{name}s"


def describe(category: HandCategory, tiebreakers: Sequence[int]) -> str:
    lead = tiebreakers[0]
    if category == HandCategory.ROYAL_FLUSH:
        return "Royal Flush"
    if category == HandCategory.STRAIGHT_FLUSH:
        return f"Straight Flush, {RANK_NAMES[lead]} high"
    if category == HandCategory.FOUR_OF_A_KIND:
        return f"Four of a Kind, {_plural(lead)}"
    if category == HandCategory.FULL_HOUSE:
        return f"Full House, {_plural(lead)} full of {_plural(tiebreakers[1])}"
    if category == HandCategory.FLUSH:
        return f"Flush, {RANK_NAMES[lead]} high"
    if category == HandCategory.STRAIGHT:
        return f"Straight, {RANK_NAMES[lead]} high"
    if category == HandCategory.THREE_OF_A_KIND:
        return f"Three of a Kind, {_plural(lead)}"
    if category == HandCategory.TWO_PAIR:
        return f"Two Pair, {_plural(lead)} and {_plural(tiebreakers[1])}"
    if category == HandCategory.PAIR:
        return f"Pair of {_plural(lead)}"
    return f"High Card, {RANK_NAMES[lead]}"


def _straight_high(values: Iterable[int]) -> int | None:
    unique = sorted(set(values), reverse=True)
    if len(unique) < 5:
        return None

    for idx in range(len(unique) - 4):
        window = unique[idx : idx + 5]
        if window[0] - window[-1] == 4:
            return window[0]

    if {14, 5, 4, 3, 2}.issubset(unique):
        return 5

    return None


def _rank_five(cards: Sequence[Card]) -> tuple[HandCategory, tuple[int, ...]]:
    rank_values = sorted((card.rank for card in cards), reverse=True)
    counts = Counter(rank_values)

    is_flush = len({card.suit for card in cards}) == 1
    straight_high = _straight_high(rank_values)
    sorted_counts = sorted(counts.items(), key=lambda item: (item[1], item[0]), reverse=True)

    if is_flush and straight_high is not None:
        if straight_high == 14:
            return HandCategory.ROYAL_FLUSH, (14,)
        return HandCategory.STRAIGHT_FLUSH, (straight_high,)

    if sorted_counts[0][1] == 4:
        return HandCategory.FOUR_OF_A_KIND, (sorted_counts[0][0], sorted_counts[1][0])

    if sorted_counts[0][1] == 3 and sorted_counts[1][1] == 2:
        return HandCategory.FULL_HOUSE, (sorted_counts[0][0], sorted_counts[1][0])

    if is_flush:
        return HandCategory.FLUSH, tuple(rank_values)

    if straight_high is not None:
        return HandCategory.STRAIGHT, (straight_high,)

    if sorted_counts[0][1] == 3:
        kickers = sorted((item[0] for item in sorted_counts[1:]), reverse=True)
        return HandCategory.THREE_OF_A_KIND, (sorted_counts[0][0], *kickers)

    if sorted_counts[0][1] == 2 and sorted_counts[1][1] == 2:
        return HandCategory.TWO_PAIR, (sorted_counts[0][0], sorted_counts[1][0], sorted_counts[2][0])

    if sorted_counts[0][1] == 2:
        kickers = sorted((item[0] for item in sorted_counts[1:]), reverse=True)
        return HandCategory.PAIR, (sorted_counts[0][0], *kickers)

    return HandCategory.HIGH_CARD, tuple(rank_values)


def _validate(cards: Sequence[Card]) -> None:
    if len(cards) < 5 or len(cards) > 7:
        raise InvalidHandError(f"Hand evaluation needs 5 to 7 cards, got {len(cards)}.")
    if len(set(cards)) != len(cards):
        duplicates = sorted(card.label for card, seen in Counter(cards).items() if seen > 1)
        raise InvalidHandError(f"Duplicate cards in hand: {', '.join(duplicates)}")


def _display_order(cards: Sequence[Card], category: HandCategory, tiebreakers: tuple[int, ...]) -> tuple[Card, ...]:
    if category in (HandCategory.STRAIGHT, HandCategory.STRAIGHT_FLUSH) and tiebreakers[0] == 5:
        # Wheel: the ace plays low.
        return tuple(sorted(cards, key=lambda card: (card.rank % 14, card.suit), reverse=True))
    counts = Counter(card.rank for card in cards)
    return tuple(sorted(cards, key=lambda card: (counts[card.rank], card.rank, card.suit), reverse=True))


def evaluate_hand(cards: Sequence[Card]) -> HandEvaluation:
    cards = tuple(cards)
    _validate(cards)

    best: tuple[int, HandCategory, tuple[int, ...], tuple[Card, ...]] | None = None
    for combo in itertools.combinations(cards, 5):
        category, tiebreakers = _rank_five(combo)
        score = pack_score(category, tiebreakers)
        if best is None or score > best[0]:
            best = (score, category, tiebreakers, combo)

    if best is None:
        raise RuntimeError("Could not evaluate hand rank.")
    score, category, tiebreakers, combo = best
    return HandEvaluation(
        category=category,
        score=score,
        best_five=_display_order(combo, category, tiebreakers),
        tiebreakers=tiebreakers,
    )


def hand_score(cards: Sequence[Card]) -> int:
    # Same value as evaluate_hand(cards).score, without validation.
    by_suit: dict[object, list[int]] = {}
    counts: dict[int, int] = {}
    for card in cards:
        by_suit.setdefault(card.suit, []).append(card.rank)
        counts[card.rank] = counts.get(card.rank, 0) + 1

    flush_ranks: list[int] | None = None
    for suited in by_suit.values():
        if len(suited) >= 5:
            flush_ranks = sorted(suited, reverse=True)
            break

    if flush_ranks is not None:
        high = _straight_high(flush_ranks)
        if high is not None:
            category = HandCategory.ROYAL_FLUSH if high == 14 else HandCategory.STRAIGHT_FLUSH
            return pack_score(category, (high,))

    groups = sorted(counts.items(), key=lambda item: (item[1], item[0]), reverse=True)
    top_rank, top_count = groups[0]

    if top_count == 4:
        kicker = max(rank for rank in counts if rank != top_rank)
        return pack_score(HandCategory.FOUR_OF_A_KIND, (top_rank, kicker))

    if top_count == 3 and len(groups) > 1 and groups[1][1] >= 2:
        return pack_score(HandCategory.FULL_HOUSE, (top_rank, groups[1][0]))

    if flush_ranks is not None:
        return pack_score(HandCategory.FLUSH, flush_ranks[:5])

    high = _straight_high(counts)
    if high is not None:
        return pack_score(HandCategory.STRAIGHT, (high,))

    if top_count == 3:
        kickers = sorted((rank for rank in counts if rank != top_rank), reverse=True)[:2]
        return pack_score(HandCategory.THREE_OF_A_KIND, (top_rank, *kickers))

    if top_count == 2 and groups[1][1] == 2:
        high_pair, low_pair = groups[0][0], groups[1][0]
        kicker = max(rank for rank in counts if rank not in (high_pair, low_pair))
        return pack_score(HandCategory.TWO_PAIR, (high_pair, low_pair, kicker))

    if top_count == 2:
        kickers = sorted((rank for rank in counts if rank != top_rank), reverse=True)[:3]
        return pack_score(HandCategory.PAIR, (top_rank, *kickers))

    return pack_score(HandCategory.HIGH_CARD, sorted(counts, reverse=True)[:5])


def compare_hands(first: HandEvaluation, second: HandEvaluation) -> int:
    if first.score > second.score:
        return 1
    if first.score < second.score:
        return -1
    return 0


def find_winners(
    holdings: Mapping[str, Sequence[Card]], board: Sequence[Card]
) -> tuple[list[str], dict[str, HandEvaluation]]:
    # Winner ids keep the iteration order of ``holdings``.
    if not holdings:
        raise InvalidHandError("At least one holding is required to find a winner.")

    evaluations = {player_id: evaluate_hand([*hole, *board]) for player_id, hole in holdings.items()}
    best = max(evaluation.score for evaluation in evaluations.values())
    winners = [player_id for player_id, evaluation in evaluations.items() if evaluation.score == best]
    return winners, evaluations
