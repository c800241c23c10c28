from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Sequence

from .cards import RANK_CHAR
from .evaluator import CATEGORY_LABELS, HandCategory, HandEvaluation

LOSER_SHARE = Fraction(1, 2)
WINNER_SHARE = Fraction(1, 4)
TABLE_SHARE = Fraction(1, 4)


class JackpotRole(str, Enum):
    LOSER = "loser"
    WINNER = "winner"
    TABLE = "table"


@dataclass(frozen=True)
class BadBeatRule:
    min_category: HandCategory = HandCategory.FOUR_OF_A_KIND
    min_rank: int = 11

    @classmethod
    def from_setting(cls, setting: tuple[HandCategory, int]) -> "BadBeatRule":
        category, rank = setting
        return cls(min_category=category, min_rank=rank)

    @property
    def label(self) -> str:
        return f"{CATEGORY_LABELS[self.min_category]}, {RANK_CHAR[self.min_rank]} or better"

    def hand_qualifies(self, hand: HandEvaluation) -> bool:
        # Primary rank is the first tiebreaker: the quad rank, the trip rank
        # of a full house, the straight's high card.
        return (hand.category, hand.tiebreakers[0]) >= (self.min_category, self.min_rank)

    def qualifies(self, losing: HandEvaluation, winning: HandEvaluation) -> bool:
        return self.hand_qualifies(losing) and winning.score > losing.score


@dataclass(frozen=True)
class JackpotPayout:
    player_id: str
    amount: int
    share: float
    role: JackpotRole


@dataclass(frozen=True)
class JackpotDistribution:
    total: int
    payouts: tuple[JackpotPayout, ...]
    house_remainder: int

    @property
    def paid_out(self) -> int:
        return sum(payout.amount for payout in self.payouts)


def distribute_bad_beat(
    total_jackpot: int,
    loser_id: str,
    winner_id: str,
    table_player_ids: Sequence[str],
) -> JackpotDistribution:
    # Floored shares; the house keeps the remainder and an empty table share.
    if total_jackpot < 0:
        raise ValueError("Jackpot total must not be negative.")
    if loser_id == winner_id:
        raise ValueError("Bad-beat loser and winner must be different players.")

    others = [player_id for player_id in dict.fromkeys(table_player_ids) if player_id not in (loser_id, winner_id)]
    payouts = [
        JackpotPayout(loser_id, math.floor(total_jackpot * LOSER_SHARE), float(LOSER_SHARE), JackpotRole.LOSER),
        JackpotPayout(winner_id, math.floor(total_jackpot * WINNER_SHARE), float(WINNER_SHARE), JackpotRole.WINNER),
    ]
    if others:
        per_player = TABLE_SHARE / len(others)
        payouts.extend(
            JackpotPayout(player_id, math.floor(total_jackpot * per_player), float(per_player), JackpotRole.TABLE)
            for player_id in others
        )

    paid = sum(payout.amount for payout in payouts)
    return JackpotDistribution(total=total_jackpot, payouts=tuple(payouts), house_remainder=total_jackpot - paid)
