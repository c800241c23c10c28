from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from .config import TableSettings
from .replay import ActionKind, HandLog, Phase, TableStateSnapshot, apply_action, initial_snapshot, showdown_results
from .runouts import split_chips

logger = logging.getLogger(__name__)

DEFAULT_MIN_HANDS = 100


class LeakSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PlayerType(str, Enum):
    NIT = "nit"
    TAG = "tag"
    WEAK_TIGHT = "weak_tight"
    LAG = "lag"
    CALLING_STATION = "calling_station"
    MANIAC = "maniac"
    REGULAR = "regular"


@dataclass(frozen=True)
class Leak:
    category: str
    severity: LeakSeverity
    description: str
    suggestion: str
    impact_bb: float


@dataclass
class PlayerStats:
    player_id: str
    hands_played: int = 0
    hands_won: int = 0
    total_profit: int = 0
    big_blinds_won: float = 0.0
    vpip_hands: int = 0
    pfr_hands: int = 0
    three_bet_opportunities: int = 0
    three_bet_hands: int = 0
    postflop_bets: int = 0
    postflop_raises: int = 0
    postflop_calls: int = 0
    showdown_hands: int = 0
    showdown_wins: int = 0

    def _share(self, count: int, total: int) -> float:
        return count / total if total else 0.0

    @property
    def vpip(self) -> float:
        return self._share(self.vpip_hands, self.hands_played)

    @property
    def pfr(self) -> float:
        return self._share(self.pfr_hands, self.hands_played)

    @property
    def three_bet(self) -> float:
        return self._share(self.three_bet_hands, self.three_bet_opportunities)

    @property
    def aggression_factor(self) -> float | None:
        if not self.postflop_calls:
            return None
        return (self.postflop_bets + self.postflop_raises) / self.postflop_calls

    @property
    def went_to_showdown(self) -> float:
        return self._share(self.showdown_hands, self.hands_played)

    @property
    def won_at_showdown(self) -> float:
        return self._share(self.showdown_wins, self.showdown_hands)

    @property
    def win_rate(self) -> float:
        # Big blinds per 100 hands.
        return self._share(self.big_blinds_won, self.hands_played) * 100


@dataclass
class _HandTrace:
    voluntary: set[str] = field(default_factory=set)
    raised_preflop: set[str] = field(default_factory=set)
    three_bet_chance: set[str] = field(default_factory=set)
    three_bet: set[str] = field(default_factory=set)
    preflop_raises: int = 0


def _is_aggressive(before: TableStateSnapshot, after: TableStateSnapshot, player_id: str, kind: ActionKind) -> bool:
    if kind in (ActionKind.BET, ActionKind.RAISE):
        return True
    if kind != ActionKind.ALL_IN:
        return False
    top_bet = max(before.bets.values()) if after.phase == before.phase else 0
    return after.player(player_id).bet > top_bet


def _record_hand(stats: dict[str, PlayerStats], log: HandLog, settings: TableSettings) -> None:
    trace = _HandTrace()
    snapshot = initial_snapshot(log)

    for action in log.actions:
        before = snapshot
        snapshot = apply_action(before, action, log)
        player_id = action.player_id
        kind = ActionKind(action.action)
        aggressive = _is_aggressive(before, snapshot, player_id, kind)

        if Phase(action.phase) == Phase.PREFLOP:
            # A player facing exactly one raise has a chance to three-bet, even when folding.
            if trace.preflop_raises == 1 and player_id not in trace.raised_preflop and kind != ActionKind.CHECK:
                trace.three_bet_chance.add(player_id)
                if aggressive:
                    trace.three_bet.add(player_id)
            if kind not in (ActionKind.FOLD, ActionKind.CHECK):
                trace.voluntary.add(player_id)
            if aggressive:
                trace.raised_preflop.add(player_id)
                trace.preflop_raises += 1
            continue

        if kind in (ActionKind.FOLD, ActionKind.CHECK):
            continue
        player = stats[player_id]
        top_bet = max(before.bets.values()) if snapshot.phase == before.phase else 0
        if not aggressive:
            player.postflop_calls += 1
        elif kind == ActionKind.BET or top_bet == 0:
            player.postflop_bets += 1
        else:
            player.postflop_raises += 1

    result = showdown_results(log)
    pot = snapshot.pot
    net_pot = pot - math.floor(pot * settings.rake_percent)
    winnings = dict(zip(result.winners, split_chips(net_pot, len(result.winners))))
    contenders = [player.player_id for player in log.players if player.player_id not in snapshot.folded_players]
    final_stacks = snapshot.stacks

    for player in log.players:
        entry = stats[player.player_id]
        invested = player.starting_stack - final_stacks[player.player_id]
        profit = winnings.get(player.player_id, 0) - invested
        entry.hands_played += 1
        entry.total_profit += profit
        if log.big_blind:
            entry.big_blinds_won += profit / log.big_blind
        won = player.player_id in winnings
        if won:
            entry.hands_won += 1
        if player.player_id in trace.voluntary:
            entry.vpip_hands += 1
        if player.player_id in trace.raised_preflop:
            entry.pfr_hands += 1
        if player.player_id in trace.three_bet_chance:
            entry.three_bet_opportunities += 1
        if player.player_id in trace.three_bet:
            entry.three_bet_hands += 1
        if len(contenders) > 1 and player.player_id in contenders:
            entry.showdown_hands += 1
            if won:
                entry.showdown_wins += 1


def collect_player_stats(logs: Iterable[HandLog], settings: TableSettings | None = None) -> dict[str, PlayerStats]:
    """Fold recorded hands into per-player statistics, keyed in order of first appearance."""
    settings = settings or TableSettings()
    stats: dict[str, PlayerStats] = {}
    hands = 0
    for log in logs:
        for player in log.players:
            stats.setdefault(player.player_id, PlayerStats(player.player_id))
        _record_hand(stats, log, settings)
        hands += 1
    logger.debug("Collected stats for %s player(s) over %s hand(s)", len(stats), hands)
    return stats


def analyze_leaks(stats: PlayerStats, min_hands: int = DEFAULT_MIN_HANDS) -> list[Leak]:
    if stats.hands_played < min_hands:
        return [
            Leak(
                category="Sample size",
                severity=LeakSeverity.LOW,
                description=f"Only {stats.hands_played} hands recorded",
                suggestion=f"Play at least {min_hands} hands before reading these numbers",
                impact_bb=0.0,
            )
        ]

    vpip = stats.vpip * 100
    wtsd = stats.went_to_showdown * 100
    wsd = stats.won_at_showdown * 100
    af = stats.aggression_factor
    leaks: list[Leak] = []

    if vpip > 35:
        leaks.append(
            Leak(
                category="Range too wide",
                severity=LeakSeverity.CRITICAL if vpip > 45 else LeakSeverity.HIGH,
                description=f"VPIP {vpip:.1f}% is too high",
                suggestion="Tighten starting hands, especially from early position",
                impact_bb=(vpip - 25) * 0.5,
            )
        )
    if vpip < 15:
        leaks.append(
            Leak(
                category="Too tight",
                severity=LeakSeverity.MEDIUM,
                description=f"VPIP {vpip:.1f}% is too low",
                suggestion="Open more hands from late position and attempt more steals",
                impact_bb=(20 - vpip) * 0.3,
            )
        )

    ratio = stats.pfr / stats.vpip if stats.vpip else 0.0
    if ratio < 0.6 and vpip > 15:
        leaks.append(
            Leak(
                category="Passive preflop",
                severity=LeakSeverity.HIGH,
                description=f"PFR/VPIP {ratio * 100:.0f}% means too many calls",
                suggestion="Raise instead of calling, especially in position",
                impact_bb=(0.7 - ratio) * 10,
            )
        )

    if af is not None and af < 1.5 and stats.postflop_calls > 50:
        leaks.append(
            Leak(
                category="Passive postflop",
                severity=LeakSeverity.HIGH,
                description=f"AF {af:.2f} is too passive",
                suggestion="Bet and raise more after the flop and call less",
                impact_bb=(2 - af) * 5,
            )
        )
    if af is not None and af > 5 and stats.postflop_calls > 20:
        leaks.append(
            Leak(
                category="Overly aggressive",
                severity=LeakSeverity.MEDIUM,
                description=f"AF {af:.2f} is too aggressive",
                suggestion="Call more with medium-strength hands instead of bluffing every street",
                impact_bb=(af - 4) * 2,
            )
        )

    if wtsd < 20 and stats.big_blinds_won < 0:
        leaks.append(
            Leak(
                category="Folding too often",
                severity=LeakSeverity.MEDIUM,
                description=f"WTSD {wtsd:.1f}% means folding too often",
                suggestion="Take marginal hands to showdown more often",
                impact_bb=(25 - wtsd) * 0.3,
            )
        )
    if wtsd > 35 and wsd < 45:
        leaks.append(
            Leak(
                category="Loose calls",
                severity=LeakSeverity.HIGH,
                description=f"WTSD {wtsd:.1f}% with W$SD {wsd:.1f}%",
                suggestion="Fold more weak hands instead of calling down without equity",
                impact_bb=(wtsd - 30) * 0.5,
            )
        )

    leaks.sort(key=lambda leak: leak.impact_bb, reverse=True)
    return leaks


def classify_player(stats: PlayerStats) -> PlayerType:
    vpip = stats.vpip * 100
    pfr = stats.pfr * 100
    gap = vpip - pfr

    if vpip < 15 and pfr < 10:
        return PlayerType.NIT
    if vpip < 22 and pfr > 15 and gap < 5:
        return PlayerType.TAG
    if vpip < 22 and gap > 8:
        return PlayerType.WEAK_TIGHT
    if vpip > 30 and pfr > 22 and gap < 10:
        return PlayerType.LAG
    if vpip > 35 and gap > 15:
        return PlayerType.CALLING_STATION
    if vpip > 45:
        return PlayerType.MANIAC
    return PlayerType.REGULAR
