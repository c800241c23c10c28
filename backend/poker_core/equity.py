from __future__ import annotations

import itertools
import logging
import math
import random
from collections import Counter
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, Sequence

from .cards import Card, deck_without
from .errors import InsufficientDeckError, InvalidHandError
from .evaluator import HandCategory, evaluate_hand, hand_score

logger = logging.getLogger(__name__)

DEFAULT_SAMPLES = 10_000
DEFAULT_EXHAUSTIVE_LIMIT = 100_000
DEFAULT_BATCH_SIZE = 1_000
BOARD_SIZE = 5
HOLE_CARDS = 2


class EquityMode(str, Enum):
    AUTO = "auto"
    EXHAUSTIVE = "exhaustive"
    MONTE_CARLO = "monte_carlo"


@dataclass(frozen=True)
class PlayerHand:
    player_id: str
    cards: tuple[Card, ...] | None = None

    @property
    def known(self) -> bool:
        return self.cards is not None


@dataclass(frozen=True)
class EquityResult:
    player_id: str
    win_probability: float
    tie_probability: float
    lose_probability: float
    equity: float
    hand_category: HandCategory | None = None


@dataclass(frozen=True)
class EquityReport:
    players: tuple[EquityResult, ...]
    mode: EquityMode
    sample_space: int
    samples_run: int
    dead_cards: tuple[Card, ...] = ()

    def for_player(self, player_id: str) -> EquityResult:
        for result in self.players:
            if result.player_id == player_id:
                return result
        raise KeyError(f"No equity result for player: {player_id}")


@dataclass(frozen=True)
class _Scenario:
    holdings: tuple[tuple[Card, ...] | None, ...]
    board: tuple[Card, ...]
    remaining: tuple[Card, ...]

    @property
    def board_needed(self) -> int:
        return BOARD_SIZE - len(self.board)

    @property
    def unknown_count(self) -> int:
        return sum(1 for hole in self.holdings if hole is None)

    @property
    def cards_needed(self) -> int:
        return self.board_needed + HOLE_CARDS * self.unknown_count

    def sample_space(self) -> int:
        available = len(self.remaining)
        total = math.comb(available, self.board_needed)
        available -= self.board_needed
        for _ in range(self.unknown_count):
            total *= math.comb(available, HOLE_CARDS)
            available -= HOLE_CARDS
        return total


@dataclass
class _Tally:
    player_count: int
    runs: int = 0
    wins: list[int] = field(default_factory=list)
    ties: list[int] = field(default_factory=list)
    # ties[p] split by the number of players sharing the pot, so the
    # split-pot share can be computed exactly at the end.
    split_sizes: list[Counter] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.wins:
            self.wins = [0] * self.player_count
            self.ties = [0] * self.player_count
            self.split_sizes = [Counter() for _ in range(self.player_count)]

    def record(self, scores: Sequence[int]) -> None:
        self.runs += 1
        best = max(scores)
        top = [idx for idx, score in enumerate(scores) if score == best]
        if len(top) == 1:
            self.wins[top[0]] += 1
            return
        for idx in top:
            self.ties[idx] += 1
            self.split_sizes[idx][len(top)] += 1

    def merge(self, other: "_Tally") -> None:
        self.runs += other.runs
        for idx in range(self.player_count):
            self.wins[idx] += other.wins[idx]
            self.ties[idx] += other.ties[idx]
            self.split_sizes[idx].update(other.split_sizes[idx])


def _prepare(players: Sequence[PlayerHand], board: Sequence[Card], dead_cards: Sequence[Card]) -> _Scenario:
    if len(players) < 2:
        raise InvalidHandError("Equity needs at least two players.")
    player_ids = [player.player_id for player in players]
    if len(set(player_ids)) != len(player_ids):
        raise InvalidHandError("Player ids must be unique.")
    if len(board) > BOARD_SIZE:
        raise InvalidHandError(f"Board has {len(board)} cards; at most {BOARD_SIZE} allowed.")

    known: list[Card] = list(board)
    for player in players:
        if player.cards is None:
            continue
        if len(player.cards) != HOLE_CARDS:
            raise InvalidHandError(f"Player {player.player_id} must hold {HOLE_CARDS} cards, got {len(player.cards)}.")
        known.extend(player.cards)

    if len(set(known)) != len(known):
        duplicates = sorted(card.label for card, seen in Counter(known).items() if seen > 1)
        raise InvalidHandError(f"Duplicate known cards: {', '.join(duplicates)}")

    scenario = _Scenario(
        holdings=tuple(tuple(player.cards) if player.cards is not None else None for player in players),
        board=tuple(board),
        remaining=deck_without([*known, *dead_cards]),
    )
    if len(scenario.remaining) < scenario.cards_needed:
        raise InsufficientDeckError(scenario.cards_needed, len(scenario.remaining))
    return scenario


def _score_runout(scenario: _Scenario, board: tuple[Card, ...], unknown_holes: Sequence[tuple[Card, ...]]) -> list[int]:
    scores: list[int] = []
    pending = iter(unknown_holes)
    for hole in scenario.holdings:
        cards = hole if hole is not None else next(pending)
        scores.append(hand_score(cards + board))
    return scores


def _hole_assignments(pool: Sequence[Card], count: int) -> Iterator[tuple[tuple[Card, ...], ...]]:
    if count == 0:
        yield ()
        return
    for pair in itertools.combinations(pool, HOLE_CARDS):
        rest = [card for card in pool if card not in pair]
        for tail in _hole_assignments(rest, count - 1):
            yield (pair, *tail)


def _exhaustive_chunk(scenario: _Scenario, offset: int, stride: int) -> _Tally:
    tally = _Tally(len(scenario.holdings))
    unknown = scenario.unknown_count
    completions = itertools.combinations(scenario.remaining, scenario.board_needed)
    for fill in itertools.islice(completions, offset, None, stride):
        board = scenario.board + fill
        if not unknown:
            tally.record(_score_runout(scenario, board, ()))
            continue
        pool = [card for card in scenario.remaining if card not in fill]
        for holes in _hole_assignments(pool, unknown):
            tally.record(_score_runout(scenario, board, holes))
    return tally


def _sample_into(tally: _Tally, scenario: _Scenario, rng: random.Random, samples: int) -> None:
    board_needed = scenario.board_needed
    unknown = scenario.unknown_count
    needed = scenario.cards_needed
    for _ in range(samples):
        drawn = rng.sample(scenario.remaining, needed)
        board = scenario.board + tuple(drawn[:board_needed])
        holes = [
            tuple(drawn[board_needed + HOLE_CARDS * idx : board_needed + HOLE_CARDS * (idx + 1)])
            for idx in range(unknown)
        ]
        tally.record(_score_runout(scenario, board, holes))


def _monte_carlo_chunk(scenario: _Scenario, samples: int, seed: int) -> _Tally:
    tally = _Tally(len(scenario.holdings))
    _sample_into(tally, scenario, random.Random(seed), samples)
    return tally


def _fan_out(worker: Callable[..., _Tally], jobs: list[tuple], workers: int) -> list[_Tally]:
    if workers <= 1 or len(jobs) <= 1:
        return [worker(*job) for job in jobs]
    with ProcessPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(worker, *zip(*jobs)))


def _merge(tallies: Sequence[_Tally], player_count: int) -> _Tally:
    total = _Tally(player_count)
    for tally in tallies:
        total.merge(tally)
    return total


def _seed_source(seed: int | None, rng: random.Random | None) -> random.Random:
    if seed is not None:
        return random.Random(seed)
    if rng is not None:
        return rng
    return random.Random()


def _build_report(
    players: Sequence[PlayerHand],
    board: Sequence[Card],
    tally: _Tally,
    mode: EquityMode,
    sample_space: int,
    dead_cards: Sequence[Card],
) -> EquityReport:
    runs = tally.runs
    results: list[EquityResult] = []
    for idx, player in enumerate(players):
        wins = tally.wins[idx]
        ties = tally.ties[idx]
        split_share = sum(count / size for size, count in tally.split_sizes[idx].items())
        category = None
        if player.cards is not None and len(board) >= 3:
            category = evaluate_hand([*player.cards, *board]).category
        results.append(
            EquityResult(
                player_id=player.player_id,
                win_probability=wins / runs,
                tie_probability=ties / runs,
                lose_probability=(runs - wins - ties) / runs,
                equity=(wins + split_share) / runs,
                hand_category=category,
            )
        )
    return EquityReport(
        players=tuple(results),
        mode=mode,
        sample_space=sample_space,
        samples_run=runs,
        dead_cards=tuple(dead_cards),
    )


def calculate_equity(
    players: Sequence[PlayerHand],
    board: Sequence[Card] = (),
    dead_cards: Sequence[Card] = (),
    *,
    mode: EquityMode = EquityMode.AUTO,
    samples: int = DEFAULT_SAMPLES,
    seed: int | None = None,
    rng: random.Random | None = None,
    workers: int = 1,
    exhaustive_limit: int = DEFAULT_EXHAUSTIVE_LIMIT,
    exhaustive_ceiling: int | None = None,
) -> EquityReport:
    """Win/tie/lose probabilities for every player over the remaining run-outs.

    ``mode=AUTO`` enumerates every run-out when there are at most
    ``exhaustive_limit`` of them and samples ``samples`` run-outs otherwise.
    Sampling is reproducible for a given ``seed`` and ``workers``; without a
    seed or ``rng`` it draws fresh entropy from the OS. With ``workers > 1``
    the work is split into that many independent chunks evaluated in
    separate processes. An enumeration larger than ``exhaustive_ceiling``
    is refused.
    """
    scenario = _prepare(players, board, dead_cards)
    space = scenario.sample_space()
    workers = max(1, workers)
    mode = EquityMode(mode)

    if mode == EquityMode.AUTO:
        mode = EquityMode.EXHAUSTIVE if space <= exhaustive_limit else EquityMode.MONTE_CARLO
    if mode == EquityMode.EXHAUSTIVE and exhaustive_ceiling is not None and space > exhaustive_ceiling:
        raise ValueError(f"Enumerating {space} run-outs exceeds the limit of {exhaustive_ceiling}; use Monte-Carlo.")
    logger.debug("Equity mode %s over sample space %s with %s worker(s)", mode.value, space, workers)

    if mode == EquityMode.EXHAUSTIVE:
        jobs = [(scenario, offset, workers) for offset in range(workers)]
        tallies = _fan_out(_exhaustive_chunk, jobs, workers)
    else:
        if samples <= 0:
            raise ValueError("Monte-Carlo equity needs a positive sample count.")
        source = _seed_source(seed, rng)
        chunk = samples // workers
        jobs = [
            (scenario, chunk + (1 if idx < samples % workers else 0), source.getrandbits(64))
            for idx in range(workers)
        ]
        tallies = _fan_out(_monte_carlo_chunk, [job for job in jobs if job[1] > 0], workers)

    tally = _merge(tallies, len(players))
    return _build_report(players, board, tally, mode, space, dead_cards)


def iter_monte_carlo(
    players: Sequence[PlayerHand],
    board: Sequence[Card] = (),
    dead_cards: Sequence[Card] = (),
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    max_samples: int | None = None,
    seed: int | None = None,
    rng: random.Random | None = None,
) -> Iterator[EquityReport]:
    """Yield a running Monte-Carlo report after every ``batch_size`` samples."""
    if batch_size <= 0:
        raise ValueError("Batch size must be positive.")
    scenario = _prepare(players, board, dead_cards)
    space = scenario.sample_space()
    source = _seed_source(seed, rng)
    tally = _Tally(len(players))

    while max_samples is None or tally.runs < max_samples:
        batch = batch_size if max_samples is None else min(batch_size, max_samples - tally.runs)
        _sample_into(tally, scenario, source, batch)
        yield _build_report(players, board, tally, EquityMode.MONTE_CARLO, space, dead_cards)
