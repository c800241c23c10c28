from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from typing import Callable, Sequence

from .cards import Card
from .equity import EquityMode, EquityReport, PlayerHand

logger = logging.getLogger(__name__)


class EquityCache:
    """LRU of equity reports keyed on the full request.

    Only deterministic requests are stored: exhaustive enumeration, or
    sampling with an explicit seed. Any change to a card set, the mode,
    the sample count, the seed or the worker split produces a new key.
    """

    def __init__(self, max_size: int = 256) -> None:
        self.max_size = max(0, max_size)
        self._entries: OrderedDict[str, EquityReport] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def key_for(
        players: Sequence[PlayerHand],
        board: Sequence[Card],
        dead_cards: Sequence[Card],
        mode: EquityMode,
        samples: int,
        seed: int | None,
        workers: int,
    ) -> str:
        raw = json.dumps(
            {
                "players": [
                    [player.player_id, None if player.cards is None else [card.label for card in player.cards]]
                    for player in players
                ],
                "board": [card.label for card in board],
                "dead": sorted(card.label for card in dead_cards),
                "mode": EquityMode(mode).value,
                "samples": samples,
                "seed": seed,
                "workers": workers,
            },
            separators=(",", ":"),
        ).encode("utf-8")
        return hashlib.blake2b(raw, digest_size=16).hexdigest()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get(self, key: str) -> EquityReport | None:
        if self.max_size <= 0:
            return None
        with self._lock:
            report = self._entries.get(key)
            if report is None:
                return None
            self._entries.move_to_end(key)
            return report

    def put(self, key: str, report: EquityReport) -> None:
        if self.max_size <= 0:
            return
        with self._lock:
            self._entries[key] = report
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def get_or_compute(self, key: str, compute: Callable[[], EquityReport], seeded: bool) -> EquityReport:
        cached = self.get(key)
        if cached is not None:
            logger.debug("Equity cache hit %s", key)
            return cached
        report = compute()
        if seeded or report.mode == EquityMode.EXHAUSTIVE:
            self.put(key, report)
        return report
