from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .cards import RANK_VALUE
from .evaluator import HandCategory


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        env_key = key.strip()
        if env_key:
            # Exported variables win over file values.
            os.environ.setdefault(env_key, _strip_quotes(value.strip()))


def load_environment() -> None:
    backend_root = Path(__file__).resolve().parents[1]
    project_root = backend_root.parent

    _load_env_file(project_root / ".env")
    _load_env_file(backend_root / ".env")


def parse_min_hand(value: str) -> tuple[HandCategory, int]:
    """Parse ``category[:rank]`` such as ``four_of_a_kind:J`` or ``straight_flush``."""
    name, _, rank_text = value.strip().partition(":")
    try:
        category = HandCategory[name.strip().upper()]
    except KeyError as exc:
        raise ValueError(f"Unknown hand category: {name!r}") from exc

    if not rank_text:
        return category, 2
    rank = RANK_VALUE.get(rank_text.strip().upper())
    if rank is None:
        raise ValueError(f"Unknown rank in minimum hand: {rank_text!r}")
    return category, rank


def _rate(env: Mapping[str, str], key: str, default: str) -> float:
    value = float(env.get(key, default))
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{key} must be between 0 and 1, got {value}")
    return value


def _positive(env: Mapping[str, str], key: str, default: str) -> int:
    value = int(env.get(key, default))
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class TableSettings:
    cashout_fee_rate: float = 0.02
    cashout_accept_below: float = 0.40
    cashout_decline_above: float = 0.60
    insurance_margin: float = 0.05
    bad_beat_min_hand: tuple[HandCategory, int] = (HandCategory.FOUR_OF_A_KIND, 11)
    rake_percent: float = 0.05
    equity_samples: int = 10_000
    equity_exhaustive_limit: int = 100_000
    equity_exhaustive_ceiling: int = 2_000_000
    equity_workers: int = 1
    equity_cache_size: int = 256

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "TableSettings":
        source = os.environ if env is None else env
        settings = cls(
            cashout_fee_rate=_rate(source, "CASHOUT_FEE_RATE", "0.02"),
            cashout_accept_below=_rate(source, "CASHOUT_ACCEPT_BELOW", "0.40"),
            cashout_decline_above=_rate(source, "CASHOUT_DECLINE_ABOVE", "0.60"),
            insurance_margin=float(source.get("INSURANCE_MARGIN", "0.05")),
            bad_beat_min_hand=parse_min_hand(source.get("BAD_BEAT_MIN_HAND", "four_of_a_kind:J")),
            rake_percent=_rate(source, "RAKE_PERCENT", "0.05"),
            equity_samples=_positive(source, "EQUITY_SAMPLES", "10000"),
            equity_exhaustive_limit=_positive(source, "EQUITY_EXHAUSTIVE_LIMIT", "100000"),
            equity_exhaustive_ceiling=_positive(source, "EQUITY_EXHAUSTIVE_CEILING", "2000000"),
            equity_workers=_positive(source, "EQUITY_WORKERS", "1"),
            equity_cache_size=int(source.get("EQUITY_CACHE_SIZE", "256")),
        )
        if settings.insurance_margin < 0:
            raise ValueError("INSURANCE_MARGIN must not be negative")
        if settings.cashout_accept_below > settings.cashout_decline_above:
            raise ValueError("CASHOUT_ACCEPT_BELOW must not exceed CASHOUT_DECLINE_ABOVE")
        if settings.equity_exhaustive_limit > settings.equity_exhaustive_ceiling:
            raise ValueError("EQUITY_EXHAUSTIVE_LIMIT must not exceed EQUITY_EXHAUSTIVE_CEILING")
        return settings
