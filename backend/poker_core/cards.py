from __future__ import annotations

import random
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from .errors import InsufficientCardsError, InvalidCardError

RANK_ORDER = "23456789TJQKA"
RANK_VALUE = {rank: idx for idx, rank in enumerate(RANK_ORDER, start=2)}
RANK_CHAR = {value: rank for rank, value in RANK_VALUE.items()}

RANK_NAMES = {
    2: "Deuce",
    3: "Three",
    4: "Four",
    5: "Five",
    6: "Six",
    7: "Seven",
    8: "Eight",
    9: "Nine",
    10: "Ten",
    11: "Jack",
    12: "Queen",
    13: "King",
    14: "Ace",
}


class Suit(str, Enum):
    SPADES = "s"
    HEARTS = "h"
    DIAMONDS = "d"
    CLUBS = "c"


SUIT_SYMBOLS = {"♠": Suit.SPADES, "♥": Suit.HEARTS, "♦": Suit.DIAMONDS, "♣": Suit.CLUBS}


@dataclass(frozen=True, order=True)
class Card:
    rank: int
    suit: Suit

    def __post_init__(self) -> None:
        if self.rank not in RANK_CHAR:
            raise InvalidCardError(f"Invalid rank: {self.rank!r}")
        if not isinstance(self.suit, Suit):
            raise InvalidCardError(f"Invalid suit: {self.suit!r}")

    @property
    def label(self) -> str:
        return f"{RANK_CHAR[self.rank]}{self.suit.value}"

    def __str__(self) -> str:
        return self.label


Deck = tuple[Card, ...]


def parse_card(label: str) -> Card:
    if not isinstance(label, str):
        raise InvalidCardError(f"Card label must be a string, got {type(label).__name__}")

    text = label.strip()
    if len(text) not in (2, 3):
        raise InvalidCardError(f"Invalid card label: {label!r}")

    rank_text, suit_text = text[:-1].upper(), text[-1]
    if rank_text == "10":
        rank_text = "T"
    rank = RANK_VALUE.get(rank_text)
    if rank is None:
        raise InvalidCardError(f"Invalid rank in card label: {label!r}")

    suit = SUIT_SYMBOLS.get(suit_text)
    if suit is None:
        try:
            suit = Suit(suit_text.lower())
        except ValueError as exc:
            raise InvalidCardError(f"Invalid suit in card label: {label!r}") from exc

    return Card(rank, suit)


def format_card(card: Card) -> str:
    return card.label


def parse_cards(labels: Iterable[str]) -> list[Card]:
    return [parse_card(label) for label in labels]


def cards_to_labels(cards: Iterable[Card]) -> list[str]:
    return [card.label for card in cards]


def create_deck() -> Deck:
    return tuple(Card(rank, suit) for suit in Suit for rank in range(2, 15))


def deck_without(excluded: Iterable[Card]) -> Deck:
    removed = set(excluded)
    return tuple(card for card in create_deck() if card not in removed)


def shuffle(deck: Sequence[Card], rng: random.Random | None = None) -> Deck:
    """Return a uniformly random permutation of ``deck``.

    The default source is the operating system CSPRNG. Pass a seeded
    ``random.Random`` for reproducible fixtures.
    """
    source = rng if rng is not None else secrets.SystemRandom()
    cards = list(deck)
    for idx in range(len(cards) - 1, 0, -1):
        swap = source.randrange(idx + 1)
        cards[idx], cards[swap] = cards[swap], cards[idx]
    return tuple(cards)


def deal(deck: Sequence[Card], count: int) -> tuple[Deck, Deck]:
    if count < 0:
        raise ValueError("Cannot deal a negative number of cards.")
    if count > len(deck):
        raise InsufficientCardsError(count, len(deck))
    cards = tuple(deck)
    return cards[:count], cards[count:]


def deal_to_players(deck: Sequence[Card], player_count: int, cards_per_player: int) -> tuple[list[Deck], Deck]:
    # Round-robin: card k of player p is deck[k * player_count + p].
    if player_count <= 0 or cards_per_player < 0:
        raise ValueError("Player count must be positive and cards per player non-negative.")

    dealt, remaining = deal(deck, player_count * cards_per_player)
    hands = [dealt[seat::player_count] for seat in range(player_count)]
    return hands, remaining
