from __future__ import annotations


class PokerCoreError(ValueError):
    """Base class for precondition failures raised by the table core."""


class InvalidCardError(PokerCoreError):
    pass


class InvalidHandError(PokerCoreError):
    pass


class InsufficientDeckError(PokerCoreError):
    def __init__(self, needed: int, available: int) -> None:
        super().__init__(f"Need {needed} cards but only {available} remain after exclusions.")
        self.needed = needed
        self.available = available


class InsufficientCardsError(PokerCoreError):
    def __init__(self, requested: int, available: int) -> None:
        super().__init__(f"Cannot deal {requested} cards from a deck of {available}.")
        self.requested = requested
        self.available = available


class InvalidReplayError(PokerCoreError):
    pass
