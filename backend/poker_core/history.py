from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from .cards import Card
from .config import TableSettings
from .evaluator import HandEvaluation, evaluate_hand
from .models import HandHistoryModel, HandLogModel, HistoryWinnerModel
from .replay import (
    ActionKind,
    HandLog,
    Phase,
    ReplayAction,
    TableStateSnapshot,
    initial_snapshot,
    replay_snapshots,
    showdown_results,
)
from .runouts import split_chips

STREET_HEADERS = {
    Phase.PREFLOP: "*** HOLE CARDS ***",
    Phase.SHOWDOWN: "*** SHOWDOWN ***",
}


@dataclass(frozen=True)
class HistoryWinner:
    player_id: str
    amount: int
    hand_rank: str = ""


def _amount(value: int) -> str:
    return f"{value:,}"


def _cards(cards: Sequence[Card]) -> str:
    return " ".join(card.label for card in cards)


def final_pot(log: HandLog) -> int:
    if log.actions:
        return log.actions[-1].pot_after
    return initial_snapshot(log).pot


def resolve_rake(pot: int, settings: TableSettings | None = None, rake: int | None = None) -> int:
    if rake is not None:
        if rake < 0 or rake > pot:
            raise ValueError(f"Rake {rake} must be between 0 and the pot of {pot}.")
        return rake
    settings = settings or TableSettings()
    return math.floor(pot * settings.rake_percent)


def default_winners(log: HandLog, net_pot: int) -> list[HistoryWinner]:
    result = showdown_results(log)
    shares = split_chips(net_pot, len(result.winners))
    return [
        HistoryWinner(
            player_id=player_id,
            amount=share,
            hand_rank=result.evaluations[player_id].description if player_id in result.evaluations else "",
        )
        for player_id, share in zip(result.winners, shares)
    ]


def _street_header(phase: Phase, board: Sequence[Card]) -> str:
    if phase == Phase.FLOP:
        return f"*** FLOP *** [{_cards(board[:3])}]"
    if phase == Phase.TURN:
        return f"*** TURN *** [{_cards(board[:3])}] [{_cards(board[3:4])}]"
    if phase == Phase.RIVER:
        return f"*** RIVER *** [{_cards(board[:4])}] [{_cards(board[4:5])}]"
    return STREET_HEADERS[phase]


def _action_line(name: str, action: ReplayAction, before: TableStateSnapshot, after: TableStateSnapshot) -> str:
    kind = ActionKind(action.action)
    if kind == ActionKind.FOLD:
        return f"{name}: folds"
    if kind == ActionKind.CHECK:
        return f"{name}: checks"

    same_street = Phase(action.phase) == before.phase
    top_bet = max(before.bets.values()) if same_street else 0
    paid = before.player(action.player_id).stack - after.player(action.player_id).stack
    total = after.player(action.player_id).bet

    if kind == ActionKind.CALL:
        return f"{name}: calls {_amount(paid)}"
    if kind == ActionKind.BET:
        return f"{name}: bets {_amount(total)}"
    if kind == ActionKind.RAISE:
        return f"{name}: raises {_amount(total - top_bet)} to {_amount(total)}"

    if total <= top_bet:
        return f"{name}: calls {_amount(paid)} and is all-in"
    if top_bet == 0:
        return f"{name}: bets {_amount(total)} and is all-in"
    return f"{name}: raises {_amount(total - top_bet)} to {_amount(total)} and is all-in"


def _shown_evaluations(log: HandLog, folded: frozenset[str]) -> dict[str, HandEvaluation]:
    if len(log.community_cards) != 5:
        return {}
    return {
        player.player_id: evaluate_hand([*player.hole_cards, *log.community_cards])
        for player in log.players
        if player.hole_cards and player.player_id not in folded
    }


def format_hand_history(
    log: HandLog,
    winners: Sequence[HistoryWinner] | None = None,
    settings: TableSettings | None = None,
    rake: int | None = None,
) -> str:
    """Render ``log`` as a PokerStars-style hand history."""
    pot = final_pot(log)
    rake = resolve_rake(pot, settings, rake)
    if winners is None:
        winners = default_winners(log, pot - rake)
    names = {player.player_id: player.name for player in log.players}
    for winner in winners:
        log.player(winner.player_id)

    snapshots = replay_snapshots(log)
    start = initial_snapshot(log)
    final = snapshots[-1] if snapshots else start
    shown = _shown_evaluations(log, final.folded_players)
    won = {winner.player_id: winner for winner in winners}

    lines: list[str] = []
    header = f"PokerStars Hand #{log.hand_id}: Hold'em No Limit ({_amount(log.small_blind)}/{_amount(log.big_blind)})"
    if log.started_at is not None:
        header += f" - {log.started_at.strftime('%Y-%m-%d %H:%M:%S')}"
    lines.append(header)

    table = f"Table '{log.table_name or log.hand_id}' 9-max"
    if log.button_player is not None:
        table += f" Seat #{log.player(log.button_player).seat} is the button"
    lines.append(table)

    for player in log.players:
        lines.append(f"Seat {player.seat}: {player.name} ({_amount(player.starting_stack)} in chips)")
    lines.append(f"{names[log.small_blind_player]}: posts small blind {_amount(start.player(log.small_blind_player).bet)}")
    lines.append(f"{names[log.big_blind_player]}: posts big blind {_amount(start.player(log.big_blind_player).bet)}")
    lines.append(STREET_HEADERS[Phase.PREFLOP])

    previous = start
    for action, snapshot in zip(log.actions, snapshots):
        phase = Phase(action.phase)
        if phase != previous.phase:
            lines.append(_street_header(phase, log.community_cards))
        lines.append(_action_line(names[action.player_id], action, previous, snapshot))
        previous = snapshot

    if shown and len(shown) > 1:
        if previous.phase != Phase.SHOWDOWN:
            lines.append(STREET_HEADERS[Phase.SHOWDOWN])
        for player in log.players:
            if player.player_id in shown:
                evaluation = shown[player.player_id]
                lines.append(f"{player.name}: shows [{_cards(player.hole_cards)}] ({evaluation.description})")
    for winner in winners:
        lines.append(f"{names[winner.player_id]} collected {_amount(winner.amount)} from pot")

    lines.append("*** SUMMARY ***")
    lines.append(f"Total pot {_amount(pot)} | Rake {_amount(rake)}")
    if log.community_cards:
        lines.append(f"Board [{_cards(log.community_cards)}]")

    for player in log.players:
        summary = f"Seat {player.seat}: {player.name}"
        if player.player_id == log.button_player:
            summary += " (button)"
        if player.player_id == log.small_blind_player:
            summary += " (small blind)"
        elif player.player_id == log.big_blind_player:
            summary += " (big blind)"

        winner = won.get(player.player_id)
        evaluation = shown.get(player.player_id)
        if player.player_id in final.folded_players:
            summary += " folded"
        elif winner is not None and evaluation is not None and len(shown) > 1:
            summary += f" showed [{_cards(player.hole_cards)}] and won ({_amount(winner.amount)})"
            summary += f" with {winner.hand_rank or evaluation.description}"
        elif winner is not None:
            summary += f" collected ({_amount(winner.amount)})"
        elif evaluation is not None:
            summary += f" showed [{_cards(player.hole_cards)}] and lost with {evaluation.description}"
        else:
            summary += " mucked"
        lines.append(summary)

    return "\n".join(lines) + "\n"


def hand_history_json(
    log: HandLog,
    winners: Sequence[HistoryWinner] | None = None,
    settings: TableSettings | None = None,
    rake: int | None = None,
) -> str:
    pot = final_pot(log)
    rake = resolve_rake(pot, settings, rake)
    if winners is None:
        winners = default_winners(log, pot - rake)

    model = HandHistoryModel(
        hand=HandLogModel.from_domain(log),
        pot=pot,
        rake=rake,
        winners=[
            HistoryWinnerModel(player_id=winner.player_id, amount=winner.amount, hand_rank=winner.hand_rank)
            for winner in winners
        ],
    )
    return model.model_dump_json(by_alias=True, indent=2)
