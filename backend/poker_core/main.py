from __future__ import annotations

import importlib.util
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, Callable, TypeVar

from fastapi import FastAPI, HTTPException, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse

from .analytics import analyze_leaks, classify_player, collect_player_stats
from .cache import EquityCache
from .cards import parse_cards
from .cashout import calculate_cashout_offers, calculate_insurance_options, straddle_ev
from .config import TableSettings, load_environment
from .equity import calculate_equity
from .evaluator import evaluate_hand
from .history import HistoryWinner, format_hand_history, hand_history_json
from .jackpot import BadBeatRule, distribute_bad_beat
from .models import (
    AllInScenarioModel,
    AnalyticsRequestModel,
    BadBeatRequestModel,
    BadBeatResponseModel,
    CashoutOfferModel,
    EquityReportModel,
    EquityRequestModel,
    EvaluateRequestModel,
    HandEvaluationModel,
    HandHistoryRequestModel,
    HandHistoryTextModel,
    HandLogModel,
    InsuranceOptionModel,
    InsuranceRequestModel,
    PlayerStatsModel,
    RabbitHuntCostModel,
    RabbitHuntCostRequestModel,
    RabbitHuntRequestModel,
    RabbitHuntResultModel,
    ReplaySnapshotRequestModel,
    RunItTwiceEligibilityModel,
    RunItTwiceEligibilityRequestModel,
    RunItTwiceRequestModel,
    RunItTwiceResultModel,
    StraddleEVModel,
    StraddleRequestModel,
    TableStateSnapshotModel,
    VarianceReductionModel,
    VarianceReductionRequestModel,
)
from .replay import reconstruct, replay_snapshots
from .runouts import (
    can_run_it_n_times,
    rabbit_hunt,
    rabbit_hunt_cost,
    rabbit_hunt_odds,
    run_it_n_times,
    variance_reduction,
)

load_environment()

logger = logging.getLogger(__name__)

T = TypeVar("T")

DefaultResponseClass = ORJSONResponse if importlib.util.find_spec("orjson") else JSONResponse
settings = TableSettings.from_env()
equity_cache = EquityCache(settings.equity_cache_size)


@asynccontextmanager
async def lifespan(_: FastAPI):
    try:
        yield
    finally:
        equity_cache.clear()


app = FastAPI(
    title="Poker Core API",
    version="0.1.0",
    default_response_class=DefaultResponseClass,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _unprocessable(exc: Exception) -> HTTPException:
    logger.warning("Rejected request: %s: %s", type(exc).__name__, exc)
    return HTTPException(status_code=422, detail={"error": type(exc).__name__, "message": str(exc)})


async def _compute(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    try:
        return await run_in_threadpool(func, *args, **kwargs)
    except ValueError as exc:
        raise _unprocessable(exc) from exc


def _rng(seed: int | None) -> random.Random | None:
    return random.Random(seed) if seed is not None else None


@app.get("/api/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/evaluate", response_model=HandEvaluationModel)
async def evaluate(payload: EvaluateRequestModel) -> HandEvaluationModel:
    def run() -> HandEvaluationModel:
        return HandEvaluationModel.from_domain(evaluate_hand(parse_cards(payload.cards)))

    return await _compute(run)


@app.post("/api/equity", response_model=EquityReportModel)
async def equity(payload: EquityRequestModel) -> EquityReportModel:
    def run() -> EquityReportModel:
        players = [player.to_domain() for player in payload.players]
        board = parse_cards(payload.board)
        dead_cards = parse_cards(payload.dead_cards)
        samples = payload.samples or settings.equity_samples
        key = EquityCache.key_for(
            players, board, dead_cards, payload.mode, samples, payload.seed, settings.equity_workers
        )
        report = equity_cache.get_or_compute(
            key,
            lambda: calculate_equity(
                players,
                board,
                dead_cards,
                mode=payload.mode,
                samples=samples,
                seed=payload.seed,
                workers=settings.equity_workers,
                exhaustive_limit=settings.equity_exhaustive_limit,
                exhaustive_ceiling=settings.equity_exhaustive_ceiling,
            ),
            seeded=payload.seed is not None,
        )
        return EquityReportModel.from_domain(report)

    return await _compute(run)


@app.post("/api/replay/snapshot", response_model=TableStateSnapshotModel)
async def replay_snapshot(payload: ReplaySnapshotRequestModel) -> TableStateSnapshotModel:
    def run() -> TableStateSnapshotModel:
        return TableStateSnapshotModel.from_domain(reconstruct(payload.hand.to_domain(), payload.step))

    try:
        return await _compute(run)
    except IndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.post("/api/replay/snapshots", response_model=list[TableStateSnapshotModel])
async def replay_all(payload: HandLogModel) -> list[TableStateSnapshotModel]:
    def run() -> list[TableStateSnapshotModel]:
        return [TableStateSnapshotModel.from_domain(snapshot) for snapshot in replay_snapshots(payload.to_domain())]

    return await _compute(run)


@app.post("/api/cashout", response_model=list[CashoutOfferModel])
async def cashout(payload: AllInScenarioModel) -> list[CashoutOfferModel]:
    def run() -> list[CashoutOfferModel]:
        offers = calculate_cashout_offers(payload.to_domain(), settings, seed=payload.seed)
        return [CashoutOfferModel.from_domain(offer) for offer in offers]

    return await _compute(run)


@app.post("/api/insurance", response_model=list[InsuranceOptionModel])
async def insurance(payload: InsuranceRequestModel) -> list[InsuranceOptionModel]:
    def run() -> list[InsuranceOptionModel]:
        kwargs: dict[str, Any] = {"margin": settings.insurance_margin}
        if payload.coverages is not None:
            kwargs["coverages"] = payload.coverages
        options = calculate_insurance_options(payload.equity, payload.pot_share, **kwargs)
        return [InsuranceOptionModel.from_domain(option) for option in options]

    return await _compute(run)


@app.post("/api/rabbit-hunt", response_model=RabbitHuntResultModel)
async def rabbit(payload: RabbitHuntRequestModel) -> RabbitHuntResultModel:
    def run() -> RabbitHuntResultModel:
        folded = parse_cards(payload.folded_hole)
        community = parse_cards(payload.community_cards)
        used = parse_cards(payload.used_cards)
        winning = parse_cards(payload.winning_hole)
        result = rabbit_hunt(folded, community, used, winning, rng=_rng(payload.seed))
        odds = rabbit_hunt_odds(folded, community, used, winning) if payload.include_odds else None
        return RabbitHuntResultModel.from_domain(result, odds)

    return await _compute(run)


@app.post("/api/run-it-twice", response_model=RunItTwiceResultModel)
async def run_it_twice(payload: RunItTwiceRequestModel) -> RunItTwiceResultModel:
    def run() -> RunItTwiceResultModel:
        holdings = {player_id: parse_cards(cards) for player_id, cards in payload.holdings.items()}
        result = run_it_n_times(
            holdings,
            parse_cards(payload.community_cards),
            payload.pot,
            times=payload.times,
            rng=_rng(payload.seed),
            dead_cards=parse_cards(payload.dead_cards),
        )
        return RunItTwiceResultModel.from_domain(result)

    return await _compute(run)


@app.post("/api/rabbit-hunt/cost", response_model=RabbitHuntCostModel)
async def rabbit_cost(payload: RabbitHuntCostRequestModel) -> RabbitHuntCostModel:
    def run() -> RabbitHuntCostModel:
        board_size = len(parse_cards(payload.community_cards))
        return RabbitHuntCostModel(cost=rabbit_hunt_cost(payload.pot, board_size), cards_to_reveal=5 - board_size)

    return await _compute(run)


@app.post("/api/run-it-twice/eligibility", response_model=RunItTwiceEligibilityModel)
async def run_it_twice_eligibility(payload: RunItTwiceEligibilityRequestModel) -> RunItTwiceEligibilityModel:
    def run() -> RunItTwiceEligibilityModel:
        board_size = len(parse_cards(payload.community_cards))
        return RunItTwiceEligibilityModel(
            allowed=can_run_it_n_times(board_size, payload.active_players, payload.all_in_players)
        )

    return await _compute(run)


@app.post("/api/run-it-twice/variance", response_model=VarianceReductionModel)
async def run_it_twice_variance(payload: VarianceReductionRequestModel) -> VarianceReductionModel:
    def run() -> VarianceReductionModel:
        return VarianceReductionModel.from_domain(variance_reduction(payload.runs, payload.equity))

    return await _compute(run)


@app.post("/api/straddle", response_model=StraddleEVModel)
async def straddle(payload: StraddleRequestModel) -> StraddleEVModel:
    def run() -> StraddleEVModel:
        result = straddle_ev(
            payload.big_blind,
            payload.straddle_amount,
            average_pot_multiplier=payload.average_pot_multiplier,
            win_rate=payload.win_rate,
        )
        return StraddleEVModel.from_domain(result)

    return await _compute(run)


@app.post("/api/jackpot/bad-beat", response_model=BadBeatResponseModel)
async def bad_beat(payload: BadBeatRequestModel) -> BadBeatResponseModel:
    def run() -> BadBeatResponseModel:
        rule = BadBeatRule.from_setting(settings.bad_beat_min_hand)
        hands = (payload.losing_hole, payload.winning_hole, payload.board)
        if any(part is not None for part in hands):
            if any(part is None for part in hands):
                raise ValueError("losingHole, winningHole and board must be supplied together.")
            board = parse_cards(payload.board)
            losing = evaluate_hand([*parse_cards(payload.losing_hole), *board])
            winning = evaluate_hand([*parse_cards(payload.winning_hole), *board])
            if not rule.qualifies(losing, winning):
                return BadBeatResponseModel.from_domain(rule.label, None)

        distribution = distribute_bad_beat(
            payload.total_jackpot, payload.loser_id, payload.winner_id, payload.table_player_ids
        )
        return BadBeatResponseModel.from_domain(rule.label, distribution)

    return await _compute(run)


@app.post("/api/hand-history")
async def hand_history(payload: HandHistoryRequestModel) -> Any:
    def run() -> Any:
        log = payload.hand.to_domain()
        winners = None
        if payload.winners is not None:
            winners = [HistoryWinner(item.player_id, item.amount, item.hand_rank) for item in payload.winners]
        if payload.format == "json":
            return Response(
                content=hand_history_json(log, winners, settings, payload.rake),
                media_type="application/json",
            )
        text = format_hand_history(log, winners, settings, payload.rake)
        return HandHistoryTextModel(hand_id=log.hand_id, text=text).model_dump(by_alias=True)

    return await _compute(run)


@app.post("/api/analytics", response_model=list[PlayerStatsModel])
async def analytics(payload: AnalyticsRequestModel) -> list[PlayerStatsModel]:
    def run() -> list[PlayerStatsModel]:
        stats = collect_player_stats((hand.to_domain() for hand in payload.hands), settings)
        return [
            PlayerStatsModel.from_domain(entry, classify_player(entry), analyze_leaks(entry, payload.min_hands))
            for entry in stats.values()
        ]

    return await _compute(run)
