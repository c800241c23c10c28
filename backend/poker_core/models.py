from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .analytics import Leak, PlayerStats, PlayerType
from .cards import Card, cards_to_labels, parse_cards
from .cashout import AllInScenario, CashoutOffer, InsuranceOption, ScenarioPlayer, StraddleEV
from .equity import EquityMode, EquityReport, PlayerHand
from .evaluator import HandEvaluation
from .jackpot import JackpotDistribution, JackpotRole
from .replay import ActionKind, HandLog, Phase, ReplayAction, ReplayPlayer, TableStateSnapshot
from .runouts import RabbitHuntOdds, RabbitHuntResult, RunItTwiceResult, RunOutcome, VarianceReduction

MAX_EQUITY_SAMPLES = 1_000_000


def to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(part.capitalize() for part in parts[1:])


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


def _cards(labels: Optional[List[str]]) -> tuple[Card, ...]:
    return tuple(parse_cards(labels or []))


class HandEvaluationModel(CamelModel):
    category: str
    category_rank: int
    score: int
    best_five: List[str]
    description: str

    @classmethod
    def from_domain(cls, evaluation: HandEvaluation) -> "HandEvaluationModel":
        return cls(
            category=evaluation.category.label,
            category_rank=int(evaluation.category),
            score=evaluation.score,
            best_five=cards_to_labels(evaluation.best_five),
            description=evaluation.description,
        )


class EvaluateRequestModel(CamelModel):
    cards: List[str]


class EquityPlayerModel(CamelModel):
    player_id: str
    cards: Optional[List[str]] = None

    def to_domain(self) -> PlayerHand:
        return PlayerHand(self.player_id, None if self.cards is None else _cards(self.cards))


class EquityRequestModel(CamelModel):
    players: List[EquityPlayerModel]
    board: List[str] = Field(default_factory=list)
    dead_cards: List[str] = Field(default_factory=list)
    mode: EquityMode = EquityMode.AUTO
    samples: Optional[int] = Field(default=None, gt=0, le=MAX_EQUITY_SAMPLES)
    seed: Optional[int] = None


class EquityResultModel(CamelModel):
    player_id: str
    win_probability: float
    tie_probability: float
    lose_probability: float
    equity: float
    hand_category: Optional[str] = None


class EquityReportModel(CamelModel):
    players: List[EquityResultModel]
    mode: EquityMode
    sample_space: int
    samples_run: int
    dead_cards: List[str]

    @classmethod
    def from_domain(cls, report: EquityReport) -> "EquityReportModel":
        return cls(
            players=[
                EquityResultModel(
                    player_id=result.player_id,
                    win_probability=result.win_probability,
                    tie_probability=result.tie_probability,
                    lose_probability=result.lose_probability,
                    equity=result.equity,
                    hand_category=result.hand_category.label if result.hand_category else None,
                )
                for result in report.players
            ],
            mode=report.mode,
            sample_space=report.sample_space,
            samples_run=report.samples_run,
            dead_cards=cards_to_labels(report.dead_cards),
        )


class ReplayActionModel(CamelModel):
    phase: Phase
    player_id: str
    action: ActionKind
    amount: Optional[int] = None
    pot_after: int
    timestamp: int = 0

    def to_domain(self) -> ReplayAction:
        return ReplayAction(
            phase=self.phase,
            player_id=self.player_id,
            action=self.action,
            pot_after=self.pot_after,
            amount=self.amount,
            timestamp=self.timestamp,
        )

    @classmethod
    def from_domain(cls, action: ReplayAction) -> "ReplayActionModel":
        return cls(
            phase=action.phase,
            player_id=action.player_id,
            action=action.action,
            amount=action.amount,
            pot_after=action.pot_after,
            timestamp=action.timestamp,
        )


class ReplayPlayerModel(CamelModel):
    player_id: str
    name: str
    seat: int
    starting_stack: int
    hole_cards: Optional[List[str]] = None


class HandLogModel(CamelModel):
    hand_id: str
    players: List[ReplayPlayerModel]
    small_blind_player: str
    big_blind_player: str
    small_blind: int
    big_blind: int
    community_cards: List[str] = Field(default_factory=list)
    actions: List[ReplayActionModel] = Field(default_factory=list)
    button_player: Optional[str] = None
    started_at: Optional[datetime] = None
    table_name: str = ""

    def to_domain(self) -> HandLog:
        return HandLog(
            hand_id=self.hand_id,
            players=tuple(
                ReplayPlayer(
                    player_id=player.player_id,
                    name=player.name,
                    seat=player.seat,
                    starting_stack=player.starting_stack,
                    hole_cards=None if player.hole_cards is None else _cards(player.hole_cards),
                )
                for player in self.players
            ),
            small_blind_player=self.small_blind_player,
            big_blind_player=self.big_blind_player,
            small_blind=self.small_blind,
            big_blind=self.big_blind,
            community_cards=_cards(self.community_cards),
            actions=tuple(action.to_domain() for action in self.actions),
            button_player=self.button_player,
            started_at=self.started_at,
            table_name=self.table_name,
        )

    @classmethod
    def from_domain(cls, log: HandLog) -> "HandLogModel":
        return cls(
            hand_id=log.hand_id,
            players=[
                ReplayPlayerModel(
                    player_id=player.player_id,
                    name=player.name,
                    seat=player.seat,
                    starting_stack=player.starting_stack,
                    hole_cards=None if player.hole_cards is None else cards_to_labels(player.hole_cards),
                )
                for player in log.players
            ],
            small_blind_player=log.small_blind_player,
            big_blind_player=log.big_blind_player,
            small_blind=log.small_blind,
            big_blind=log.big_blind,
            community_cards=cards_to_labels(log.community_cards),
            actions=[ReplayActionModel.from_domain(action) for action in log.actions],
            button_player=log.button_player,
            started_at=log.started_at,
            table_name=log.table_name,
        )


class ReplaySnapshotRequestModel(CamelModel):
    hand: HandLogModel
    step: int


class PlayerSnapshotModel(CamelModel):
    player_id: str
    stack: int
    bet: int
    is_all_in: bool


class TableStateSnapshotModel(CamelModel):
    step: int
    phase: Phase
    community_cards: List[str]
    pot: int
    players: List[PlayerSnapshotModel]
    folded_players: List[str]
    last_action: Optional[ReplayActionModel] = None
    next_to_act: Optional[str] = None

    @classmethod
    def from_domain(cls, snapshot: TableStateSnapshot) -> "TableStateSnapshotModel":
        return cls(
            step=snapshot.step,
            phase=snapshot.phase,
            community_cards=cards_to_labels(snapshot.community_cards),
            pot=snapshot.pot,
            players=[
                PlayerSnapshotModel(
                    player_id=player.player_id,
                    stack=player.stack,
                    bet=player.bet,
                    is_all_in=player.is_all_in,
                )
                for player in snapshot.players
            ],
            folded_players=sorted(snapshot.folded_players),
            last_action=ReplayActionModel.from_domain(snapshot.last_action) if snapshot.last_action else None,
            next_to_act=snapshot.next_to_act,
        )


class ScenarioPlayerModel(CamelModel):
    player_id: str
    player_name: str
    cards: List[str]
    stack: int
    contribution: int


class AllInScenarioModel(CamelModel):
    players: List[ScenarioPlayerModel]
    community_cards: List[str] = Field(default_factory=list)
    pot: int
    phase: Phase
    seed: Optional[int] = None

    def to_domain(self) -> AllInScenario:
        return AllInScenario(
            players=tuple(
                ScenarioPlayer(
                    player_id=player.player_id,
                    name=player.player_name,
                    cards=_cards(player.cards),
                    stack=player.stack,
                    contribution=player.contribution,
                )
                for player in self.players
            ),
            community_cards=_cards(self.community_cards),
            pot=self.pot,
            phase=self.phase,
        )


class CashoutOfferModel(CamelModel):
    player_id: str
    player_name: str
    current_equity: float
    pot_share: float
    cashout_amount: int
    expected_value: float
    risk_reduction: float
    recommendation: Literal["accept", "decline", "neutral"]

    @classmethod
    def from_domain(cls, offer: CashoutOffer) -> "CashoutOfferModel":
        return cls(
            player_id=offer.player_id,
            player_name=offer.player_name,
            current_equity=offer.current_equity,
            pot_share=offer.pot_share,
            cashout_amount=offer.cashout_amount,
            expected_value=offer.expected_value,
            risk_reduction=offer.risk_reduction,
            recommendation=offer.recommendation.value,
        )


class InsuranceRequestModel(CamelModel):
    equity: float = Field(ge=0.0, le=1.0)
    pot_share: float = Field(ge=0.0)
    coverages: Optional[List[float]] = None


class InsuranceOptionModel(CamelModel):
    coverage: float
    premium: int
    payout: int
    ev: float
    break_even_equity: float

    @classmethod
    def from_domain(cls, option: InsuranceOption) -> "InsuranceOptionModel":
        return cls(
            coverage=option.coverage,
            premium=option.premium,
            payout=option.payout,
            ev=option.ev,
            break_even_equity=option.break_even_equity,
        )


class RabbitHuntRequestModel(CamelModel):
    folded_hole: List[str]
    community_cards: List[str] = Field(default_factory=list)
    used_cards: List[str] = Field(default_factory=list)
    winning_hole: List[str]
    seed: Optional[int] = None
    include_odds: bool = False


class RabbitHuntOddsModel(CamelModel):
    completions: int
    category_counts: Dict[str, int]
    win_probability: Optional[float] = None

    @classmethod
    def from_domain(cls, odds: RabbitHuntOdds) -> "RabbitHuntOddsModel":
        return cls(
            completions=odds.completions,
            category_counts={category.label: count for category, count in sorted(odds.category_counts.items())},
            win_probability=odds.win_probability,
        )


class RabbitHuntResultModel(CamelModel):
    remaining_cards: List[str]
    board: List[str]
    best_hand: HandEvaluationModel
    winning_hand: HandEvaluationModel
    would_have_won: bool
    description: str
    odds: Optional[RabbitHuntOddsModel] = None

    @classmethod
    def from_domain(cls, result: RabbitHuntResult, odds: RabbitHuntOdds | None = None) -> "RabbitHuntResultModel":
        return cls(
            remaining_cards=cards_to_labels(result.remaining_cards),
            board=cards_to_labels(result.board),
            best_hand=HandEvaluationModel.from_domain(result.best_hand),
            winning_hand=HandEvaluationModel.from_domain(result.winning_hand),
            would_have_won=result.would_have_won,
            description=result.description,
            odds=RabbitHuntOddsModel.from_domain(odds) if odds else None,
        )


class RunItTwiceRequestModel(CamelModel):
    holdings: Dict[str, List[str]]
    community_cards: List[str] = Field(default_factory=list)
    dead_cards: List[str] = Field(default_factory=list)
    pot: int = Field(ge=0)
    times: int = Field(default=2, ge=1, le=4)
    seed: Optional[int] = None


class RunOutcomeModel(CamelModel):
    run_number: int
    community_cards: List[str]
    winners: List[str]
    best_hand: HandEvaluationModel
    pot_share: int
    payouts: Dict[str, int]

    @classmethod
    def from_domain(cls, run: RunOutcome) -> "RunOutcomeModel":
        return cls(
            run_number=run.run_number,
            community_cards=cards_to_labels(run.community_cards),
            winners=list(run.winners),
            best_hand=HandEvaluationModel.from_domain(run.best_hand),
            pot_share=run.pot_share,
            payouts=dict(run.payouts),
        )


class CombinedResultModel(CamelModel):
    swept: bool
    split_pot: bool
    run_winners: List[List[str]]


class RunItTwiceResultModel(CamelModel):
    runs: List[RunOutcomeModel]
    combined_result: CombinedResultModel
    payouts: Dict[str, int]

    @classmethod
    def from_domain(cls, result: RunItTwiceResult) -> "RunItTwiceResultModel":
        combined = result.combined_result
        return cls(
            runs=[RunOutcomeModel.from_domain(run) for run in result.runs],
            combined_result=CombinedResultModel(
                swept=combined.swept,
                split_pot=combined.split_pot,
                run_winners=[list(winners) for winners in combined.run_winners],
            ),
            payouts=dict(result.payouts),
        )


class BadBeatRequestModel(CamelModel):
    total_jackpot: int = Field(ge=0)
    loser_id: str
    winner_id: str
    table_player_ids: List[str] = Field(default_factory=list)
    losing_hole: Optional[List[str]] = None
    winning_hole: Optional[List[str]] = None
    board: Optional[List[str]] = None


class JackpotPayoutModel(CamelModel):
    player_id: str
    amount: int
    share: float
    role: JackpotRole


class BadBeatResponseModel(CamelModel):
    qualifies: bool
    rule: str
    payouts: List[JackpotPayoutModel] = Field(default_factory=list)
    house_remainder: int = 0

    @classmethod
    def from_domain(cls, rule: str, distribution: JackpotDistribution | None) -> "BadBeatResponseModel":
        if distribution is None:
            return cls(qualifies=False, rule=rule)
        return cls(
            qualifies=True,
            rule=rule,
            payouts=[
                JackpotPayoutModel(
                    player_id=payout.player_id,
                    amount=payout.amount,
                    share=payout.share,
                    role=payout.role,
                )
                for payout in distribution.payouts
            ],
            house_remainder=distribution.house_remainder,
        )


class HistoryWinnerModel(CamelModel):
    player_id: str
    amount: int
    hand_rank: str = ""


class HandHistoryRequestModel(CamelModel):
    hand: HandLogModel
    winners: Optional[List[HistoryWinnerModel]] = None
    rake: Optional[int] = Field(default=None, ge=0)
    format: Literal["text", "json"] = "text"


class HandHistoryModel(CamelModel):
    hand: HandLogModel
    pot: int
    rake: int
    winners: List[HistoryWinnerModel]


class HandHistoryTextModel(CamelModel):
    hand_id: str
    text: str


class StraddleRequestModel(CamelModel):
    big_blind: int = Field(gt=0)
    straddle_amount: int = Field(gt=0)
    average_pot_multiplier: float = Field(default=5.0, gt=0)
    win_rate: float = Field(default=0.25, ge=0.0, le=1.0)


class StraddleEVModel(CamelModel):
    ev: float
    break_even_win_rate: float
    recommendation: Literal["profitable", "marginal", "unprofitable"]

    @classmethod
    def from_domain(cls, result: StraddleEV) -> "StraddleEVModel":
        return cls(
            ev=result.ev,
            break_even_win_rate=result.break_even_win_rate,
            recommendation=result.recommendation.value,
        )


class RabbitHuntCostRequestModel(CamelModel):
    pot: int = Field(ge=0)
    community_cards: List[str] = Field(default_factory=list)


class RabbitHuntCostModel(CamelModel):
    cost: int
    cards_to_reveal: int


class RunItTwiceEligibilityRequestModel(CamelModel):
    community_cards: List[str] = Field(default_factory=list)
    active_players: int = Field(ge=0)
    all_in_players: int = Field(ge=0)


class RunItTwiceEligibilityModel(CamelModel):
    allowed: bool


class VarianceReductionRequestModel(CamelModel):
    runs: int = Field(ge=1)
    equity: float = Field(ge=0.0, le=1.0)


class VarianceReductionModel(CamelModel):
    runs: int
    single_run_variance: float
    multi_run_variance: float
    reduction_percent: float

    @classmethod
    def from_domain(cls, result: VarianceReduction) -> "VarianceReductionModel":
        return cls(
            runs=result.runs,
            single_run_variance=result.single_run_variance,
            multi_run_variance=result.multi_run_variance,
            reduction_percent=result.reduction_percent,
        )


class AnalyticsRequestModel(CamelModel):
    hands: List[HandLogModel]
    min_hands: int = Field(default=100, ge=0)


class LeakModel(CamelModel):
    category: str
    severity: Literal["low", "medium", "high", "critical"]
    description: str
    suggestion: str
    impact_bb: float


class PlayerStatsModel(CamelModel):
    player_id: str
    hands_played: int
    hands_won: int
    total_profit: int
    big_blinds_won: float
    win_rate: float
    vpip: float
    pfr: float
    three_bet: float
    aggression_factor: Optional[float] = None
    went_to_showdown: float
    won_at_showdown: float
    player_type: PlayerType
    leaks: List[LeakModel] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, stats: PlayerStats, player_type: PlayerType, leaks: List[Leak]) -> "PlayerStatsModel":
        return cls(
            player_id=stats.player_id,
            hands_played=stats.hands_played,
            hands_won=stats.hands_won,
            total_profit=stats.total_profit,
            big_blinds_won=stats.big_blinds_won,
            win_rate=stats.win_rate,
            vpip=stats.vpip,
            pfr=stats.pfr,
            three_bet=stats.three_bet,
            aggression_factor=stats.aggression_factor,
            went_to_showdown=stats.went_to_showdown,
            won_at_showdown=stats.won_at_showdown,
            player_type=player_type,
            leaks=[
                LeakModel(
                    category=leak.category,
                    severity=leak.severity.value,
                    description=leak.description,
                    suggestion=leak.suggestion,
                    impact_bb=leak.impact_bb,
                )
                for leak in leaks
            ],
        )
