"""Records shared by the lot engine, the treatment calculators and the form generators."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TaxTreatment(str, Enum):
    CAPITAL_GAINS = "capital_gains"
    GAMBLING = "gambling"
    BUSINESS = "business"


class CostBasisMethod(str, Enum):
    FIFO = "fifo"
    LIFO = "lifo"
    SPECIFIC_ID = "specific_id"


class HoldingPeriod(str, Enum):
    SHORT_TERM = "short-term"
    LONG_TERM = "long-term"


class TransactionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    SETTLEMENT = "SETTLEMENT"
    REDEEM = "REDEEM"


class Outcome(str, Enum):
    YES = "YES"
    NO = "NO"


class Form8949Box(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"
    F = "F"


DISPOSAL_TYPES = frozenset(
    {TransactionType.SELL, TransactionType.SETTLEMENT, TransactionType.REDEEM}
)


@dataclass(frozen=True, slots=True)
class Transaction:
    id: str
    market_id: str
    market_title: str
    outcome: Outcome
    type: TransactionType
    quantity: float
    price_per_share: float
    total_amount: float
    fee: float
    timestamp: datetime

    @property
    def position_key(self) -> tuple[str, Outcome]:
        return (self.market_id, self.outcome)


@dataclass(slots=True)
class TaxLot:
    id: str
    transaction_id: str
    market_id: str
    market_title: str
    outcome: Outcome
    quantity: float
    original_quantity: float
    cost_basis_per_share: float
    acquired_at: datetime
    holding_period: HoldingPeriod = HoldingPeriod.SHORT_TERM  # fixed at disposal
    is_open: bool = True
    disposed_at: datetime | None = None
    proceeds_per_share: float | None = None
    gain_loss: float | None = None

    @property
    def position_key(self) -> tuple[str, Outcome]:
        return (self.market_id, self.outcome)


@dataclass(frozen=True, slots=True)
class DisposedLot:
    lot_id: str
    quantity: float
    cost_basis_per_share: float
    proceeds_per_share: float
    gain_loss: float
    holding_period: HoldingPeriod
    acquired_at: datetime
    disposed_at: datetime


@dataclass(frozen=True, slots=True)
class TaxEvent:
    transaction: Transaction
    lots: tuple[DisposedLot, ...]
    total_proceeds: float
    total_cost_basis: float
    total_gain_loss: float
    holding_period: HoldingPeriod
    is_settlement: bool


@dataclass(frozen=True, slots=True)
class TaxSummary:
    treatment: TaxTreatment
    tax_year: int
    total_proceeds: float
    total_cost_basis: float
    total_gain_loss: float
    short_term_gains: float
    short_term_losses: float
    long_term_gains: float
    long_term_losses: float
    net_short_term: float
    net_long_term: float
    estimated_tax_liability: float = 0.0
    # capital gains
    loss_carryforward: float | None = None
    net_capital_loss_deduction: float | None = None
    # gambling
    gross_winnings: float | None = None
    deductible_losses: float | None = None
    # business
    self_employment_tax: float | None = None
    net_business_income: float | None = None


@dataclass(frozen=True, slots=True)
class Form8949Entry:
    description: str
    date_acquired: datetime
    date_sold: datetime
    proceeds: float
    cost_basis: float
    adjustments: float
    gain_loss: float
    holding_period: HoldingPeriod
    box: Form8949Box


@dataclass(frozen=True, slots=True)
class ScheduleDSummary:
    short_term_from_form8949: float
    long_term_from_form8949: float
    net_short_term_gain_loss: float
    net_long_term_gain_loss: float
    net_capital_gain_loss: float
    capital_loss_deduction: float
    loss_carryforward_to_next_year: float


@dataclass(frozen=True, slots=True)
class Disposition:
    lot_id: str
    market_id: str
    market_title: str
    outcome: Outcome
    quantity: float
    cost_basis_per_share: float
    proceeds_per_share: float
    acquired_at: datetime
    disposed_at: datetime
    holding_period: HoldingPeriod
    gain_loss: float
    total_cost_basis: float
    total_proceeds: float


@dataclass(frozen=True, slots=True)
class CapitalGainsSummary:
    short_term_gains: float
    short_term_losses: float
    short_term_net: float
    long_term_gains: float
    long_term_losses: float
    long_term_net: float
    total_net: float
    capital_loss_deduction: float
    carryforward_loss: float


@dataclass(frozen=True, slots=True)
class GamblingIncomeSummary:
    gross_winnings: float
    total_losses: float
    deductible_losses: float
    net_gambling_income: float
    requires_itemizing: bool


@dataclass(frozen=True, slots=True)
class BusinessIncomeSummary:
    gross_income: float
    total_expenses: float
    net_business_income: float
    self_employment_tax: float
    self_employment_tax_rate: float


@dataclass(slots=True)
class TaxReport:
    user_id: str
    tax_year: int
    treatment: TaxTreatment
    cost_basis_method: CostBasisMethod
    generated_at: datetime
    dispositions: list[Disposition]
    total_transactions: int
    total_volume: float
    total_fees: float
    win_rate: float
    open_positions_count: int
    open_positions_value: float
    capital_gains: CapitalGainsSummary | None = None
    gambling: GamblingIncomeSummary | None = None
    business: BusinessIncomeSummary | None = None
    form8949_lines: list[Form8949Entry] | None = None


@dataclass(frozen=True, slots=True)
class TreatmentComparison:
    tax_year: int
    capital_gains: CapitalGainsSummary
    gambling: GamblingIncomeSummary
    business: BusinessIncomeSummary
    recommendation: TaxTreatment
    recommendation_reason: str


@dataclass(frozen=True, slots=True)
class CalculationResult:
    events: list[TaxEvent]
    summary: TaxSummary
