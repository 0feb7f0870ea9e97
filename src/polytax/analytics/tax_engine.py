"""Chronological replay of prediction-market transactions into tax events."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from typing import Iterable, Mapping, Sequence

from polytax.analytics.lots import (
    LOT_EPSILON,
    apply_disposal,
    disposal_proceeds_per_share,
    resolve_method,
    sort_lots,
)
from polytax.analytics.treatments import TaxRates, summarize_events
from polytax.analytics.types import (
    DISPOSAL_TYPES,
    CalculationResult,
    CostBasisMethod,
    HoldingPeriod,
    Outcome,
    TaxEvent,
    TaxLot,
    TaxTreatment,
    Transaction,
    TransactionType,
)
from polytax.utils.logging import get_logger

logger = get_logger(__name__)


def lot_id_for(tx: Transaction) -> str:
    return f"lot-{tx.id}"


class TaxCalculator:
    """Replays transactions for one (treatment, cost basis method, tax year).

    Open lots are pooled per ``(market_id, outcome)``. Every disposal updates the
    pools, but only disposals dated inside ``tax_year`` are reported, so holdings
    carry across year boundaries.
    """

    def __init__(
        self,
        treatment: TaxTreatment | str,
        cost_basis_method: CostBasisMethod | str,
        tax_year: int,
        rates: TaxRates | None = None,
        specific_lot_ids: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        self.treatment = TaxTreatment(treatment)
        self.cost_basis_method = resolve_method(cost_basis_method)
        self.tax_year = int(tax_year)
        self.rates = rates or TaxRates()
        self.specific_lot_ids = dict(specific_lot_ids or {})
        self._open_lots: dict[tuple[str, Outcome], list[TaxLot]] = defaultdict(list)
        self.closed_lots: list[TaxLot] = []
        self.skipped_transactions: list[Transaction] = []

    def calculate(self, transactions: Iterable[Transaction]) -> CalculationResult:
        self._open_lots.clear()
        self.closed_lots = []
        self.skipped_transactions = []

        events: list[TaxEvent] = []
        for tx in sorted(transactions, key=lambda item: item.timestamp):
            event = self.process_transaction(tx)
            if event is not None and tx.timestamp.year == self.tax_year:
                events.append(event)

        summary = summarize_events(self.treatment, events, self.tax_year, self.rates)
        return CalculationResult(events=events, summary=summary)

    def process_transaction(self, tx: Transaction) -> TaxEvent | None:
        if tx.quantity <= 0:
            logger.debug("Ignoring %s %s with non-positive quantity", tx.type.value, tx.id)
            return None

        if tx.type == TransactionType.BUY:
            self._open_lots[tx.position_key].append(self._create_lot(tx))
            return None

        if tx.type not in DISPOSAL_TYPES:
            raise ValueError(f"Unsupported transaction type: {tx.type}")

        pool = self._open_lots.get(tx.position_key)
        if not pool:
            # Upstream gaps (duplicate or out-of-order imports) leave disposals
            # with nothing to match; they are skipped, not raised.
            logger.debug(
                "Skipping %s %s: no open lots for %s/%s",
                tx.type.value,
                tx.id,
                tx.market_id,
                tx.outcome.value,
            )
            self.skipped_transactions.append(tx)
            return None

        return self._dispose(tx, pool)

    def open_lots(self) -> list[TaxLot]:
        lots: list[TaxLot] = []
        for pool in self._open_lots.values():
            lots.extend(lot for lot in pool if lot.quantity > LOT_EPSILON)
        return lots

    @staticmethod
    def _create_lot(tx: Transaction) -> TaxLot:
        return TaxLot(
            id=lot_id_for(tx),
            transaction_id=tx.id,
            market_id=tx.market_id,
            market_title=tx.market_title,
            outcome=tx.outcome,
            quantity=tx.quantity,
            original_quantity=tx.quantity,
            cost_basis_per_share=tx.price_per_share,
            acquired_at=tx.timestamp,
        )

    def _dispose(self, tx: Transaction, pool: list[TaxLot]) -> TaxEvent:
        proceeds_per_share = disposal_proceeds_per_share(tx)
        sorted_lots = sort_lots(
            pool,
            self.cost_basis_method,
            self.specific_lot_ids.get(tx.id),
            include_unlisted=True,
        )
        disposed, remaining_lots = apply_disposal(
            sorted_lots,
            tx.quantity,
            proceeds_per_share,
            tx.timestamp,
            method=self.cost_basis_method,
        )

        by_id = {lot.id: lot for lot in pool}
        remaining_ids = {lot.id for lot in remaining_lots}
        for portion in disposed:
            if portion.lot_id in remaining_ids:
                continue
            closed = by_id[portion.lot_id]
            self.closed_lots.append(
                replace(
                    closed,
                    quantity=0.0,
                    is_open=False,
                    disposed_at=tx.timestamp,
                    proceeds_per_share=proceeds_per_share,
                    gain_loss=portion.gain_loss,
                    holding_period=portion.holding_period,
                )
            )
        self._open_lots[tx.position_key] = remaining_lots

        holding_period = (
            HoldingPeriod.LONG_TERM
            if all(portion.holding_period == HoldingPeriod.LONG_TERM for portion in disposed)
            else HoldingPeriod.SHORT_TERM
        )
        return TaxEvent(
            transaction=tx,
            lots=tuple(disposed),
            total_proceeds=sum(p.proceeds_per_share * p.quantity for p in disposed),
            total_cost_basis=sum(p.cost_basis_per_share * p.quantity for p in disposed),
            total_gain_loss=sum(p.gain_loss for p in disposed),
            holding_period=holding_period,
            is_settlement=tx.type == TransactionType.SETTLEMENT,
        )


def calculate(
    transactions: Iterable[Transaction],
    treatment: TaxTreatment | str,
    cost_basis_method: CostBasisMethod | str,
    tax_year: int,
    rates: TaxRates | None = None,
    specific_lot_ids: Mapping[str, Sequence[str]] | None = None,
) -> CalculationResult:
    calculator = TaxCalculator(
        treatment,
        cost_basis_method,
        tax_year,
        rates=rates,
        specific_lot_ids=specific_lot_ids,
    )
    return calculator.calculate(transactions)
