"""Persistence-backed report assembly on top of ``process_disposition``.

Unlike the replay engine, this path runs against lots stored between
requests. A disposal that the stored lots cannot cover is logged and left out
of the report instead of aborting it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Sequence

from sqlalchemy.orm import Session

from polytax.analytics.lots import (
    InsufficientLotsError,
    disposal_proceeds_per_share,
    process_disposition,
)
from polytax.analytics.tax_engine import lot_id_for
from polytax.analytics.tax_year_report import compare_treatments, generate_tax_report
from polytax.analytics.treatments import DEFAULT_RATES, TaxRates
from polytax.analytics.types import (
    DISPOSAL_TYPES,
    CostBasisMethod,
    Disposition,
    TaxLot,
    TaxReport,
    TaxTreatment,
    Transaction,
    TransactionType,
    TreatmentComparison,
)
from polytax.db.repository import (
    add_transaction,
    get_user_settings,
    load_tax_lots,
    load_transactions,
    save_tax_lots,
)
from polytax.utils.dates import year_bounds
from polytax.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReportResult:
    report: TaxReport
    comparison: TreatmentComparison | None = None
    skipped_transaction_ids: tuple[str, ...] = ()


def _working_lot_for_buy(tx: Transaction, lot_id: str | None = None) -> TaxLot:
    return TaxLot(
        id=lot_id or f"temp-{tx.id}",
        transaction_id=tx.id,
        market_id=tx.market_id,
        market_title=tx.market_title,
        outcome=tx.outcome,
        quantity=tx.quantity,
        original_quantity=tx.quantity,
        cost_basis_per_share=tx.price_per_share,
        acquired_at=tx.timestamp,
    )


def _carried_in_lots(
    session: Session,
    user_id: str,
    year_start: datetime,
    cost_basis_method: CostBasisMethod | str,
) -> list[TaxLot]:
    """Rebuild the open position as it stood at ``year_start``.

    Stored lots only keep their latest state, so a lot that a later
    ``record_disposition`` closed was still open on January 1. Earlier
    transactions are replayed instead; stored lots with no recorded
    transaction are taken as stored.
    """
    prior = [tx for tx in load_transactions(session, user_id) if tx.timestamp < year_start]
    replayed_ids = {tx.id for tx in prior}
    lots = [
        lot
        for lot in load_tax_lots(session, user_id)
        if lot.acquired_at < year_start and lot.transaction_id not in replayed_ids
    ]

    for tx in prior:
        if tx.quantity <= 0:
            continue
        if tx.type == TransactionType.BUY:
            lots.append(_working_lot_for_buy(tx, lot_id_for(tx)))
            continue
        if tx.type not in DISPOSAL_TYPES:
            continue
        try:
            _, lots = process_disposition(
                lots,
                tx.market_id,
                tx.outcome,
                tx.quantity,
                disposal_proceeds_per_share(tx, redeem_as_loss=True),
                tx.timestamp,
                cost_basis_method,
            )
        except InsufficientLotsError as exc:
            logger.debug("Prior-year %s %s left unmatched: %s", tx.type.value, tx.id, exc)

    return [lot for lot in lots if lot.is_open]


def build_tax_report(
    session: Session,
    user_id: str,
    tax_year: int,
    treatment: TaxTreatment | str | None = None,
    cost_basis_method: CostBasisMethod | str | None = None,
    compare: bool = False,
    rates: TaxRates = DEFAULT_RATES,
) -> ReportResult:
    """Replay the year's transactions against the lots carried into it.

    The carried-in position is rebuilt from the user's transactions before
    January 1 of ``tax_year``; buys inside the year open working lots that are
    never persisted.
    A treatment or method left as ``None`` comes from the user's stored
    settings, then defaults to capital gains with FIFO.
    """
    stored = get_user_settings(session, user_id)
    if treatment is None:
        treatment = stored.default_tax_treatment if stored else TaxTreatment.CAPITAL_GAINS
    if cost_basis_method is None:
        cost_basis_method = stored.default_cost_basis if stored else CostBasisMethod.FIFO

    year_start = datetime.combine(year_bounds(tax_year)[0], time.min)
    year_transactions = load_transactions(session, user_id, tax_year=tax_year)
    working_lots = _carried_in_lots(session, user_id, year_start, cost_basis_method)

    dispositions: list[Disposition] = []
    skipped: list[str] = []
    total_volume = 0.0
    total_fees = 0.0
    win_count = 0
    loss_count = 0

    for tx in year_transactions:
        total_volume += tx.total_amount
        total_fees += tx.fee

        if tx.type == TransactionType.BUY:
            working_lots.append(_working_lot_for_buy(tx))
            continue

        if tx.type not in DISPOSAL_TYPES:
            continue

        try:
            result, working_lots = process_disposition(
                working_lots,
                tx.market_id,
                tx.outcome,
                tx.quantity,
                disposal_proceeds_per_share(tx, redeem_as_loss=True),
                tx.timestamp,
                cost_basis_method,
            )
        except InsufficientLotsError as exc:
            logger.warning("Skipping %s %s: %s", tx.type.value, tx.id, exc)
            skipped.append(tx.id)
            continue

        dispositions.extend(result)
        for disposition in result:
            if disposition.gain_loss >= 0:
                win_count += 1
            else:
                loss_count += 1

    open_lots = [lot for lot in working_lots if lot.is_open]
    report = generate_tax_report(
        user_id,
        tax_year,
        dispositions,
        treatment,
        cost_basis_method,
        total_transactions=len(year_transactions),
        total_volume=total_volume,
        total_fees=total_fees,
        win_count=win_count,
        loss_count=loss_count,
        open_positions_count=len(open_lots),
        open_positions_value=sum(lot.quantity * lot.cost_basis_per_share for lot in open_lots),
        rates=rates,
    )
    comparison = compare_treatments(dispositions, tax_year, rates) if compare else None
    return ReportResult(
        report=report,
        comparison=comparison,
        skipped_transaction_ids=tuple(skipped),
    )


def record_buy(session: Session, user_id: str, tx: Transaction) -> TaxLot:
    if tx.type != TransactionType.BUY:
        raise ValueError(f"Expected a BUY transaction, got {tx.type.value}")
    add_transaction(session, user_id, tx)
    session.flush()
    lot = TaxLot(
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
    save_tax_lots(session, user_id, [lot])
    return lot


def record_disposition(
    session: Session,
    user_id: str,
    tx: Transaction,
    cost_basis_method: CostBasisMethod | str,
    specific_lot_ids: Sequence[str] | None = None,
) -> list[Disposition]:
    """Apply one disposal to the user's stored lots and persist the outcome.

    ``InsufficientLotsError`` propagates and nothing is written.
    """
    if tx.type not in DISPOSAL_TYPES:
        raise ValueError(f"Expected a disposal transaction, got {tx.type.value}")

    lots = load_tax_lots(session, user_id)
    dispositions, updated_lots = process_disposition(
        lots,
        tx.market_id,
        tx.outcome,
        tx.quantity,
        disposal_proceeds_per_share(tx, redeem_as_loss=True),
        tx.timestamp,
        cost_basis_method,
        specific_lot_ids,
    )
    add_transaction(session, user_id, tx)
    session.flush()
    touched = {d.lot_id for d in dispositions}
    save_tax_lots(session, user_id, [lot for lot in updated_lots if lot.id in touched])
    return dispositions
