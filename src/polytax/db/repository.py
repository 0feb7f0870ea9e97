"""Row <-> record translation and queries for transactions and persisted tax lots."""

from __future__ import annotations

from datetime import datetime, time
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from polytax.analytics.types import (
    CostBasisMethod,
    HoldingPeriod,
    TaxLot,
    TaxTreatment,
    Transaction,
)
from polytax.db.models import TaxLotRecord, TransactionRecord, UserSettingsRecord
from polytax.utils.dates import year_bounds


def transaction_from_record(record: TransactionRecord) -> Transaction:
    return Transaction(
        id=record.id,
        market_id=record.market_id,
        market_title=record.market_title or "",
        outcome=record.outcome,
        type=record.type,
        quantity=float(record.quantity),
        price_per_share=float(record.price_per_share),
        total_amount=float(record.total_amount),
        fee=float(record.fee or 0.0),
        timestamp=record.timestamp,
    )


def lot_from_record(record: TaxLotRecord, market_title: str = "") -> TaxLot:
    return TaxLot(
        id=record.id,
        transaction_id=record.transaction_id,
        market_id=record.market_id,
        market_title=market_title,
        outcome=record.outcome,
        quantity=float(record.quantity),
        original_quantity=float(record.original_quantity),
        cost_basis_per_share=float(record.cost_basis_per_share),
        acquired_at=record.acquired_at,
        holding_period=record.holding_period or HoldingPeriod.SHORT_TERM,
        is_open=bool(record.is_open),
        disposed_at=record.disposed_at,
        proceeds_per_share=(
            float(record.proceeds_per_share) if record.proceeds_per_share is not None else None
        ),
        gain_loss=float(record.gain_loss) if record.gain_loss is not None else None,
    )


def add_transaction(
    session: Session, user_id: str, tx: Transaction, import_source: str = "manual"
) -> TransactionRecord:
    record = TransactionRecord(
        id=tx.id,
        user_id=user_id,
        market_id=tx.market_id,
        market_title=tx.market_title,
        outcome=tx.outcome,
        type=tx.type,
        quantity=tx.quantity,
        price_per_share=tx.price_per_share,
        total_amount=tx.total_amount,
        fee=tx.fee,
        timestamp=tx.timestamp,
        import_source=import_source,
    )
    session.add(record)
    return record


def add_transactions(
    session: Session,
    user_id: str,
    transactions: Iterable[Transaction],
    import_source: str = "manual",
) -> int:
    count = 0
    for tx in transactions:
        add_transaction(session, user_id, tx, import_source=import_source)
        count += 1
    session.flush()
    return count


def load_transactions(
    session: Session, user_id: str, tax_year: int | None = None
) -> list[Transaction]:
    stmt = select(TransactionRecord).where(TransactionRecord.user_id == user_id)
    if tax_year is not None:
        start, end = year_bounds(tax_year)
        stmt = stmt.where(
            TransactionRecord.timestamp >= datetime.combine(start, time.min),
            TransactionRecord.timestamp <= datetime.combine(end, time.max),
        )
    stmt = stmt.order_by(TransactionRecord.timestamp.asc(), TransactionRecord.created_at.asc())
    return [transaction_from_record(row) for row in session.scalars(stmt).all()]


def _market_titles(session: Session, user_id: str) -> dict[str, str]:
    stmt = select(TransactionRecord.market_id, TransactionRecord.market_title).where(
        TransactionRecord.user_id == user_id
    )
    titles: dict[str, str] = {}
    for market_id, title in session.execute(stmt).all():
        if title and market_id not in titles:
            titles[market_id] = title
    return titles


def load_tax_lots(session: Session, user_id: str, open_only: bool = False) -> list[TaxLot]:
    stmt = select(TaxLotRecord).where(TaxLotRecord.user_id == user_id)
    if open_only:
        stmt = stmt.where(TaxLotRecord.is_open.is_(True))
    stmt = stmt.order_by(TaxLotRecord.acquired_at.asc(), TaxLotRecord.id.asc())
    titles = _market_titles(session, user_id)
    return [
        lot_from_record(row, market_title=titles.get(row.market_id, ""))
        for row in session.scalars(stmt).all()
    ]


def save_tax_lots(session: Session, user_id: str, lots: Iterable[TaxLot]) -> int:
    """Insert or update lot rows; returns the number of rows written."""
    written = 0
    for lot in lots:
        record = session.get(TaxLotRecord, lot.id)
        if record is None:
            record = TaxLotRecord(id=lot.id, user_id=user_id, transaction_id=lot.transaction_id)
            session.add(record)
        record.market_id = lot.market_id
        record.outcome = lot.outcome
        record.quantity = lot.quantity
        record.original_quantity = lot.original_quantity
        record.cost_basis_per_share = lot.cost_basis_per_share
        record.acquired_at = lot.acquired_at
        record.disposed_at = lot.disposed_at
        record.proceeds_per_share = lot.proceeds_per_share
        record.gain_loss = lot.gain_loss
        record.holding_period = lot.holding_period if lot.disposed_at is not None else None
        record.is_open = lot.is_open
        written += 1
    session.flush()
    return written


def get_user_settings(session: Session, user_id: str) -> UserSettingsRecord | None:
    stmt = select(UserSettingsRecord).where(UserSettingsRecord.user_id == user_id)
    return session.scalars(stmt).first()


def save_user_settings(
    session: Session,
    user_id: str,
    tax_year: int,
    default_tax_treatment: TaxTreatment | str = TaxTreatment.CAPITAL_GAINS,
    default_cost_basis: CostBasisMethod | str = CostBasisMethod.FIFO,
) -> UserSettingsRecord:
    record = get_user_settings(session, user_id)
    if record is None:
        record = UserSettingsRecord(user_id=user_id)
        session.add(record)
    record.tax_year = int(tax_year)
    record.default_tax_treatment = TaxTreatment(default_tax_treatment)
    record.default_cost_basis = CostBasisMethod(default_cost_basis)
    session.flush()
    return record
