from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SqlEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from polytax.analytics.types import (
    CostBasisMethod,
    HoldingPeriod,
    Outcome,
    TaxTreatment,
    TransactionType,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class TransactionRecord(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_tx_user_timestamp", "user_id", "timestamp"),
        Index("ix_tx_user_market", "user_id", "market_id"),
        UniqueConstraint("user_id", "transaction_hash", name="uq_tx_user_hash"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    market_id: Mapped[str] = mapped_column(String(255), nullable=False)
    market_title: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    outcome: Mapped[Outcome] = mapped_column(
        SqlEnum(Outcome, native_enum=False), nullable=False
    )
    type: Mapped[TransactionType] = mapped_column(
        SqlEnum(TransactionType, native_enum=False), nullable=False, index=True
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    price_per_share: Mapped[float] = mapped_column(Float, nullable=False)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    transaction_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    import_source: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class TaxLotRecord(Base):
    __tablename__ = "tax_lots"
    __table_args__ = (
        Index("ix_lot_user_open", "user_id", "is_open"),
        Index("ix_lot_user_market_outcome", "user_id", "market_id", "outcome"),
    )

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    transaction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False
    )
    market_id: Mapped[str] = mapped_column(String(255), nullable=False)
    outcome: Mapped[Outcome] = mapped_column(
        SqlEnum(Outcome, native_enum=False), nullable=False
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    original_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    cost_basis_per_share: Mapped[float] = mapped_column(Float, nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    disposed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    proceeds_per_share: Mapped[float | None] = mapped_column(Float, nullable=True)
    gain_loss: Mapped[float | None] = mapped_column(Float, nullable=True)
    holding_period: Mapped[HoldingPeriod | None] = mapped_column(
        SqlEnum(HoldingPeriod, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class UserSettingsRecord(Base):
    __tablename__ = "user_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    default_tax_treatment: Mapped[TaxTreatment] = mapped_column(
        SqlEnum(TaxTreatment, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TaxTreatment.CAPITAL_GAINS,
    )
    default_cost_basis: Mapped[CostBasisMethod] = mapped_column(
        SqlEnum(CostBasisMethod, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=CostBasisMethod.FIFO,
    )
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )
