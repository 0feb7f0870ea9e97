from __future__ import annotations

from datetime import datetime
from typing import Callable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from polytax.analytics.types import Outcome, TaxLot, Transaction, TransactionType
from polytax.db.models import Base


@pytest.fixture
def db_session() -> Session:
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_tx() -> Callable[..., Transaction]:
    def _make(
        tx_id: str,
        tx_type: str,
        quantity: float,
        price: float,
        timestamp: datetime,
        market_id: str = "m-election",
        outcome: str = "YES",
        market_title: str = "Will the incumbent win?",
        fee: float = 0.0,
    ) -> Transaction:
        return Transaction(
            id=tx_id,
            market_id=market_id,
            market_title=market_title,
            outcome=Outcome(outcome),
            type=TransactionType(tx_type),
            quantity=quantity,
            price_per_share=price,
            total_amount=quantity * price,
            fee=fee,
            timestamp=timestamp,
        )

    return _make


@pytest.fixture
def make_lot() -> Callable[..., TaxLot]:
    def _make(
        lot_id: str,
        quantity: float,
        cost_basis: float,
        acquired_at: datetime,
        market_id: str = "m-election",
        outcome: str = "YES",
    ) -> TaxLot:
        return TaxLot(
            id=lot_id,
            transaction_id=f"tx-{lot_id}",
            market_id=market_id,
            market_title="Will the incumbent win?",
            outcome=Outcome(outcome),
            quantity=quantity,
            original_quantity=quantity,
            cost_basis_per_share=cost_basis,
            acquired_at=acquired_at,
        )

    return _make
