"""Load already-normalized prediction-market transactions from CSV."""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd

from polytax.analytics.types import Outcome, Transaction, TransactionType
from polytax.utils.dates import parse_datetime

REQUIRED_COLUMNS = [
    "market_id",
    "outcome",
    "type",
    "quantity",
    "price_per_share",
    "timestamp",
]
TYPE_ALIASES = {
    "B": "BUY",
    "S": "SELL",
    "SETTLE": "SETTLEMENT",
    "RESOLVE": "SETTLEMENT",
    "REDEMPTION": "REDEEM",
}


def _normalize_column(name: Any) -> str:
    return str(name).strip().lower().replace(" ", "_").replace("-", "_")


def _text(value: Any) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def _number(value: Any, default: float | None = None) -> float:
    text = _text(value).replace("$", "").replace(",", "")
    if not text:
        if default is None:
            raise ValueError("missing number")
        return default
    return float(text)


def parse_transaction_row(row: dict[str, Any], row_number: int) -> Transaction:
    tx_type = _text(row.get("type")).upper()
    tx_type = TYPE_ALIASES.get(tx_type, tx_type)
    quantity = abs(_number(row.get("quantity")))
    price = _number(row.get("price_per_share"))
    total_amount = _number(row.get("total_amount"), default=quantity * price)

    market_id = _text(row.get("market_id"))
    if not market_id:
        raise ValueError("market_id is empty")

    return Transaction(
        id=_text(row.get("id")) or f"row-{row_number}",
        market_id=market_id,
        market_title=_text(row.get("market_title")),
        outcome=Outcome(_text(row.get("outcome")).upper()),
        type=TransactionType(tx_type),
        quantity=quantity,
        price_per_share=price,
        total_amount=total_amount,
        fee=_number(row.get("fee"), default=0.0),
        timestamp=parse_datetime(_text(row.get("timestamp"))),
    )


def load_transactions_csv(
    file_obj: str | Path | BinaryIO,
) -> tuple[list[Transaction], list[str]]:
    """Parse a CSV into transactions; bad rows are reported in ``issues`` and skipped."""
    df = pd.read_csv(file_obj, dtype=str)
    df.columns = [_normalize_column(c) for c in df.columns]

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")

    transactions: list[Transaction] = []
    issues: list[str] = []
    for row_number, row in enumerate(df.to_dict(orient="records"), start=1):
        try:
            transactions.append(parse_transaction_row(row, row_number))
        except ValueError as exc:
            issues.append(f"Row {row_number}: {exc}")
    return transactions, issues
