"""Lot selection and disposal for prediction-market positions (FIFO / LIFO / specific id)."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Iterable, Sequence

from polytax.analytics.types import (
    CostBasisMethod,
    Disposition,
    DisposedLot,
    HoldingPeriod,
    Outcome,
    TaxLot,
    Transaction,
    TransactionType,
)
from polytax.utils.dates import days_between

LOT_EPSILON = 1e-6
LONG_TERM_THRESHOLD_DAYS = 365
SETTLEMENT_WIN_THRESHOLD = 0.5


class LotSelectionError(ValueError):
    pass


class InsufficientLotsError(LotSelectionError):
    def __init__(
        self,
        requested: float,
        available: float,
        method: CostBasisMethod | str | None = None,
        market_id: str | None = None,
        outcome: Outcome | str | None = None,
    ) -> None:
        self.requested = requested
        self.available = available
        self.method = CostBasisMethod(method) if method is not None else None
        self.market_id = market_id
        self.outcome = Outcome(outcome) if outcome is not None else None

        message = f"Insufficient lots: need {requested:g}, found {available:g}"
        if self.method is not None:
            message += f" using {self.method.value}"
        if market_id is not None:
            position = market_id if self.outcome is None else f"{market_id}/{self.outcome.value}"
            message += f" for {position}"
        super().__init__(message)


def resolve_method(method: CostBasisMethod | str) -> CostBasisMethod:
    try:
        return CostBasisMethod(method)
    except ValueError as exc:
        raise LotSelectionError(f"Unknown cost basis method: {method}") from exc


@dataclass(frozen=True, slots=True)
class LotSelection:
    lot: TaxLot
    quantity_from_lot: float


def classify_holding_period(
    acquired_at: datetime | date, disposed_at: datetime | date
) -> HoldingPeriod:
    if days_between(acquired_at, disposed_at) > LONG_TERM_THRESHOLD_DAYS:
        return HoldingPeriod.LONG_TERM
    return HoldingPeriod.SHORT_TERM


def calculate_gain_loss(
    quantity: float, cost_basis_per_share: float, proceeds_per_share: float
) -> float:
    return (proceeds_per_share - cost_basis_per_share) * quantity


def weighted_average_cost_basis(lots: Iterable[TaxLot]) -> float:
    lots = list(lots)
    total_quantity = sum(lot.quantity for lot in lots)
    if total_quantity <= 0:
        return 0.0
    total_cost = sum(lot.cost_basis_per_share * lot.quantity for lot in lots)
    return total_cost / total_quantity


def settlement_proceeds(price_per_share: float) -> float:
    """Resolved market payout: a recorded price at or above 0.5 means the outcome won."""
    return 1.0 if price_per_share >= SETTLEMENT_WIN_THRESHOLD else 0.0


def disposal_proceeds_per_share(tx: Transaction, *, redeem_as_loss: bool = False) -> float:
    if tx.type == TransactionType.SETTLEMENT:
        return settlement_proceeds(tx.price_per_share)
    if tx.type == TransactionType.REDEEM and redeem_as_loss:
        return 0.0
    return tx.price_per_share


def _ordered_by_ids(lots: Sequence[TaxLot], lot_ids: Sequence[str]) -> list[TaxLot]:
    by_id: dict[str, TaxLot] = {}
    for lot in lots:
        by_id.setdefault(lot.id, lot)
    ordered: list[TaxLot] = []
    seen: set[str] = set()
    for lot_id in lot_ids:
        lot = by_id.get(lot_id)
        if lot is None or lot_id in seen:
            continue
        seen.add(lot_id)
        ordered.append(lot)
    return ordered


def _require_lot_ids(specific_lot_ids: Sequence[str] | None) -> Sequence[str]:
    if not specific_lot_ids:
        raise LotSelectionError("Specific lot IDs required for specific_id method")
    return specific_lot_ids


def sort_lots(
    lots: Sequence[TaxLot],
    method: CostBasisMethod | str,
    specific_lot_ids: Sequence[str] | None = None,
    *,
    include_unlisted: bool = False,
) -> list[TaxLot]:
    """Order candidate lots for consumption; ties on ``acquired_at`` keep input order."""
    method = resolve_method(method)
    if method == CostBasisMethod.FIFO:
        return sorted(lots, key=lambda lot: lot.acquired_at)
    if method == CostBasisMethod.LIFO:
        return sorted(lots, key=lambda lot: lot.acquired_at, reverse=True)

    lot_ids = _require_lot_ids(specific_lot_ids)
    ordered = _ordered_by_ids(lots, lot_ids)
    if include_unlisted:
        listed = set(lot_ids)
        ordered.extend(lot for lot in lots if lot.id not in listed)
    return ordered


def select_lots(
    open_lots: Sequence[TaxLot],
    method: CostBasisMethod | str,
    quantity_to_dispose: float,
    specific_lot_ids: Sequence[str] | None = None,
) -> list[LotSelection]:
    method = resolve_method(method)
    sorted_lots = sort_lots(open_lots, method, specific_lot_ids)

    selections: list[LotSelection] = []
    remaining = quantity_to_dispose
    for lot in sorted_lots:
        if remaining <= LOT_EPSILON:
            break
        take = min(lot.quantity, remaining)
        if take <= 0:
            continue
        selections.append(LotSelection(lot=lot, quantity_from_lot=take))
        remaining -= take

    if remaining > LOT_EPSILON:
        first = sorted_lots[0] if sorted_lots else None
        raise InsufficientLotsError(
            requested=quantity_to_dispose,
            available=quantity_to_dispose - remaining,
            method=method,
            market_id=first.market_id if first else None,
            outcome=first.outcome if first else None,
        )
    return selections


def apply_disposal(
    sorted_lots: Sequence[TaxLot],
    quantity: float,
    proceeds_per_share: float,
    disposed_at: datetime,
    *,
    method: CostBasisMethod | str | None = None,
) -> tuple[list[DisposedLot], list[TaxLot]]:
    """Consume ``quantity`` from ``sorted_lots`` in order.

    Returns the disposed portions and the lots still open afterwards. Fully
    consumed lots are dropped; a partially consumed lot is returned as a copy
    carrying the reduced quantity. Input lots are never mutated.
    """
    disposed: list[DisposedLot] = []
    remaining_lots: list[TaxLot] = []
    remaining = quantity

    for lot in sorted_lots:
        if remaining <= LOT_EPSILON:
            remaining_lots.append(lot)
            continue

        take = min(lot.quantity, remaining)
        disposed.append(
            DisposedLot(
                lot_id=lot.id,
                quantity=take,
                cost_basis_per_share=lot.cost_basis_per_share,
                proceeds_per_share=proceeds_per_share,
                gain_loss=calculate_gain_loss(take, lot.cost_basis_per_share, proceeds_per_share),
                holding_period=classify_holding_period(lot.acquired_at, disposed_at),
                acquired_at=lot.acquired_at,
                disposed_at=disposed_at,
            )
        )
        remaining -= take

        leftover = lot.quantity - take
        if leftover > LOT_EPSILON:
            remaining_lots.append(replace(lot, quantity=leftover))

    if remaining > LOT_EPSILON:
        first = sorted_lots[0] if sorted_lots else None
        raise InsufficientLotsError(
            requested=quantity,
            available=quantity - remaining,
            method=method,
            market_id=first.market_id if first else None,
            outcome=first.outcome if first else None,
        )
    return disposed, remaining_lots


def dispose_lots(
    method: CostBasisMethod | str,
    open_lots: Sequence[TaxLot],
    quantity: float,
    proceeds_per_share: float,
    disposed_at: datetime,
    specific_lot_ids: Sequence[str] | None = None,
) -> tuple[list[DisposedLot], list[TaxLot]]:
    """Order ``open_lots`` by ``method`` and apply one disposal.

    For ``specific_id`` the named lots are consumed first, in the given order,
    followed by any lots that were not named.
    """
    method = resolve_method(method)
    sorted_lots = sort_lots(open_lots, method, specific_lot_ids, include_unlisted=True)
    return apply_disposal(sorted_lots, quantity, proceeds_per_share, disposed_at, method=method)


def process_disposition(
    open_lots: Sequence[TaxLot],
    market_id: str,
    outcome: Outcome | str,
    quantity: float,
    proceeds_per_share: float,
    disposed_at: datetime,
    method: CostBasisMethod | str,
    specific_lot_ids: Sequence[str] | None = None,
) -> tuple[list[Disposition], list[TaxLot]]:
    """Dispose against a persisted lot array spanning any number of positions.

    Only open lots of ``(market_id, outcome)`` are candidates. The returned lot
    list has the same length and order as ``open_lots``: untouched lots are
    passed through, partially consumed lots carry the reduced quantity, and
    fully consumed lots are closed and annotated with the disposal.

    Raises ``InsufficientLotsError`` when the candidates cannot cover ``quantity``.
    """
    outcome = Outcome(outcome)
    method = resolve_method(method)
    candidates = [
        lot
        for lot in open_lots
        if lot.market_id == market_id and lot.outcome == outcome and lot.is_open
    ]

    try:
        selections = select_lots(candidates, method, quantity, specific_lot_ids)
    except InsufficientLotsError as exc:
        raise InsufficientLotsError(
            requested=exc.requested,
            available=exc.available,
            method=method,
            market_id=market_id,
            outcome=outcome,
        ) from exc

    dispositions: list[Disposition] = []
    updated_lots = list(open_lots)
    index_by_id = {id(lot): idx for idx, lot in enumerate(updated_lots)}

    for selection in selections:
        lot = selection.lot
        take = selection.quantity_from_lot
        holding_period = classify_holding_period(lot.acquired_at, disposed_at)
        gain_loss = calculate_gain_loss(take, lot.cost_basis_per_share, proceeds_per_share)

        dispositions.append(
            Disposition(
                lot_id=lot.id,
                market_id=lot.market_id,
                market_title=lot.market_title,
                outcome=lot.outcome,
                quantity=take,
                cost_basis_per_share=lot.cost_basis_per_share,
                proceeds_per_share=proceeds_per_share,
                acquired_at=lot.acquired_at,
                disposed_at=disposed_at,
                holding_period=holding_period,
                gain_loss=gain_loss,
                total_cost_basis=lot.cost_basis_per_share * take,
                total_proceeds=proceeds_per_share * take,
            )
        )

        idx = index_by_id[id(lot)]
        leftover = updated_lots[idx].quantity - take
        if leftover <= LOT_EPSILON:
            updated_lots[idx] = replace(
                updated_lots[idx],
                quantity=0.0,
                is_open=False,
                disposed_at=disposed_at,
                proceeds_per_share=proceeds_per_share,
                gain_loss=gain_loss,
                holding_period=holding_period,
            )
        else:
            updated_lots[idx] = replace(updated_lots[idx], quantity=leftover)

    return dispositions, updated_lots
