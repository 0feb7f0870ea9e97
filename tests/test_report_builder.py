from __future__ import annotations

from datetime import datetime
from math import isclose

import pytest

from polytax.analytics.lots import InsufficientLotsError
from polytax.analytics.report_builder import build_tax_report, record_buy, record_disposition
from polytax.analytics.types import CostBasisMethod, HoldingPeriod, TaxTreatment
from polytax.db.repository import (
    add_transactions,
    get_user_settings,
    load_tax_lots,
    load_transactions,
    save_user_settings,
)

USER_ID = "user-1"


def test_build_tax_report_replays_year_against_carried_in_lots(db_session, make_tx):
    record_buy(db_session, USER_ID, make_tx("b-2024", "BUY", 100, 0.30, datetime(2024, 5, 1)))
    add_transactions(
        db_session,
        USER_ID,
        [
            make_tx("b1", "BUY", 50, 0.40, datetime(2025, 2, 1)),
            make_tx("s1", "SELL", 120, 0.60, datetime(2025, 3, 1), fee=0.25),
            make_tx("orphan", "SELL", 10, 0.50, datetime(2025, 4, 1), market_id="m-unknown"),
            make_tx("settle", "SETTLEMENT", 30, 1.0, datetime(2025, 10, 1)),
        ],
    )

    result = build_tax_report(db_session, USER_ID, 2025, compare=True)
    report = result.report

    assert [(d.lot_id, d.quantity) for d in report.dispositions] == [
        ("lot-b-2024", 100),
        ("temp-b1", 20),
        ("temp-b1", 30),
    ]
    for disposition, expected in zip(report.dispositions, (30.0, 4.0, 18.0)):
        assert isclose(disposition.gain_loss, expected)
    assert all(d.holding_period == HoldingPeriod.SHORT_TERM for d in report.dispositions)
    assert result.skipped_transaction_ids == ("orphan",)

    assert report.total_transactions == 4
    assert isclose(report.total_volume, 20.0 + 72.0 + 5.0 + 30.0)
    assert isclose(report.total_fees, 0.25)
    assert report.win_rate == 1.0
    assert report.open_positions_count == 0
    assert isclose(report.capital_gains.total_net, 52.0)
    assert len(report.form8949_lines) == 3
    assert result.comparison is not None
    assert result.comparison.recommendation == TaxTreatment.CAPITAL_GAINS


def test_build_tax_report_treats_redeem_as_total_loss(db_session, make_tx):
    add_transactions(
        db_session,
        USER_ID,
        [
            make_tx("b1", "BUY", 10, 0.40, datetime(2025, 2, 1)),
            make_tx("r1", "REDEEM", 4, 0.90, datetime(2025, 5, 1)),
        ],
    )
    result = build_tax_report(db_session, USER_ID, 2025, treatment="gambling")
    report = result.report

    assert isclose(report.dispositions[0].gain_loss, -1.6)
    assert report.win_rate == 0.0
    assert report.open_positions_count == 1
    assert isclose(report.open_positions_value, 6 * 0.40)
    assert report.gambling is not None
    assert report.capital_gains is None
    assert result.comparison is None


def test_record_disposition_updates_stored_lots(db_session, make_tx):
    record_buy(db_session, USER_ID, make_tx("b1", "BUY", 40, 0.25, datetime(2025, 1, 3)))
    record_buy(db_session, USER_ID, make_tx("b2", "BUY", 40, 0.35, datetime(2025, 1, 4)))

    dispositions = record_disposition(
        db_session,
        USER_ID,
        make_tx("s1", "SELL", 50, 0.50, datetime(2025, 2, 1)),
        "lifo",
    )
    assert [(d.lot_id, d.quantity) for d in dispositions] == [("lot-b2", 40), ("lot-b1", 10)]

    lots = {lot.id: lot for lot in load_tax_lots(db_session, USER_ID)}
    assert lots["lot-b2"].is_open is False
    assert lots["lot-b2"].quantity == 0.0
    assert lots["lot-b2"].disposed_at == datetime(2025, 2, 1)
    assert isclose(lots["lot-b2"].gain_loss, 6.0)
    assert lots["lot-b1"].is_open is True
    assert isclose(lots["lot-b1"].quantity, 30.0)
    assert lots["lot-b1"].market_title == "Will the incumbent win?"

    open_lots = load_tax_lots(db_session, USER_ID, open_only=True)
    assert [lot.id for lot in open_lots] == ["lot-b1"]


def test_record_disposition_writes_nothing_when_lots_fall_short(db_session, make_tx):
    record_buy(db_session, USER_ID, make_tx("b1", "BUY", 10, 0.25, datetime(2025, 1, 3)))

    with pytest.raises(InsufficientLotsError) as exc_info:
        record_disposition(
            db_session,
            USER_ID,
            make_tx("s1", "SELL", 50, 0.50, datetime(2025, 2, 1)),
            "fifo",
        )

    assert isclose(exc_info.value.available, 10.0)
    assert [tx.id for tx in load_transactions(db_session, USER_ID)] == ["b1"]
    assert load_tax_lots(db_session, USER_ID)[0].quantity == 10.0


def test_record_buy_rejects_disposals(db_session, make_tx):
    with pytest.raises(ValueError):
        record_buy(db_session, USER_ID, make_tx("s1", "SELL", 1, 0.5, datetime(2025, 2, 1)))


def test_build_tax_report_uses_stored_user_settings(db_session, make_tx):
    save_user_settings(db_session, USER_ID, 2025, "business", "lifo")
    add_transactions(
        db_session,
        USER_ID,
        [
            make_tx("b1", "BUY", 10, 0.20, datetime(2025, 1, 1)),
            make_tx("b2", "BUY", 10, 0.60, datetime(2025, 2, 1)),
            make_tx("s1", "SELL", 10, 0.50, datetime(2025, 3, 1)),
        ],
    )

    report = build_tax_report(db_session, USER_ID, 2025).report
    assert report.treatment == TaxTreatment.BUSINESS
    assert report.cost_basis_method == CostBasisMethod.LIFO
    assert [d.lot_id for d in report.dispositions] == ["temp-b2"]
    assert report.business is not None

    explicit = build_tax_report(db_session, USER_ID, 2025, "capital_gains", "fifo").report
    assert [d.lot_id for d in explicit.dispositions] == ["temp-b1"]


def test_save_user_settings_upserts(db_session):
    save_user_settings(db_session, USER_ID, 2024)
    save_user_settings(db_session, USER_ID, 2025, TaxTreatment.GAMBLING)

    stored = get_user_settings(db_session, USER_ID)
    assert stored.tax_year == 2025
    assert stored.default_tax_treatment == TaxTreatment.GAMBLING
    assert stored.default_cost_basis == CostBasisMethod.FIFO
    assert get_user_settings(db_session, "someone-else") is None


def test_build_tax_report_keeps_sales_recorded_against_prior_year_lots(db_session, make_tx):
    record_buy(db_session, USER_ID, make_tx("b-2024", "BUY", 100, 0.30, datetime(2024, 5, 1)))
    record_disposition(
        db_session, USER_ID, make_tx("s-2025", "SELL", 100, 0.60, datetime(2025, 3, 1)), "fifo"
    )
    assert load_tax_lots(db_session, USER_ID, open_only=True) == []

    result = build_tax_report(db_session, USER_ID, 2025)

    assert result.skipped_transaction_ids == ()
    assert [(d.lot_id, d.quantity) for d in result.report.dispositions] == [("lot-b-2024", 100)]
    assert isclose(result.report.dispositions[0].gain_loss, 30.0)
    assert len(result.report.form8949_lines) == 1


def test_build_tax_report_carries_partially_sold_lots_across_years(db_session, make_tx):
    record_buy(db_session, USER_ID, make_tx("b1", "BUY", 100, 0.30, datetime(2024, 5, 1)))
    record_disposition(
        db_session, USER_ID, make_tx("s-2024", "SELL", 40, 0.50, datetime(2024, 8, 1)), "fifo"
    )
    record_disposition(
        db_session, USER_ID, make_tx("s-2025", "SELL", 60, 0.60, datetime(2025, 3, 1)), "fifo"
    )

    report_2024 = build_tax_report(db_session, USER_ID, 2024).report
    assert [(d.lot_id, d.quantity) for d in report_2024.dispositions] == [("temp-b1", 40)]
    assert isclose(report_2024.dispositions[0].gain_loss, 8.0)

    report_2025 = build_tax_report(db_session, USER_ID, 2025).report
    assert [(d.lot_id, d.quantity) for d in report_2025.dispositions] == [("lot-b1", 60)]
    assert isclose(report_2025.dispositions[0].gain_loss, 18.0)
    assert report_2025.open_positions_count == 0
