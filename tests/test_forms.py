from __future__ import annotations

from datetime import datetime
from math import isclose

from polytax.analytics.forms import (
    FORM8949_COLUMNS,
    TAX_DISCLAIMER,
    box_for,
    calculate_box_totals,
    describe_position,
    form8949_frame,
    format_form8949_entry,
    format_schedule_d_summary,
    generate_form8949_entries,
    generate_form8949_lines,
    generate_schedule_d,
    group_entries_by_box,
)
from polytax.analytics.tax_engine import calculate
from polytax.analytics.tax_year_report import calculate_capital_gains, dispositions_from_events
from polytax.analytics.types import Form8949Box, HoldingPeriod, Outcome


def _mixed_year(make_tx):
    return [
        make_tx("b-old", "BUY", 100, 0.25, datetime(2023, 2, 1), market_id="m-old", market_title="Old market"),
        make_tx("b1", "BUY", 100, 0.40, datetime(2025, 1, 1)),
        make_tx("s1", "SELL", 100, 0.70, datetime(2025, 6, 1)),
        make_tx("b2", "BUY", 50, 0.80, datetime(2025, 2, 1), market_id="m-2", market_title="Second"),
        make_tx("s2", "SETTLEMENT", 50, 0.0, datetime(2025, 9, 1), market_id="m-2", market_title="Second"),
        make_tx("s-old", "SELL", 100, 0.10, datetime(2025, 3, 1), market_id="m-old", market_title="Old market"),
    ]


def test_box_assignment_reflects_unreported_basis():
    assert box_for(HoldingPeriod.SHORT_TERM) == Form8949Box.B
    assert box_for(HoldingPeriod.LONG_TERM) == Form8949Box.E


def test_description_format():
    assert describe_position(100.0, Outcome.YES, "Will it rain?") == "100 YES shares - Will it rain?"
    assert describe_position(12.5, "NO", "Fed cut") == "12.5 NO shares - Fed cut"


def test_entries_one_per_disposed_lot(make_tx):
    result = calculate(_mixed_year(make_tx), "capital_gains", "fifo", 2025)
    entries = generate_form8949_entries(result.events)

    assert len(entries) == 3
    by_description = {e.description: e for e in entries}
    win = by_description["100 YES shares - Will the incumbent win?"]
    assert win.box == Form8949Box.B
    assert isclose(win.proceeds, 70.0)
    assert isclose(win.cost_basis, 40.0)
    assert win.adjustments == 0.0

    old = by_description["100 YES shares - Old market"]
    assert old.box == Form8949Box.E
    assert isclose(old.gain_loss, -15.0)


def test_schedule_d_matches_capital_gains_calculator(make_tx):
    result = calculate(_mixed_year(make_tx), "capital_gains", "fifo", 2025)
    schedule_d = generate_schedule_d(generate_form8949_entries(result.events))
    capital_gains = calculate_capital_gains(dispositions_from_events(result.events))

    assert isclose(schedule_d.net_capital_gain_loss, capital_gains.total_net)
    assert isclose(schedule_d.net_capital_gain_loss, result.summary.total_gain_loss)
    assert isclose(schedule_d.net_short_term_gain_loss, capital_gains.short_term_net)
    assert isclose(schedule_d.net_long_term_gain_loss, capital_gains.long_term_net)


def test_schedule_d_applies_prior_year_carryforward(make_tx):
    entries = generate_form8949_entries(
        calculate(_mixed_year(make_tx), "capital_gains", "fifo", 2025).events
    )
    # Year nets -25 (30 - 40 - 15); a 5000 carryforward pushes past the cap.
    summary = generate_schedule_d(entries, prior_year_carryforward=5000.0)
    assert isclose(summary.net_capital_gain_loss, -5025.0)
    assert isclose(summary.capital_loss_deduction, 3000.0)
    assert isclose(summary.loss_carryforward_to_next_year, 2025.0)

    formatted = format_schedule_d_summary(summary)
    assert formatted["line16"] == "-5025.00"
    assert formatted["line21"] == "-3000.00"
    assert formatted["has_carryforward"] is True
    assert formatted["carryforward_amount"] == "2025.00"


def test_schedule_d_gain_has_no_deduction_line():
    formatted = format_schedule_d_summary(generate_schedule_d([]))
    assert formatted["line16"] == "0.00"
    assert formatted["line21"] == "0.00"
    assert formatted["has_carryforward"] is False


def test_format_entry_uses_irs_columns(make_tx):
    result = calculate(_mixed_year(make_tx), "capital_gains", "fifo", 2025)
    entry = next(
        e for e in generate_form8949_entries(result.events) if e.description.endswith("incumbent win?")
    )
    row = format_form8949_entry(entry)

    assert row["a_description"] == entry.description
    assert row["b_date_acquired"] == "01/01/2025"
    assert row["c_date_sold"] == "06/01/2025"
    assert row["d_proceeds"] == "70.00"
    assert row["e_cost_basis"] == "40.00"
    assert row["f_adjustments"] == "0.00"
    assert row["g_code"] == ""
    assert row["h_gain_loss"] == "30.00"
    assert row["box"] == "B"


def test_box_grouping_and_totals(make_tx):
    entries = generate_form8949_entries(
        calculate(_mixed_year(make_tx), "capital_gains", "fifo", 2025).events
    )
    groups = group_entries_by_box(entries)
    assert set(groups) == set(Form8949Box)
    assert len(groups[Form8949Box.B]) == 2
    assert len(groups[Form8949Box.E]) == 1
    assert groups[Form8949Box.A] == []

    totals = calculate_box_totals(entries)
    assert totals[Form8949Box.B]["count"] == 2
    assert isclose(totals[Form8949Box.B]["total_gain_loss"], -10.0)
    assert isclose(totals[Form8949Box.E]["total_proceeds"], 10.0)
    assert totals[Form8949Box.F]["count"] == 0


def test_lines_from_dispositions_match_entries_from_events(make_tx):
    result = calculate(_mixed_year(make_tx), "capital_gains", "fifo", 2025)
    from_events = generate_form8949_entries(result.events)
    from_dispositions = generate_form8949_lines(dispositions_from_events(result.events))
    assert [e.description for e in from_dispositions] == [e.description for e in from_events]
    assert all(
        isclose(a.gain_loss, b.gain_loss) for a, b in zip(from_dispositions, from_events)
    )


def test_form8949_frame_columns(make_tx):
    entries = generate_form8949_entries(
        calculate(_mixed_year(make_tx), "capital_gains", "fifo", 2025).events
    )
    frame = form8949_frame(entries)
    assert list(frame.columns) == FORM8949_COLUMNS
    assert len(frame) == 3
    # Events follow replay order, so the March sale of the old lot comes first.
    assert frame.iloc[0]["date_acquired"] == "2023-02-01"
    assert frame.iloc[0]["box"] == "E"

    empty = form8949_frame([])
    assert list(empty.columns) == FORM8949_COLUMNS
    assert empty.empty


def test_disclaimer_mentions_self_reporting():
    assert "do not issue 1099" in TAX_DISCLAIMER
