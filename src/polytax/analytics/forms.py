"""Form 8949 and Schedule D shaped outputs.

Prediction-market venues issue no 1099-B, so every line lands in a "basis not
reported to the IRS" box: B for short-term, E for long-term.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

import pandas as pd

from polytax.analytics.treatments import DEFAULT_RATES, TaxRates, capital_loss_split
from polytax.analytics.types import (
    Disposition,
    Form8949Box,
    Form8949Entry,
    HoldingPeriod,
    Outcome,
    ScheduleDSummary,
    TaxEvent,
)
from polytax.utils.money import format_fixed, format_quantity

IRS_DATE_FORMAT = "%m/%d/%Y"

FORM8949_COLUMNS = [
    "description",
    "date_acquired",
    "date_sold",
    "proceeds",
    "cost_basis",
    "adjustments",
    "gain_loss",
    "holding_period",
    "box",
]

TAX_DISCLAIMER = """
IMPORTANT DISCLAIMER: The IRS has not issued specific guidance on the tax treatment
of prediction market event contracts. This report is generated based on one of three
possible interpretations of tax law. Consult a qualified tax professional before
filing. This software is not a substitute for professional tax advice.

Prediction market venues do not issue 1099 forms. All income from them must be
self-reported. Venues operated through a non-US entity may create FBAR (FinCEN 114)
and/or FATCA (Form 8938) filing obligations depending on account balances.
""".strip()


def box_for(holding_period: HoldingPeriod) -> Form8949Box:
    if holding_period == HoldingPeriod.SHORT_TERM:
        return Form8949Box.B
    return Form8949Box.E


def describe_position(quantity: float, outcome: Outcome | str, market_title: str) -> str:
    outcome_label = outcome.value if isinstance(outcome, Outcome) else str(outcome)
    return f"{format_quantity(quantity)} {outcome_label} shares - {market_title}"


def generate_form8949_entries(events: Iterable[TaxEvent]) -> list[Form8949Entry]:
    entries: list[Form8949Entry] = []
    for event in events:
        tx = event.transaction
        for lot in event.lots:
            entries.append(
                Form8949Entry(
                    description=describe_position(lot.quantity, tx.outcome, tx.market_title),
                    date_acquired=lot.acquired_at,
                    date_sold=lot.disposed_at,
                    proceeds=lot.proceeds_per_share * lot.quantity,
                    cost_basis=lot.cost_basis_per_share * lot.quantity,
                    adjustments=0.0,
                    gain_loss=lot.gain_loss,
                    holding_period=lot.holding_period,
                    box=box_for(lot.holding_period),
                )
            )
    return entries


def generate_form8949_lines(dispositions: Iterable[Disposition]) -> list[Form8949Entry]:
    return [
        Form8949Entry(
            description=describe_position(d.quantity, d.outcome, d.market_title),
            date_acquired=d.acquired_at,
            date_sold=d.disposed_at,
            proceeds=d.total_proceeds,
            cost_basis=d.total_cost_basis,
            adjustments=0.0,
            gain_loss=d.gain_loss,
            holding_period=d.holding_period,
            box=box_for(d.holding_period),
        )
        for d in dispositions
    ]


def generate_schedule_d(
    entries: Iterable[Form8949Entry],
    prior_year_carryforward: float = 0.0,
    rates: TaxRates = DEFAULT_RATES,
) -> ScheduleDSummary:
    short_term = 0.0
    long_term = 0.0
    for entry in entries:
        if entry.holding_period == HoldingPeriod.SHORT_TERM:
            short_term += entry.gain_loss
        else:
            long_term += entry.gain_loss

    net = short_term + long_term - prior_year_carryforward
    deduction, carryforward = capital_loss_split(net, rates)
    return ScheduleDSummary(
        short_term_from_form8949=short_term,
        long_term_from_form8949=long_term,
        net_short_term_gain_loss=short_term,
        net_long_term_gain_loss=long_term,
        net_capital_gain_loss=net,
        capital_loss_deduction=deduction,
        loss_carryforward_to_next_year=carryforward,
    )


def format_form8949_entry(entry: Form8949Entry) -> dict[str, str]:
    """Columns (a)-(h) as they appear on the form."""
    return {
        "a_description": entry.description,
        "b_date_acquired": entry.date_acquired.strftime(IRS_DATE_FORMAT),
        "c_date_sold": entry.date_sold.strftime(IRS_DATE_FORMAT),
        "d_proceeds": format_fixed(entry.proceeds),
        "e_cost_basis": format_fixed(entry.cost_basis),
        "f_adjustments": format_fixed(entry.adjustments),
        "g_code": "",
        "h_gain_loss": format_fixed(entry.gain_loss),
        "box": entry.box.value,
    }


def group_entries_by_box(entries: Iterable[Form8949Entry]) -> dict[Form8949Box, list[Form8949Entry]]:
    groups: dict[Form8949Box, list[Form8949Entry]] = {box: [] for box in Form8949Box}
    for entry in entries:
        groups[entry.box].append(entry)
    return groups


def calculate_box_totals(entries: Iterable[Form8949Entry]) -> dict[Form8949Box, dict[str, Any]]:
    totals: dict[Form8949Box, dict[str, Any]] = {}
    for box, group in group_entries_by_box(entries).items():
        totals[box] = {
            "total_proceeds": sum(e.proceeds for e in group),
            "total_cost_basis": sum(e.cost_basis for e in group),
            "total_adjustments": sum(e.adjustments for e in group),
            "total_gain_loss": sum(e.gain_loss for e in group),
            "count": len(group),
        }
    return totals


def format_schedule_d_summary(summary: ScheduleDSummary) -> dict[str, Any]:
    return {
        # Part I: short-term
        "line1b": format_fixed(summary.short_term_from_form8949),
        "line7": format_fixed(summary.net_short_term_gain_loss),
        # Part II: long-term
        "line8b": format_fixed(summary.long_term_from_form8949),
        "line15": format_fixed(summary.net_long_term_gain_loss),
        # Part III
        "line16": format_fixed(summary.net_capital_gain_loss),
        "line21": (
            format_fixed(-summary.capital_loss_deduction)
            if summary.capital_loss_deduction > 0
            else "0.00"
        ),
        "has_carryforward": summary.loss_carryforward_to_next_year > 0,
        "carryforward_amount": format_fixed(summary.loss_carryforward_to_next_year),
    }


def form8949_frame(entries: Sequence[Form8949Entry]) -> pd.DataFrame:
    rows = [
        {
            "description": e.description,
            "date_acquired": e.date_acquired.date().isoformat(),
            "date_sold": e.date_sold.date().isoformat(),
            "proceeds": e.proceeds,
            "cost_basis": e.cost_basis,
            "adjustments": e.adjustments,
            "gain_loss": e.gain_loss,
            "holding_period": e.holding_period.value,
            "box": e.box.value,
        }
        for e in entries
    ]
    return pd.DataFrame(rows, columns=FORM8949_COLUMNS)
