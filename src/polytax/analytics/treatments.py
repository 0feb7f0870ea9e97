"""Treatment calculators: one pure aggregation per tax regime over the same tax events."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Sequence

from polytax.analytics.types import HoldingPeriod, TaxEvent, TaxSummary, TaxTreatment


@dataclass(frozen=True)
class TaxRates:
    """Flat rate table used by every calculator (top-bracket estimates, not brackets)."""

    ordinary_rate: float = 0.37
    long_term_rate: float = 0.20
    se_tax_rate: float = 0.153
    se_taxable_factor: float = 0.9235
    se_wage_base: float = 168_600.0
    medicare_rate: float = 0.029
    capital_loss_limit: float = 3_000.0
    gambling_loss_deduction_rate: float = 0.90


DEFAULT_RATES = TaxRates()


def self_employment_tax(net_business_income: float, rates: TaxRates = DEFAULT_RATES) -> float:
    if net_business_income <= 0:
        return 0.0
    taxable = net_business_income * rates.se_taxable_factor
    if taxable <= rates.se_wage_base:
        return taxable * rates.se_tax_rate
    # Social Security stops at the wage base; Medicare continues above it.
    return (
        rates.se_wage_base * rates.se_tax_rate
        + (taxable - rates.se_wage_base) * rates.medicare_rate
    )


def capital_loss_split(total_net: float, rates: TaxRates = DEFAULT_RATES) -> tuple[float, float]:
    """Return ``(deduction, carryforward)`` for a net capital result; zeros for a gain."""
    if total_net >= 0:
        return 0.0, 0.0
    loss = abs(total_net)
    deduction = min(loss, rates.capital_loss_limit)
    return deduction, loss - deduction


def _split_by_sign(events: Sequence[TaxEvent]) -> tuple[float, float]:
    gains = 0.0
    losses = 0.0
    for event in events:
        if event.total_gain_loss > 0:
            gains += event.total_gain_loss
        else:
            losses += abs(event.total_gain_loss)
    return gains, losses


def _base_summary(
    treatment: TaxTreatment, events: Sequence[TaxEvent], tax_year: int
) -> TaxSummary:
    short_term_gains = short_term_losses = 0.0
    long_term_gains = long_term_losses = 0.0
    total_proceeds = total_cost_basis = 0.0

    for event in events:
        total_proceeds += event.total_proceeds
        total_cost_basis += event.total_cost_basis
        for lot in event.lots:
            if lot.holding_period == HoldingPeriod.SHORT_TERM:
                if lot.gain_loss >= 0:
                    short_term_gains += lot.gain_loss
                else:
                    short_term_losses += abs(lot.gain_loss)
            elif lot.gain_loss >= 0:
                long_term_gains += lot.gain_loss
            else:
                long_term_losses += abs(lot.gain_loss)

    net_short_term = short_term_gains - short_term_losses
    net_long_term = long_term_gains - long_term_losses
    return TaxSummary(
        treatment=treatment,
        tax_year=tax_year,
        total_proceeds=total_proceeds,
        total_cost_basis=total_cost_basis,
        total_gain_loss=net_short_term + net_long_term,
        short_term_gains=short_term_gains,
        short_term_losses=short_term_losses,
        long_term_gains=long_term_gains,
        long_term_losses=long_term_losses,
        net_short_term=net_short_term,
        net_long_term=net_long_term,
    )


def capital_gains_summary(
    events: Sequence[TaxEvent], tax_year: int, rates: TaxRates = DEFAULT_RATES
) -> TaxSummary:
    """Short-term at the ordinary rate, long-term at the LTCG rate.

    A net loss is deductible up to ``capital_loss_limit``; the rest carries
    forward. The deduction is reported as a negative liability (tax saved).
    """
    base = _base_summary(TaxTreatment.CAPITAL_GAINS, events, tax_year)
    deduction, carryforward = capital_loss_split(base.total_gain_loss, rates)

    if base.total_gain_loss < 0:
        estimated = -(deduction * rates.ordinary_rate)
    else:
        estimated = (
            max(0.0, base.net_short_term) * rates.ordinary_rate
            + max(0.0, base.net_long_term) * rates.long_term_rate
        )

    return replace(
        base,
        loss_carryforward=carryforward,
        net_capital_loss_deduction=deduction,
        estimated_tax_liability=estimated,
    )


def gambling_summary(
    events: Sequence[TaxEvent], tax_year: int, rates: TaxRates = DEFAULT_RATES
) -> TaxSummary:
    """Winning events are income; losses offset at most the winnings, at 90%."""
    base = _base_summary(TaxTreatment.GAMBLING, events, tax_year)
    gross_winnings, total_losses = _split_by_sign(events)
    deductible = min(total_losses, gross_winnings) * rates.gambling_loss_deduction_rate
    taxable_income = gross_winnings - deductible

    return replace(
        base,
        gross_winnings=gross_winnings,
        deductible_losses=deductible,
        estimated_tax_liability=max(0.0, taxable_income) * rates.ordinary_rate,
    )


def business_summary(
    events: Sequence[TaxEvent], tax_year: int, rates: TaxRates = DEFAULT_RATES
) -> TaxSummary:
    base = _base_summary(TaxTreatment.BUSINESS, events, tax_year)
    gross_income, total_losses = _split_by_sign(events)
    net_income = gross_income - total_losses
    se_tax = self_employment_tax(net_income, rates)

    return replace(
        base,
        net_business_income=net_income,
        self_employment_tax=se_tax,
        estimated_tax_liability=max(0.0, net_income) * rates.ordinary_rate + se_tax,
    )


TreatmentCalculator = Callable[[Sequence[TaxEvent], int, TaxRates], TaxSummary]

TREATMENT_CALCULATORS: dict[TaxTreatment, TreatmentCalculator] = {
    TaxTreatment.CAPITAL_GAINS: capital_gains_summary,
    TaxTreatment.GAMBLING: gambling_summary,
    TaxTreatment.BUSINESS: business_summary,
}


def summarize_events(
    treatment: TaxTreatment | str,
    events: Sequence[TaxEvent],
    tax_year: int,
    rates: TaxRates = DEFAULT_RATES,
) -> TaxSummary:
    return TREATMENT_CALCULATORS[TaxTreatment(treatment)](events, tax_year, rates)


def summarize_all_treatments(
    events: Sequence[TaxEvent], tax_year: int, rates: TaxRates = DEFAULT_RATES
) -> dict[TaxTreatment, TaxSummary]:
    return {
        treatment: calculator(events, tax_year, rates)
        for treatment, calculator in TREATMENT_CALCULATORS.items()
    }
