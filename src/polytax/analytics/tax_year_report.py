from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence

from polytax.analytics.forms import generate_form8949_lines
from polytax.analytics.treatments import (
    DEFAULT_RATES,
    TaxRates,
    capital_loss_split,
    self_employment_tax,
)
from polytax.analytics.types import (
    BusinessIncomeSummary,
    CapitalGainsSummary,
    CostBasisMethod,
    Disposition,
    GamblingIncomeSummary,
    HoldingPeriod,
    TaxEvent,
    TaxReport,
    TaxTreatment,
    TreatmentComparison,
)

REASON_DEFAULT = (
    "Capital gains treatment provides loss carryforward and potential long-term rates."
)
REASON_NET_LOSS = (
    "Net losses are best handled under capital gains treatment with $3,000 annual "
    "deduction and unlimited carryforward."
)
REASON_AVOIDS_SE_TAX = "Capital gains treatment avoids the 15.3% self-employment tax."
REASON_GAMBLING_LOWER = "Gambling treatment results in lower taxable income for this year."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def dispositions_from_events(events: Iterable[TaxEvent]) -> list[Disposition]:
    out: list[Disposition] = []
    for event in events:
        tx = event.transaction
        for lot in event.lots:
            out.append(
                Disposition(
                    lot_id=lot.lot_id,
                    market_id=tx.market_id,
                    market_title=tx.market_title,
                    outcome=tx.outcome,
                    quantity=lot.quantity,
                    cost_basis_per_share=lot.cost_basis_per_share,
                    proceeds_per_share=lot.proceeds_per_share,
                    acquired_at=lot.acquired_at,
                    disposed_at=lot.disposed_at,
                    holding_period=lot.holding_period,
                    gain_loss=lot.gain_loss,
                    total_cost_basis=lot.cost_basis_per_share * lot.quantity,
                    total_proceeds=lot.proceeds_per_share * lot.quantity,
                )
            )
    return out


def _gains_and_losses(dispositions: Iterable[Disposition]) -> tuple[float, float]:
    gains = 0.0
    losses = 0.0
    for d in dispositions:
        if d.gain_loss > 0:
            gains += d.gain_loss
        else:
            losses += abs(d.gain_loss)
    return gains, losses


def calculate_capital_gains(
    dispositions: Iterable[Disposition], rates: TaxRates = DEFAULT_RATES
) -> CapitalGainsSummary:
    st_gains = st_losses = lt_gains = lt_losses = 0.0
    for d in dispositions:
        if d.holding_period == HoldingPeriod.SHORT_TERM:
            if d.gain_loss >= 0:
                st_gains += d.gain_loss
            else:
                st_losses += abs(d.gain_loss)
        elif d.gain_loss >= 0:
            lt_gains += d.gain_loss
        else:
            lt_losses += abs(d.gain_loss)

    st_net = st_gains - st_losses
    lt_net = lt_gains - lt_losses
    total_net = st_net + lt_net
    deduction, carryforward = capital_loss_split(total_net, rates)
    return CapitalGainsSummary(
        short_term_gains=st_gains,
        short_term_losses=st_losses,
        short_term_net=st_net,
        long_term_gains=lt_gains,
        long_term_losses=lt_losses,
        long_term_net=lt_net,
        total_net=total_net,
        capital_loss_deduction=deduction,
        carryforward_loss=carryforward,
    )


def calculate_gambling_income(
    dispositions: Iterable[Disposition], rates: TaxRates = DEFAULT_RATES
) -> GamblingIncomeSummary:
    gross_winnings, total_losses = _gains_and_losses(dispositions)
    deductible = min(total_losses, gross_winnings) * rates.gambling_loss_deduction_rate
    return GamblingIncomeSummary(
        gross_winnings=gross_winnings,
        total_losses=total_losses,
        deductible_losses=deductible,
        net_gambling_income=gross_winnings - deductible,
        requires_itemizing=total_losses > 0,
    )


def calculate_business_income(
    dispositions: Iterable[Disposition],
    additional_expenses: float = 0.0,
    rates: TaxRates = DEFAULT_RATES,
) -> BusinessIncomeSummary:
    gross_income, trading_losses = _gains_and_losses(dispositions)
    total_expenses = trading_losses + additional_expenses
    net_income = gross_income - total_expenses
    return BusinessIncomeSummary(
        gross_income=gross_income,
        total_expenses=total_expenses,
        net_business_income=net_income,
        self_employment_tax=self_employment_tax(net_income, rates),
        self_employment_tax_rate=rates.se_tax_rate,
    )


def generate_tax_report(
    user_id: str,
    tax_year: int,
    dispositions: Sequence[Disposition],
    treatment: TaxTreatment | str,
    cost_basis_method: CostBasisMethod | str,
    total_transactions: int,
    total_volume: float,
    total_fees: float,
    win_count: int,
    loss_count: int,
    open_positions_count: int,
    open_positions_value: float,
    rates: TaxRates = DEFAULT_RATES,
) -> TaxReport:
    treatment = TaxTreatment(treatment)
    decided = win_count + loss_count
    report = TaxReport(
        user_id=user_id,
        tax_year=tax_year,
        treatment=treatment,
        cost_basis_method=CostBasisMethod(cost_basis_method),
        generated_at=_utcnow(),
        dispositions=list(dispositions),
        total_transactions=total_transactions,
        total_volume=total_volume,
        total_fees=total_fees,
        win_rate=(win_count / decided) if decided > 0 else 0.0,
        open_positions_count=open_positions_count,
        open_positions_value=open_positions_value,
    )

    if treatment == TaxTreatment.CAPITAL_GAINS:
        report.capital_gains = calculate_capital_gains(dispositions, rates)
        report.form8949_lines = generate_form8949_lines(dispositions)
    elif treatment == TaxTreatment.GAMBLING:
        report.gambling = calculate_gambling_income(dispositions, rates)
    else:
        report.business = calculate_business_income(dispositions, rates=rates)
    return report


def compare_treatments(
    dispositions: Sequence[Disposition],
    tax_year: int,
    rates: TaxRates = DEFAULT_RATES,
) -> TreatmentComparison:
    capital_gains = calculate_capital_gains(dispositions, rates)
    gambling = calculate_gambling_income(dispositions, rates)
    business = calculate_business_income(dispositions, rates=rates)

    recommendation = TaxTreatment.CAPITAL_GAINS
    reason = REASON_DEFAULT
    business_after_se_tax = business.net_business_income - business.self_employment_tax

    if capital_gains.total_net < 0:
        reason = REASON_NET_LOSS
    elif business.net_business_income > 0 and business_after_se_tax < capital_gains.total_net:
        reason = REASON_AVOIDS_SE_TAX
    elif gambling.net_gambling_income < capital_gains.total_net:
        recommendation = TaxTreatment.GAMBLING
        reason = REASON_GAMBLING_LOWER

    return TreatmentComparison(
        tax_year=tax_year,
        capital_gains=capital_gains,
        gambling=gambling,
        business=business,
        recommendation=recommendation,
        recommendation_reason=reason,
    )
