from __future__ import annotations

import os
from dataclasses import dataclass, fields

from polytax.analytics.treatments import TaxRates
from polytax.analytics.types import CostBasisMethod, TaxTreatment
from polytax.config.paths import default_db_path

RATE_ENV_VARS = {
    "ordinary_rate": "POLYTAX_ORDINARY_RATE",
    "long_term_rate": "POLYTAX_LONG_TERM_RATE",
    "se_tax_rate": "POLYTAX_SE_TAX_RATE",
    "se_taxable_factor": "POLYTAX_SE_TAXABLE_FACTOR",
    "se_wage_base": "POLYTAX_SE_WAGE_BASE",
    "medicare_rate": "POLYTAX_MEDICARE_RATE",
    "capital_loss_limit": "POLYTAX_CAPITAL_LOSS_LIMIT",
    "gambling_loss_deduction_rate": "POLYTAX_GAMBLING_LOSS_DEDUCTION_RATE",
}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def _env_choice(name: str, enum_cls, default):
    raw = str(os.getenv(name, "") or "").strip().lower()
    for member in enum_cls:
        if raw == member.value:
            return member
    return default


def tax_rates_from_env() -> TaxRates:
    defaults = TaxRates()
    overrides = {
        f.name: _env_float(RATE_ENV_VARS[f.name], getattr(defaults, f.name))
        for f in fields(TaxRates)
    }
    return TaxRates(**overrides)


@dataclass(frozen=True)
class Settings:
    app_env: str
    database_url: str
    default_treatment: TaxTreatment
    default_cost_basis_method: CostBasisMethod
    tax_rates: TaxRates


def get_settings() -> Settings:
    db_default = f"sqlite:///{default_db_path().as_posix()}"
    return Settings(
        app_env=os.getenv("APP_ENV", "development"),
        database_url=os.getenv("DATABASE_URL", db_default),
        default_treatment=_env_choice(
            "POLYTAX_DEFAULT_TREATMENT", TaxTreatment, TaxTreatment.CAPITAL_GAINS
        ),
        default_cost_basis_method=_env_choice(
            "POLYTAX_DEFAULT_COST_BASIS", CostBasisMethod, CostBasisMethod.FIFO
        ),
        tax_rates=tax_rates_from_env(),
    )
