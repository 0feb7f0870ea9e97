from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from polytax.config.paths import DATA_DIR, EXPORTS_DIR, ensure_data_dirs
from polytax.config.settings import get_settings


def _load_csv(path: str):
    from polytax.ingest.transactions_csv import load_transactions_csv

    transactions, issues = load_transactions_csv(path)
    for issue in issues:
        print(f"warning: {issue}", file=sys.stderr)
    return transactions


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _cmd_init_db(_: argparse.Namespace) -> int:
    from polytax.db.migrate import migrate

    migrate()
    print("Initialized database schema.")
    return 0


def _cmd_paths(_: argparse.Namespace) -> int:
    ensure_data_dirs()
    print(f"DATA_DIR={DATA_DIR}")
    print(f"EXPORTS_DIR={EXPORTS_DIR}")
    return 0


def _cmd_calculate(args: argparse.Namespace) -> int:
    from polytax.analytics.tax_engine import calculate

    settings = get_settings()
    result = calculate(
        _load_csv(args.csv),
        args.treatment or settings.default_treatment,
        args.method or settings.default_cost_basis_method,
        args.year,
        rates=settings.tax_rates,
    )
    _print_json({"events": len(result.events), "summary": asdict(result.summary)})
    return 0


def _cmd_compare(args: argparse.Namespace) -> int:
    from polytax.analytics.tax_engine import calculate
    from polytax.analytics.tax_year_report import compare_treatments, dispositions_from_events

    settings = get_settings()
    result = calculate(
        _load_csv(args.csv),
        settings.default_treatment,
        args.method or settings.default_cost_basis_method,
        args.year,
        rates=settings.tax_rates,
    )
    comparison = compare_treatments(
        dispositions_from_events(result.events), args.year, settings.tax_rates
    )
    _print_json(asdict(comparison))
    return 0


def _cmd_form8949(args: argparse.Namespace) -> int:
    from polytax.analytics.forms import form8949_frame, generate_form8949_entries
    from polytax.analytics.tax_engine import calculate

    settings = get_settings()
    result = calculate(
        _load_csv(args.csv),
        "capital_gains",
        args.method or settings.default_cost_basis_method,
        args.year,
        rates=settings.tax_rates,
    )
    frame = form8949_frame(generate_form8949_entries(result.events))
    if args.out:
        out_path = Path(args.out)
    else:
        ensure_data_dirs()
        out_path = EXPORTS_DIR / f"form8949-{args.year}.csv"
    frame.to_csv(out_path, index=False)
    print(f"Wrote {len(frame)} Form 8949 lines to {out_path}")
    return 0


def _add_calc_args(parser: argparse.ArgumentParser, with_treatment: bool = True) -> None:
    parser.add_argument("--csv", required=True, help="Normalized transactions CSV.")
    parser.add_argument("--year", type=int, required=True, help="Tax year to report.")
    parser.add_argument("--method", choices=["fifo", "lifo"], default=None)
    if with_treatment:
        parser.add_argument(
            "--treatment", choices=["capital_gains", "gambling", "business"], default=None
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Polytax developer CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sp_init_db = subparsers.add_parser("init-db", help="Create/update local database schema")
    sp_init_db.set_defaults(func=_cmd_init_db)

    sp_paths = subparsers.add_parser("paths", help="Print configured project paths")
    sp_paths.set_defaults(func=_cmd_paths)

    sp_calc = subparsers.add_parser("calculate", help="Replay a CSV and print the tax summary")
    _add_calc_args(sp_calc)
    sp_calc.set_defaults(func=_cmd_calculate)

    sp_compare = subparsers.add_parser("compare", help="Compare all three tax treatments")
    _add_calc_args(sp_compare, with_treatment=False)
    sp_compare.set_defaults(func=_cmd_compare)

    sp_form = subparsers.add_parser("form8949", help="Export Form 8949 lines as CSV")
    _add_calc_args(sp_form, with_treatment=False)
    sp_form.add_argument("--out", default="", help="Output CSV path.")
    sp_form.set_defaults(func=_cmd_form8949)

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
