from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path

import pandas as pd

CLI_PATH = Path(__file__).resolve().parents[1] / "tools" / "dev_cli.py"

CSV_TEXT = "\n".join(
    [
        "id,market_id,market_title,outcome,type,quantity,price_per_share,timestamp",
        "b1,m-1,Will it snow?,YES,BUY,100,0.40,2025-01-01",
        "s1,m-1,Will it snow?,YES,SELL,100,0.70,2025-06-01",
    ]
)


def _load_cli():
    spec = importlib.util.spec_from_file_location("polytax_dev_cli", CLI_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _run(monkeypatch, *argv: str) -> int:
    cli = _load_cli()
    monkeypatch.setattr(sys, "argv", ["dev_cli.py", *argv])
    return cli.main()


def test_calculate_prints_summary(tmp_path, monkeypatch, capsys):
    csv_path = tmp_path / "trades.csv"
    csv_path.write_text(CSV_TEXT, encoding="utf-8")

    assert _run(monkeypatch, "calculate", "--csv", str(csv_path), "--year", "2025") == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["events"] == 1
    assert payload["summary"]["treatment"] == "capital_gains"
    assert round(payload["summary"]["total_gain_loss"], 2) == 30.0


def test_compare_prints_recommendation(tmp_path, monkeypatch, capsys):
    csv_path = tmp_path / "trades.csv"
    csv_path.write_text(CSV_TEXT, encoding="utf-8")

    assert _run(monkeypatch, "compare", "--csv", str(csv_path), "--year", "2025") == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["recommendation"] == "capital_gains"


def test_form8949_writes_csv(tmp_path, monkeypatch):
    csv_path = tmp_path / "trades.csv"
    csv_path.write_text(CSV_TEXT, encoding="utf-8")
    out_path = tmp_path / "form8949.csv"

    assert (
        _run(
            monkeypatch,
            "form8949",
            "--csv",
            str(csv_path),
            "--year",
            "2025",
            "--out",
            str(out_path),
        )
        == 0
    )
    frame = pd.read_csv(out_path)
    assert list(frame["box"]) == ["B"]
    assert frame.loc[0, "description"] == "100 YES shares - Will it snow?"
