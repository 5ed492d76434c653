import json
from pathlib import Path

import pytest

import watch_sales_data
from conftest import SAMPLE_CSV
from sales_records import SalesDataError
from watch_sales_data import poll, refresh


def test_refresh_only_rebuilds_on_changed_content(sample_csv, tmp_path):
    state_file = tmp_path / "state.json"
    first = refresh([sample_csv], tmp_path / "processed", state_file)
    assert first["manifest"]["rows"] == 5
    assert refresh([sample_csv], tmp_path / "processed", state_file) is None

    state = json.loads(state_file.read_text(encoding="utf-8"))
    assert state["source"] == str(sample_csv)
    assert state["rows"] == 5

    # Touching the file without changing it is not a change.
    sample_csv.write_text(SAMPLE_CSV, encoding="utf-8")
    assert refresh([sample_csv], tmp_path / "processed", state_file) is None

    sample_csv.write_text(SAMPLE_CSV.rsplit("\n", 2)[0] + "\n", encoding="utf-8")
    second = refresh([sample_csv], tmp_path / "processed", state_file)
    assert second["manifest"]["rows"] == 4


def test_refresh_falls_back_to_next_source(sample_csv, tmp_path):
    generated = refresh(
        [tmp_path / "missing.csv", sample_csv], tmp_path / "processed", tmp_path / "state.json"
    )
    assert generated["manifest"]["source_file"] == str(sample_csv)


def test_failed_refresh_keeps_previous_report(sample_csv, tmp_path):
    state_file = tmp_path / "state.json"
    generated = refresh([sample_csv], tmp_path / "processed", state_file)
    before = state_file.read_text(encoding="utf-8")

    with pytest.raises(SalesDataError):
        refresh([tmp_path / "missing.csv"], tmp_path / "processed", state_file)
    assert Path(generated["manifest_file"]).exists()
    assert state_file.read_text(encoding="utf-8") == before


def test_poll_logs_failures_and_keeps_going(monkeypatch, sample_csv, tmp_path, caplog, capsys):
    outcomes = [SalesDataError("All data fetch attempts failed (1 sources)."), None]

    def fake_fetch(sources, on_progress=None):
        outcome = outcomes.pop(0)
        if outcome is not None:
            raise outcome
        return sample_csv, SAMPLE_CSV

    sleeps = []
    monkeypatch.setattr(watch_sales_data, "fetch_sales_source", fake_fetch)
    monkeypatch.setattr(watch_sales_data.time, "sleep", sleeps.append)

    failures = poll([sample_csv], tmp_path / "processed", tmp_path / "state.json", 5, rounds=2)

    assert failures == 1
    assert sleeps == [5]
    assert "keeping previous report" in caplog.text
    assert "Updated latest files in:" in capsys.readouterr().out
    assert (tmp_path / "processed" / "latest" / "manifest.json").exists()
