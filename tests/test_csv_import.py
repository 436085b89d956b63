"""Tests for CSV import in the typed and wide layouts."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from babylog.events import EventStore, EventType, import_events_csv, parse_events_csv


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def csv_dir(project_root: Path) -> Path:
    return project_root / "data" / "in"


@pytest.mark.unit
class TestParseTyped:
    """Tests for the one-event-per-row layout."""

    def test_valid_rows(self, csv_dir: Path) -> None:
        path = _write(
            csv_dir / "typed.csv",
            "event_type,occurred_at,quantity,detail,notes\n"
            "feeding,2024-03-01T08:00:00Z,90,formula,\n"
            "Diaper change,2024-03-01 09:30,,wet,small\n"
            "sleep,2024-03-01T10:00:00+01:00,45,,\n",
        )
        parsed = parse_events_csv(path, tz="Europe/Paris")
        assert parsed.layout == "typed"
        assert parsed.rows_read == 3
        assert parsed.failures == []
        feeding, diaper, sleep = parsed.drafts
        assert feeding.quantity == 90
        assert diaper.event_type is EventType.DIAPER_CHANGE
        assert diaper.occurred_at == datetime(2024, 3, 1, 8, 30, tzinfo=UTC)
        assert diaper.notes == "small"
        assert sleep.occurred_at == datetime(2024, 3, 1, 9, 0, tzinfo=UTC)

    def test_invalid_rows_reported_by_line(self, csv_dir: Path) -> None:
        path = _write(
            csv_dir / "typed.csv",
            "event_type,occurred_at,quantity,detail\n"
            "feeding,2024-03-01T08:00:00Z,90,formula\n"
            "bath,2024-03-01T08:00:00Z,,\n"
            "feeding,not-a-time,90,formula\n"
            "feeding,2024-03-01T08:00:00Z,5000,formula\n",
        )
        parsed = parse_events_csv(path, tz="UTC")
        assert len(parsed.drafts) == 1
        assert [f["item"] for f in parsed.failures] == ["line 3", "line 4", "line 5"]
        assert "bath" in parsed.failures[0]["reason"]

    def test_optional_columns_may_be_absent(self, csv_dir: Path) -> None:
        path = _write(
            csv_dir / "typed.csv",
            "event_type,occurred_at,detail\ndiaper_change,2024-03-01T08:00:00Z,dry\n",
        )
        parsed = parse_events_csv(path, tz="UTC")
        assert parsed.drafts[0].detail == "dry"

    def test_unknown_header(self, csv_dir: Path) -> None:
        path = _write(csv_dir / "bad.csv", "when,what\n2024-03-01,feeding\n")
        with pytest.raises(ValueError, match="Unrecognised CSV header"):
            parse_events_csv(path, tz="UTC")


@pytest.mark.unit
class TestParseWide:
    """Tests for the spreadsheet layout with one column per measurement."""

    HEADER = "dt,urine,stool,skin2skin,breastfeed,breastmilk,formula,pump\n"

    def test_row_expands_to_one_event_per_measurement(self, csv_dir: Path) -> None:
        path = _write(
            csv_dir / "wide.csv",
            self.HEADER + "2024-03-01T08:00:00,true,true,20,15,60,30,100\n",
        )
        parsed = parse_events_csv(path, tz="UTC")
        kinds = [(d.event_type, d.detail, d.quantity) for d in parsed.drafts]
        assert kinds == [
            (EventType.DIAPER_CHANGE, "mixed", None),
            (EventType.FEEDING, "breastmilk", 60),
            (EventType.FEEDING, "formula", 30),
            (EventType.FEEDING, "breast", 15),
            (EventType.PUMP, None, 100),
            (EventType.SKIN_TO_SKIN, None, 20),
        ]
        assert {d.occurred_at for d in parsed.drafts} == {datetime(2024, 3, 1, 8, 0, tzinfo=UTC)}

    @pytest.mark.parametrize(
        ("urine", "stool", "detail"),
        [("true", "false", "wet"), ("false", "true", "dirty"), ("1", "1", "mixed")],
    )
    def test_diaper_detail(self, csv_dir: Path, urine: str, stool: str, detail: str) -> None:
        path = _write(
            csv_dir / "wide.csv",
            self.HEADER + f"2024-03-01 08:00:00,{urine},{stool},0,0,0,0,0\n",
        )
        (draft,) = parse_events_csv(path, tz="UTC").drafts
        assert draft.detail == detail

    def test_empty_row_is_skipped(self, csv_dir: Path) -> None:
        path = _write(csv_dir / "wide.csv", self.HEADER + "2024-03-01 08:00:00,false,false,0,0,0,0,0\n")
        parsed = parse_events_csv(path, tz="UTC")
        assert parsed.drafts == []
        assert parsed.skipped == 1
        assert parsed.failures == []

    def test_bad_boolean(self, csv_dir: Path) -> None:
        path = _write(csv_dir / "wide.csv", self.HEADER + "2024-03-01 08:00:00,maybe,false,0,0,0,0,0\n")
        parsed = parse_events_csv(path, tz="UTC")
        assert parsed.failures[0]["item"] == "line 2"
        assert "urine" in parsed.failures[0]["reason"]


@pytest.mark.integration
class TestImport:
    """Tests for import_events_csv against a real store."""

    def test_valid_rows_inserted_invalid_reported(self, store: EventStore, csv_dir: Path) -> None:
        path = _write(
            csv_dir / "typed.csv",
            "event_type,occurred_at,quantity,detail\n"
            "feeding,2024-03-01T08:00:00Z,90,formula\n"
            "feeding,2024-03-01T09:00:00Z,0,formula\n"
            "pump,2024-03-01T10:00:00Z,120,\n",
        )
        result = import_events_csv(store, path, tz="UTC")
        assert result["success"] is False
        assert (result["total"], result["succeeded"], result["failed"]) == (3, 2, 1)
        assert store.count() == 2

    def test_strict_imports_nothing_on_failure(self, store: EventStore, csv_dir: Path) -> None:
        path = _write(
            csv_dir / "typed.csv",
            "event_type,occurred_at,quantity,detail\n"
            "feeding,2024-03-01T08:00:00Z,90,formula\n"
            "feeding,2024-03-01T09:00:00Z,0,formula\n",
        )
        result = import_events_csv(store, path, tz="UTC", strict=True)
        assert result["succeeded"] == 0
        assert store.count() == 0

    def test_wide_import(self, store: EventStore, csv_dir: Path) -> None:
        path = _write(
            csv_dir / "wide.csv",
            TestParseWide.HEADER
            + "2024-03-01T08:00:00,true,false,0,0,90,0,0\n"
            + "2024-03-01T11:00:00,false,false,0,0,0,60,0\n",
        )
        result = import_events_csv(store, path, tz="UTC")
        assert result["success"] is True
        assert result["succeeded"] == 3
        assert [e.detail for e in store.list()] == ["formula", "breastmilk", "wet"]
