"""End-to-end tests."""

import json
from pathlib import Path
from typing import Any

import pytest

from gtfs_od_pipeline import rebuild, validate_feed
from gtfs_od_pipeline.gtfs.fetch import AcquisitionError
from gtfs_od_pipeline.gtfs.models import RebuildConfig
from gtfs_od_pipeline.gtfs.reader import read_feed
from gtfs_od_pipeline.overrides.document import OverrideDocumentError


def _config(source: Path | str, output: Path, overrides: Path | str = "", **kwargs: Any) -> RebuildConfig:
    return RebuildConfig(
        feed_source=str(source),
        feed_slug="demo",
        output_dir=str(output),
        overrides_path=str(overrides),
        **kwargs,
    )


def test_end_to_end_minimal(gtfs_minimal: Path, overrides_file: Path, tmp_output: Path) -> None:
    """Test complete rebuild on minimal fixture."""
    report = rebuild(_config(gtfs_minimal, tmp_output, overrides_file))

    archive = tmp_output / "demo_compiled.zip"
    assert report.artifacts["zip"] == str(archive)
    assert (tmp_output / "report.json").exists()

    compiled = read_feed(str(archive))
    assert [t.trip_id for t in compiled.trips] == ["T1", "T2_A", "T2_B"]
    t1 = [
        (st.stop_id, st.stop_sequence, st.pickup_type, st.drop_off_type, st.arrival_time)
        for st in compiled.stop_times
        if st.trip_id == "T1"
    ]
    assert t1 == [
        ("A", 1, 0, 0, "08:00:00"),
        ("C", 2, 1, 0, "08:10:00"),
        ("D", 3, 0, 0, "08:15:00"),
    ]
    assert [st.stop_id for st in compiled.stop_times if st.trip_id == "T2_B"] == ["B", "C", "D", "E"]
    assert len(compiled.stops) == 5
    assert len(compiled.service_exceptions) == 1

    data = json.loads((tmp_output / "report.json").read_text())
    assert data["feed"] == "demo"
    assert data["overrides"]["total"] == 4
    assert data["overrides"]["by_mode"]["custom"] == 2
    assert data["trips"] == {"touched_count": 2, "created_segments": 2}
    assert data["stop_times"] == {"modified": 5, "added": 8, "deleted": 1}
    assert data["missing"] == {"trip_stop_pairs": 1}
    assert "Rule key not found in feed: T9::Z" in data["warnings"]
    assert "Trip T3 has no stop times" in data["validation"]["warnings"]
    assert data["artifacts"]["report"] == str(tmp_output / "report.json")


def test_end_to_end_without_rules(gtfs_minimal: Path, tmp_output: Path) -> None:
    """An absent rules document compiles with no rules."""
    report = rebuild(_config(gtfs_minimal, tmp_output, tmp_output / "missing.json"))

    compiled = read_feed(report.artifacts["zip"])
    assert [t.trip_id for t in compiled.trips] == ["T1", "T2"]
    assert all(st.pickup_type == 0 and st.drop_off_type == 0 for st in compiled.stop_times)
    assert report.metrics.overrides_total == 0


def test_end_to_end_zip_input(gtfs_zip: Path, overrides_file: Path, tmp_output: Path) -> None:
    """A zip archive source works like a directory."""
    report = rebuild(_config(gtfs_zip, tmp_output, overrides_file, output_zip="out.zip"))

    assert report.artifacts["zip"] == str(tmp_output / "out.zip")
    assert report.metrics.segments_created == 2


def test_end_to_end_remote(gtfs_zip: Path, tmp_output: Path, fake_http: Any) -> None:
    """Feed and rules are downloaded when given as URLs."""
    fake_http.routes["https://example.org/gtfs.zip"] = gtfs_zip.read_bytes()
    fake_http.routes["https://example.org/overrides.json"] = json.dumps(
        {"overrides": {"demo": {"rules": {"T1::C": {"mode": "pickup"}}}}}
    ).encode()

    report = rebuild(
        _config(
            "https://example.org/gtfs.zip",
            tmp_output,
            "automation/overrides.json",
            overrides_url="https://example.org/overrides.json",
        )
    )

    assert report.overrides_source == "https://example.org/overrides.json"
    assert report.metrics.overrides_by_mode["pickup"] == 1
    assert report.metrics.stop_times_modified == 1


def test_acquisition_failure_writes_nothing(tmp_output: Path, fake_http: Any) -> None:
    """A failed download aborts before any output."""
    with pytest.raises(AcquisitionError):
        rebuild(_config("https://example.org/gtfs.zip", tmp_output))

    assert list(tmp_output.iterdir()) == []


def test_rules_fetch_failure_writes_nothing(
    gtfs_minimal: Path, tmp_output: Path, fake_http: Any
) -> None:
    """A configured rules URL that cannot be fetched is fatal."""
    fake_http.routes["https://example.org/overrides.json"] = 500

    with pytest.raises(AcquisitionError):
        rebuild(_config(gtfs_minimal, tmp_output, overrides_url="https://example.org/overrides.json"))

    assert list(tmp_output.iterdir()) == []


def test_invalid_rules_document(gtfs_minimal: Path, tmp_output: Path, tmp_path: Path) -> None:
    """Unparseable rules JSON is fatal."""
    broken = tmp_path / "broken.json"
    broken.write_text("{\"rules\": ")

    with pytest.raises(OverrideDocumentError):
        rebuild(_config(gtfs_minimal, tmp_output, broken))

    assert list(tmp_output.iterdir()) == []


def test_strict_validation(gtfs_minimal: Path, tmp_output: Path, tmp_path: Path) -> None:
    """Validation errors only abort in strict mode."""
    feed_dir = tmp_path / "feed"
    feed_dir.mkdir()
    for table in gtfs_minimal.glob("*.txt"):
        (feed_dir / table.name).write_bytes(table.read_bytes())
    with open(feed_dir / "trips.txt", "a") as f:
        f.write("R1,WK,T1,Duplicate,0,S1\n")

    with pytest.raises(ValueError, match="validation failed"):
        rebuild(_config(feed_dir, tmp_output, strict=True))
    assert list(tmp_output.iterdir()) == []

    report = rebuild(_config(feed_dir, tmp_output))
    assert any("duplicate trip_id" in error for error in report.validation_errors)


def test_step_summary(gtfs_minimal: Path, overrides_file: Path, tmp_output: Path, tmp_path: Path) -> None:
    """The Markdown summary is appended when configured."""
    summary = tmp_path / "summary.md"

    rebuild(_config(gtfs_minimal, tmp_output, overrides_file, step_summary_path=str(summary)))

    assert summary.read_text().startswith("# GTFS Rebuild - demo")


def test_report_lists_itself(gtfs_minimal: Path, tmp_output: Path) -> None:
    """The written report carries its own path among the artifacts."""
    report = rebuild(_config(gtfs_minimal, tmp_output, report_name="run.json"))

    data = json.loads((tmp_output / "run.json").read_text())
    assert data["artifacts"] == report.artifacts
    assert data["artifacts"]["report"] == str(tmp_output / "run.json")
    assert data["artifacts"]["zip_sha256"] == report.artifacts["zip_sha256"]


def test_failed_summary_removes_outputs(
    gtfs_minimal: Path, tmp_output: Path, tmp_path: Path
) -> None:
    """A step summary that cannot be written leaves no archive or report."""
    unwritable = tmp_path / "missing-dir" / "summary.md"

    with pytest.raises(OSError):
        rebuild(_config(gtfs_minimal, tmp_output, step_summary_path=str(unwritable)))

    assert not (tmp_output / "demo_compiled.zip").exists()
    assert not (tmp_output / "report.json").exists()


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment seeds the config and keyword values override it."""
    monkeypatch.setenv("FEED_URL", "https://example.org/gtfs.zip")
    monkeypatch.setenv("FEED_SLUG", "metro")
    monkeypatch.setenv("OUT_DIR", "public")
    monkeypatch.delenv("OUT_ZIP", raising=False)
    monkeypatch.delenv("OVERRIDES_URL", raising=False)

    config = RebuildConfig.from_env(output_dir=None, report_name="r.json")

    assert config.feed_source == "https://example.org/gtfs.zip"
    assert config.output_dir == "public"
    assert config.output_zip == "metro_compiled.zip"
    assert config.report_name == "r.json"
    assert config.overrides_source == config.overrides_path


def test_validate_feed_with_rules(gtfs_minimal: Path, overrides_file: Path) -> None:
    """Unmatched rule keys show up as validation warnings."""
    report = validate_feed(str(gtfs_minimal), overrides_path=str(overrides_file))

    assert report.valid
    assert "Rule key not found in feed: T9::Z" in report.warnings
    assert report.stats["missing_rule_keys"] == 1
