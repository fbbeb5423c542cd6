#!/usr/bin/env python3
"""
Unit tests for multi-TLE batch processing and the tlelint CLI.
"""
import pytest
from datetime import datetime

from click.testing import CliRunner

from tlelint.batch import (
    ISSUE_COLUMNS,
    RESULT_COLUMNS,
    RecordFilter,
    elements_frame,
    issues_frame,
    load_tle_file,
    parse_batch,
    results_frame,
    scan_batch,
    split_tles,
)
from tlelint.cli import main
from tlelint.issues import TLEValidationError
from tlelint.state_machine import StateMachineOptions
from tlelint.tle_parser import ParseOptions


ISS_NAME = "ISS (ZARYA)"
ISS_LINE1 = "1 25544U 98067A   20300.83097691  .00001534  00000-0  35580-4 0  9996"
ISS_LINE2 = "2 25544  51.6453  57.0843 0001671  64.9808  73.0513 15.49338189252428"
ISS_2008_LINE1 = "1 25544U 98067A   08264.51782528 -.00002182  00000-0 -11606-4 0  2927"
ISS_2008_LINE2 = "2 25544  51.6416 247.4627 0006703 130.5360 325.0288 15.72125391563537"

CATALOG = (
    f"{ISS_NAME}\n{ISS_LINE1}\n{ISS_LINE2}\n"
    f"\n"
    f"# archived element set\n"
    f"{ISS_2008_LINE1}\n{ISS_2008_LINE2}\n"
)
BAD_CHECKSUM_TLE = f"{ISS_NAME}\n{ISS_LINE1[:68]}5\n{ISS_LINE2}\n"


# ═══════════════════════════════════════════════════════════════
# BATCH TESTS
# ═══════════════════════════════════════════════════════════════
class TestSplit:
    def test_mixed_formats(self):
        blocks = split_tles(CATALOG)
        assert len(blocks) == 2
        assert blocks[0].splitlines() == [ISS_NAME, ISS_LINE1, ISS_LINE2]
        assert blocks[1].splitlines() == ["# archived element set", ISS_2008_LINE1, ISS_2008_LINE2]

    def test_stray_lines_dropped(self):
        blocks = split_tles(f"{ISS_LINE1}\n{ISS_LINE2}\n{ISS_LINE1}\n")
        assert len(blocks) == 1
        assert blocks[0].splitlines() == [ISS_LINE1, ISS_LINE2]

    def test_crlf(self):
        assert split_tles(CATALOG.replace("\n", "\r\n")) == split_tles(CATALOG)

    def test_empty(self):
        assert split_tles("") == []


class TestParseBatch:
    def test_parse_all(self):
        records = parse_batch(CATALOG)
        assert len(records) == 2
        assert records[0].satellite_name == ISS_NAME
        assert records[1].satellite_name is None
        assert records[1].comments == ("# archived element set",)

    def test_filter_by_name(self):
        records = parse_batch(CATALOG, record_filter=RecordFilter(name_pattern="zarya"))
        assert [r.satellite_name for r in records] == [ISS_NAME]

    def test_filter_by_number_and_classification(self):
        assert len(parse_batch(CATALOG, record_filter=RecordFilter(satellite_numbers=[25544]))) == 2
        assert parse_batch(CATALOG, record_filter=RecordFilter(satellite_numbers=[20580])) == []
        assert parse_batch(CATALOG, record_filter=RecordFilter(classifications=["c", "s"])) == []

    def test_skip_and_limit(self):
        assert parse_batch(CATALOG, skip=1)[0].epoch_year == "08"
        assert len(parse_batch(CATALOG, limit=1)) == 1
        assert parse_batch(CATALOG, skip=1, limit=1)[0].epoch_year == "08"

    def test_error_raises_by_default(self):
        with pytest.raises(TLEValidationError):
            parse_batch(BAD_CHECKSUM_TLE + CATALOG)

    def test_continue_on_error(self):
        records = parse_batch(BAD_CHECKSUM_TLE + CATALOG, continue_on_error=True)
        assert len(records) == 2

    def test_options_applied(self):
        records = parse_batch(BAD_CHECKSUM_TLE, ParseOptions.permissive())
        assert len(records) == 1


class TestScanBatch:
    def test_results_frame(self):
        results = scan_batch(BAD_CHECKSUM_TLE + CATALOG, StateMachineOptions(reference_time=datetime(2020, 11, 1)))
        df = results_frame(results)
        assert list(df.columns) == RESULT_COLUMNS
        assert len(df) == 3
        assert df["success"].all()
        assert df.loc[0, "errors"] == 1
        assert df.loc[1, "errors"] == 0
        assert df.loc[1, "format"] == "3-line"
        assert df.loc[2, "format"] == "2-line"

    def test_strict_scan_fails(self):
        results = scan_batch(BAD_CHECKSUM_TLE, StateMachineOptions(strict_mode=True))
        assert not results[0].success

    def test_issues_frame(self):
        df = issues_frame(scan_batch(BAD_CHECKSUM_TLE, StateMachineOptions(reference_time=datetime(2020, 11, 1))))
        assert len(df) == 1
        assert df.loc[0, "code"] == "CHECKSUM_MISMATCH"
        assert df.loc[0, "satellite_number"] == "25544"
        assert df.loc[0, "expected"] == 6

    def test_issues_frame_empty(self):
        df = issues_frame([])
        assert df.empty
        assert list(df.columns) == ISSUE_COLUMNS


class TestElementsFrame:
    def test_sorted_by_epoch(self):
        df = elements_frame(parse_batch(CATALOG))
        assert len(df) == 2
        assert df["epoch"].is_monotonic_increasing
        assert df.loc[0, "epoch"].year == 2008
        assert "altitude_km" in df.columns

    def test_unconvertible_skipped(self):
        records = parse_batch(f"{ISS_LINE1[:25]}\n{ISS_LINE2}", ParseOptions.fast())
        assert elements_frame(records).empty


def test_load_tle_file(tmp_path):
    path = tmp_path / "catalog.tle"
    path.write_text(CATALOG)
    assert load_tle_file(path) == CATALOG


# ═══════════════════════════════════════════════════════════════
# CLI TESTS
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "catalog.tle"
    path.write_text(CATALOG)
    return str(path)


@pytest.fixture
def bad_file(tmp_path):
    path = tmp_path / "bad.tle"
    path.write_text(BAD_CHECKSUM_TLE)
    return str(path)


class TestCLI:
    def test_validate_ok(self, catalog_file):
        result = CliRunner().invoke(main, ["validate", catalog_file])
        assert result.exit_code == 0
        assert "All 2 TLE(s) valid" in result.output

    def test_validate_failure(self, bad_file):
        result = CliRunner().invoke(main, ["validate", bad_file])
        assert result.exit_code == 1
        assert "CHECKSUM_MISMATCH" in result.output

    def test_validate_lenient(self, bad_file):
        assert CliRunner().invoke(main, ["validate", bad_file, "--lenient-checksums"]).exit_code == 0
        assert CliRunner().invoke(main, ["validate", bad_file, "--mode", "permissive"]).exit_code == 0
        assert CliRunner().invoke(main, ["validate", bad_file, "--profile", "legacy"]).exit_code == 0

    def test_validate_stdin(self):
        result = CliRunner().invoke(main, ["validate", "-"], input=CATALOG)
        assert result.exit_code == 0

    def test_validate_empty(self, tmp_path):
        path = tmp_path / "empty.tle"
        path.write_text("\n")
        result = CliRunner().invoke(main, ["validate", str(path)])
        assert result.exit_code == 0
        assert "No TLEs found" in result.output

    def test_parse(self, catalog_file, tmp_path):
        out = tmp_path / "elements.csv"
        result = CliRunner().invoke(main, ["parse", catalog_file, "--filter", "zarya", "-o", str(out)])
        assert result.exit_code == 0
        assert "Parsed 1 TLE(s)" in result.output
        assert out.read_text().startswith("norad_id,")

    def test_parse_failure(self, bad_file):
        result = CliRunner().invoke(main, ["parse", bad_file])
        assert result.exit_code == 1

    def test_scan(self, bad_file):
        assert CliRunner().invoke(main, ["scan", bad_file]).exit_code == 0
        assert CliRunner().invoke(main, ["scan", bad_file, "--strict"]).exit_code == 1
        assert CliRunner().invoke(main, ["scan", bad_file, "--no-recovery"]).exit_code == 1
        assert CliRunner().invoke(main, ["scan", bad_file, "--max-recovery", "0"]).exit_code == 1

    def test_report(self, catalog_file):
        result = CliRunner().invoke(main, ["-v", "report", catalog_file])
        assert result.exit_code == 0
        assert "TLE Report" in result.output

    def test_report_truncated_lines_recovered(self, tmp_path):
        path = tmp_path / "short.tle"
        path.write_text(f"{ISS_LINE1[:10]}\n{ISS_LINE2[:40]}\n")
        result = CliRunner().invoke(main, ["report", str(path)])
        assert result.exit_code == 0
        assert "INVALID_LINE_LENGTH" in result.output
        assert "RECOVERY_LIMIT_EXCEEDED" not in result.output

    def test_report_strict_failure(self, bad_file):
        result = CliRunner().invoke(main, ["report", bad_file, "--strict"])
        assert result.exit_code == 1
        assert "CHECKSUM_MISMATCH" in result.output
