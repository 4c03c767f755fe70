"""Tests for the findings log sink."""

import json
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from common.constants import ParamSource
from common.models import EncodedSignal, Finding, ScanReport
from scanner.analysis.scoring import score_finding
from scanner.reporting import FindingLogger, ReportKind, ReportRecord


def confirmed_report() -> ScanReport:
    finding = Finding(
        name="q",
        matches=[(3, 8)],
        context="html",
        source=ParamSource.URL,
        score=score_finding(confirmed=True, allowed_chars=["<"], context="html"),
        allowed_chars=["<"],
    )
    return ScanReport(endpoint="https://example.com/search", findings=[finding])


def signal_report() -> ScanReport:
    signal = EncodedSignal(name="q", source=ParamSource.URL, contexts={"attributeEscaped"}, count=1)
    return ScanReport(endpoint="https://example.com/search", encoded_signals=[signal])


class TestReportRecord:
    """Tests for ReportRecord."""

    def test_kind(self) -> None:
        """Test records are classified by content."""
        assert ReportRecord.from_report(confirmed_report()).kind == ReportKind.FINDINGS
        assert ReportRecord.from_report(signal_report()).kind == ReportKind.SIGNALS

    def test_to_json(self) -> None:
        """Test the serialized record."""
        data = json.loads(ReportRecord.from_report(confirmed_report()).to_json())

        assert data["kind"] == ReportKind.FINDINGS
        assert data["dedupe_key"] == "https://example.com/search|q@html"
        assert data["findings"][0]["allowed_chars"] == ["<"]
        assert data["findings"][0]["matches"] == [[3, 8]]
        assert "timestamp" in data


class TestFindingLogger:
    """Tests for FindingLogger."""

    @pytest.mark.asyncio
    async def test_writes_jsonl(self) -> None:
        """Test reports are appended as JSON lines."""
        with tempfile.TemporaryDirectory() as tmpdir:
            sink = FindingLogger(log_dir=tmpdir, enable_console=False)
            await sink.initialize()

            await sink(confirmed_report())
            await sink(signal_report())
            await sink.close()

            files = list(Path(tmpdir).glob("findings-*.jsonl"))
            assert len(files) == 1
            lines = files[0].read_text().splitlines()
            assert [json.loads(line)["kind"] for line in lines] == [
                ReportKind.FINDINGS,
                ReportKind.SIGNALS,
            ]

    @pytest.mark.asyncio
    async def test_filters_and_handlers(self) -> None:
        """Test filters drop records and handlers see the rest."""
        sink = FindingLogger(enable_console=False, enable_file=False)
        handler = MagicMock()
        sink.add_filter(lambda record: record.kind == ReportKind.FINDINGS)
        sink.add_handler(handler)

        await sink.log_report(confirmed_report())
        await sink.log_report(signal_report())

        handler.assert_called_once()
        stats = sink.get_stats()
        assert stats["total_reports"] == 1
        assert stats["total_findings"] == 1
        assert stats["reports_by_kind"] == {ReportKind.FINDINGS: 1}

    @pytest.mark.asyncio
    async def test_handler_errors_are_contained(self) -> None:
        """Test a failing handler does not stop logging."""
        sink = FindingLogger(enable_console=True, enable_file=False)
        sink.add_handler(MagicMock(side_effect=RuntimeError("boom")))

        await sink.log_report(confirmed_report())

        assert sink.get_stats()["total_reports"] == 1
