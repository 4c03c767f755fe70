"""Findings Log - JSON-lines sink for scan reports."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from common.models import ScanReport

logger = logging.getLogger(__name__)

FindingSink = Callable[[ScanReport], Awaitable[None]]


class ReportKind:
    FINDINGS = "reflected_parameters"
    SIGNALS = "encoded_reflections"


@dataclass
class ReportRecord:
    """One emitted report, as written to the log."""

    kind: str
    report: ScanReport
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_report(cls, report: ScanReport) -> "ReportRecord":
        kind = ReportKind.FINDINGS if report.findings else ReportKind.SIGNALS
        return cls(kind=kind, report=report)

    def to_dict(self) -> dict[str, Any]:
        data = self.report.to_dict()
        data["kind"] = self.kind
        data["timestamp"] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class FindingLogger:
    """
    Writes scan reports to rotating JSON-lines files.

    Features:
    - Daily and size-based rotation
    - Record filters and extra handlers
    - Console summary through the module logger
    """

    def __init__(
        self,
        log_dir: str = "logs/findings",
        max_file_size: int = 10 * 1024 * 1024,  # 10 MB
        max_files: int = 10,
        enable_console: bool = True,
        enable_file: bool = True,
    ) -> None:
        """
        Initialize the findings log.

        Args:
            log_dir: Directory for log files
            max_file_size: Maximum file size before rotation
            max_files: Maximum number of log files to keep
            enable_console: Log a summary line per report
            enable_file: Write reports to disk
        """
        self._log_dir = Path(log_dir)
        self._max_file_size = max_file_size
        self._max_files = max_files
        self._enable_console = enable_console
        self._enable_file = enable_file
        self._current_file: Path | None = None
        self._file_handle: Any = None
        self._lock = asyncio.Lock()
        self._filters: list[Callable[[ReportRecord], bool]] = []
        self._handlers: list[Callable[[ReportRecord], None]] = []

        self._report_count = 0
        self._finding_count = 0
        self._reports_by_kind: dict[str, int] = {}

    async def initialize(self) -> None:
        if self._enable_file:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            await self._rotate_if_needed()

    async def __call__(self, report: ScanReport) -> None:
        await self.log_report(report)

    async def log_report(self, report: ScanReport) -> None:
        """
        Record one scan report.

        Args:
            report: Report emitted by the scanner
        """
        record = ReportRecord.from_report(report)

        for filter_func in self._filters:
            if not filter_func(record):
                return

        self._report_count += 1
        self._finding_count += len(report.findings)
        self._reports_by_kind[record.kind] = self._reports_by_kind.get(record.kind, 0) + 1

        for handler in self._handlers:
            try:
                handler(record)
            except Exception as e:
                logger.error(f"Findings handler error: {e}")

        if self._enable_console:
            self._write_console(record)
        if self._enable_file:
            await self._write_file(record.to_json())

    def _write_console(self, record: ReportRecord) -> None:
        report = record.report
        if report.findings:
            names = ", ".join(f"{f.name}@{f.context}" for f in report.findings)
            logger.info(f"[FINDINGS] {report.endpoint}: {len(report.findings)} reflected ({names})")
        else:
            names = ", ".join(s.name for s in report.encoded_signals)
            logger.info(f"[SIGNALS] {report.endpoint}: encoded reflections ({names})")

    async def _write_file(self, line: str) -> None:
        async with self._lock:
            await self._rotate_if_needed()

            if self._file_handle:
                try:
                    self._file_handle.write(line + "\n")
                    self._file_handle.flush()
                except OSError as e:
                    logger.error(f"Failed to write findings log: {e}")

    async def _rotate_if_needed(self) -> None:
        if not self._enable_file:
            return

        today = datetime.now(UTC).strftime("%Y-%m-%d")
        log_file = self._log_dir / f"findings-{today}.jsonl"

        if self._current_file == log_file and not (
            log_file.exists() and log_file.stat().st_size >= self._max_file_size
        ):
            return

        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

        if self._current_file == log_file:
            # Same day but over size: move the full file aside
            stamp = datetime.now(UTC).strftime("%H%M%S%f")
            log_file.rename(self._log_dir / f"findings-{today}-{stamp}.jsonl")

        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._current_file = log_file
        self._file_handle = open(log_file, "a", encoding="utf-8")
        self._cleanup_old_files()

    def _cleanup_old_files(self) -> None:
        """Remove old log files beyond max_files limit."""
        log_files = sorted(
            self._log_dir.glob("findings-*.jsonl"),
            key=lambda f: f.stat().st_mtime,
            reverse=True,
        )
        for old_file in log_files[self._max_files :]:
            try:
                old_file.unlink()
            except OSError as e:
                logger.error(f"Failed to delete old findings log: {e}")

    def add_filter(self, filter_func: Callable[[ReportRecord], bool]) -> None:
        """Add a record filter; records it rejects are dropped."""
        self._filters.append(filter_func)

    def add_handler(self, handler: Callable[[ReportRecord], None]) -> None:
        self._handlers.append(handler)

    async def close(self) -> None:
        async with self._lock:
            if self._file_handle:
                self._file_handle.close()
                self._file_handle = None

    def get_stats(self) -> dict[str, Any]:
        """Get findings log statistics."""
        return {
            "total_reports": self._report_count,
            "total_findings": self._finding_count,
            "reports_by_kind": dict(self._reports_by_kind),
            "log_dir": str(self._log_dir),
            "current_file": str(self._current_file) if self._current_file else None,
        }
