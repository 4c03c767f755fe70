"""Reflector - Scans one request/response pair for reflected parameters."""

import logging
from typing import Any

from common.constants import (
    COMMON_ANALYTICS_ENDPOINTS,
    COMMON_ANALYTICS_HOSTS,
    SCANNABLE_METHODS,
)
from common.models import (
    EncodedSignal,
    Finding,
    Parameter,
    RequestSpec,
    ResponseSpec,
    ScanReport,
    Sender,
)
from common.utils.http import build_endpoint, passes_content_type_gating
from scanner.analysis.body_reflection import BodyReflectionScanner
from scanner.analysis.encoded_signals import merge_encoded_signals
from scanner.analysis.header_reflection import HeaderReflectionScanner
from scanner.analysis.params import enumerate_parameters
from scanner.analysis.scoring import score_finding
from scanner.config import ScanConfig
from scanner.reporting import FindingSink
from scanner.security import ScanBudget
from scanner.stores import ScanState

logger = logging.getLogger(__name__)

# Representative context for an encoded-only finding, first present wins
ENCODED_CONTEXT_PRIORITY = ["attributeEscaped", "eventHandlerEscaped", "jsonEscaped"]


def encoded_finding(signal: EncodedSignal) -> Finding:
    """Turn a merged encoded signal into a low-confidence, unconfirmed finding."""
    context = next((c for c in ENCODED_CONTEXT_PRIORITY if c in signal.contexts), "html")
    score = score_finding(
        confirmed=False,
        allowed_chars=[],
        context=context,
        match_count=signal.count,
    )
    return Finding(
        name=signal.name,
        matches=[],
        context=context,
        source=signal.source,
        score=score,
        confirmed=False,
        match_count=signal.count,
    )


class Reflector:
    """
    Orchestrates header and body reflection checks for one exchange.

    Tested and errored parameters live in the injected ``ScanState`` so a
    session can be shared across many scans, or reset between tests.
    """

    def __init__(
        self,
        send: Sender,
        state: ScanState | None = None,
        config: ScanConfig | None = None,
        sink: FindingSink | None = None,
        budget: ScanBudget | None = None,
    ) -> None:
        self._send = send
        self._state = state or ScanState()
        self._config = config or ScanConfig()
        self._sink = sink
        self._budget = budget or ScanBudget(self._config.scan_timeout)
        self._emitted: set[str] = set()
        self._scans = 0
        self._reports = 0

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def config(self) -> ScanConfig:
        return self._config

    def update_config(self, config: ScanConfig) -> None:
        """Swap the config, e.g. from a ConfigLoader reload callback."""
        self._config = config
        logger.info(f"Reflector config updated (mode={config.mode})")

    def should_scan_body(self, request: RequestSpec, response: ResponseSpec) -> bool:
        """Apply content-type, method, host, path and empty-body gating."""
        if not passes_content_type_gating(
            response.get_header("Content-Type"),
            response.get_header("X-Content-Type-Options"),
            self._config.no_sniff_content_types,
        ):
            logger.debug("Body scan skipped: content type is not sniff-sensitive")
            return False
        if request.get_method().upper() not in SCANNABLE_METHODS:
            logger.debug(f"Body scan skipped: method {request.get_method()}")
            return False
        if request.get_host().lower() in COMMON_ANALYTICS_HOSTS:
            logger.debug(f"Body scan skipped: analytics host {request.get_host()}")
            return False
        if request.get_path() in COMMON_ANALYTICS_ENDPOINTS:
            logger.debug(f"Body scan skipped: analytics endpoint {request.get_path()}")
            return False
        if not response.get_body():
            logger.debug("Body scan skipped: empty body")
            return False
        return True

    async def run(
        self,
        request: RequestSpec,
        response: ResponseSpec,
        params: list[Parameter] | None = None,
    ) -> ScanReport:
        """
        Scan one request/response pair.

        Args:
            request: Request to probe from
            response: Response the request produced
            params: Pre-enumerated parameters; enumerated here when omitted

        Returns:
            The report, whether or not it was emitted
        """
        self._scans += 1
        endpoint = build_endpoint(request.get_tls(), request.get_host(), request.get_path())
        report = ScanReport(endpoint=endpoint)

        if self._config.check_response_header_reflections:
            header_params = params
            if header_params is None:
                header_params = enumerate_parameters(request, response, track=False)
            scanner = HeaderReflectionScanner(self._send, self._state.errored)
            report.findings.extend(await scanner.scan(request, response, header_params, endpoint))

        signals: list[EncodedSignal] = []
        if self.should_scan_body(request, response):
            body_scanner = BodyReflectionScanner(
                self._send,
                self._state,
                self._config.no_sniff_content_types,
                self._config.probe_batch_size,
            )
            body = await body_scanner.scan(request, response, params)
            report.findings.extend(body.findings)
            signals = body.encoded_signals
        else:
            logger.debug(f"Body reflection scan skipped for {endpoint}; header results retained")

        if signals and (self._config.exploratory or self._config.log_unconfirmed_findings):
            for signal in merge_encoded_signals(signals).values():
                report.findings.append(encoded_finding(signal))
        if self._config.report_signals:
            report.encoded_signals = signals

        if report.findings:
            logger.info(f"Found {len(report.findings)} reflected parameter(s) on {endpoint}")
        else:
            logger.debug(f"No reflected parameters found on {endpoint}")

        await self._emit(report)
        return report

    async def run_with_budget(
        self,
        request: RequestSpec,
        response: ResponseSpec,
        params: list[Parameter] | None = None,
    ) -> ScanReport | None:
        """Run a scan under the wall-clock budget; None if it ran out."""
        return await self._budget.run_or_abandon(
            self.run(request, response, params),
            host=request.get_host(),
        )

    async def _emit(self, report: ScanReport) -> None:
        if not report.findings and not report.encoded_signals:
            return
        if self._sink is None:
            return
        key = report.dedupe_key
        if key in self._emitted:
            logger.debug(f"Suppressed duplicate report {key}")
            return
        self._emitted.add(key)
        self._reports += 1
        await self._sink(report)

    def get_stats(self) -> dict[str, Any]:
        """Get reflector statistics."""
        return {
            "mode": self._config.mode,
            "scans": self._scans,
            "reports_emitted": self._reports,
            "tested": self._state.tested.get_stats(),
            "errored": self._state.errored.get_stats(),
            "budget": self._budget.get_stats(),
        }
