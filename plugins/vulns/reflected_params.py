"""Reflected Parameters Plugin - Context-aware reflected parameter detection."""

import logging
from typing import Any

import httpx

from common.models import HttpRequest
from scanner.config import ScanConfig
from scanner.reflector import Reflector
from scanner.reporting import FindingSink
from scanner.stores import ScanState

logger = logging.getLogger(__name__)

__vuln_info__ = {
    "name": "Reflected Parameters",
    "vuln_id": "REFLECTED-PARAMS",
    "severity": "medium",
    "category": "injection",
    "description": "Confirms parameters reflected into response bodies or headers "
    "and reports which characters survive in each context",
    "version": "1.0.0",
    "references": [
        "https://owasp.org/www-community/attacks/xss/",
        "https://owasp.org/www-community/vulnerabilities/CRLF_Injection",
    ],
    "tags": ["xss", "crlf", "reflection", "injection"],
}


class ReflectedParams:
    """Reflected parameter checker."""

    def __init__(self, config: ScanConfig | None = None) -> None:
        self._config = config or ScanConfig.from_env()
        # One session: tested/errored parameters persist across targets
        self._state = ScanState()

    async def verify(self, target: str, http_client: Any, **kwargs: Any) -> dict[str, Any]:
        """
        Scan a target URL for reflected parameters.

        Args:
            target: Target URL, including the query string to test
            http_client: HttpClient instance
            **kwargs: ``method``, ``headers``, ``body`` for the baseline
                request and an optional ``sink`` for reports

        Returns:
            Vulnerability result with status and details
        """
        result: dict[str, Any] = {
            "vulnerable": False,
            "vulnerability": "Reflected Parameters",
            "severity": "info",
            "details": [],
            "encoded_signals": [],
        }

        request = HttpRequest.from_url(
            target,
            method=kwargs.get("method", "GET"),
            headers=kwargs.get("headers"),
            body=kwargs.get("body", ""),
        )
        try:
            response = await http_client.send(request)
        except httpx.TransportError as e:
            logger.warning(f"Baseline request to {target} failed: {e}")
            result["error"] = str(e)
            return result

        sink: FindingSink | None = kwargs.get("sink")
        reflector = Reflector(http_client.send, self._state, self._config, sink)
        report = await reflector.run_with_budget(request, response)
        if report is None:
            result["error"] = "scan budget exceeded"
            return result

        result["details"] = [f.to_dict() for f in report.findings]
        result["encoded_signals"] = [s.to_dict() for s in report.encoded_signals]
        confirmed = [f for f in report.findings if f.confirmed]
        if confirmed:
            result["vulnerable"] = True
            result["severity"] = max(confirmed, key=lambda f: f.severity).score.categories["severity"]
        return result

    async def cleanup(self, target: str, **kwargs: Any) -> None:
        """Forget tracked parameters."""
        self._state.reset()
