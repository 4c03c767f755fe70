"""Header Reflection - Confirm parameter values echoed into response headers."""

import logging
from dataclasses import dataclass, field

from common.constants import DEFAULT_RANDOM_LENGTH, HEADER_CANARY_PREFIX, ParamSource
from common.models import Finding, Parameter, RequestSpec, ResponseSpec, Sender
from common.utils.text import random_value
from scanner.analysis.scoring import score_finding
from scanner.analysis.stabilizer import ProbeSendError, send_probe
from scanner.payload import header_generator
from scanner.stores import ErrorStore

logger = logging.getLogger(__name__)

HEADER_CONTEXT = "Response Header"


@dataclass
class HeaderConfirmation:
    """Headers that echoed the canary and the characters that survived."""

    headers: list[str] = field(default_factory=list)
    allowed_chars: list[str] = field(default_factory=list)
    crlf_injection: bool = False


def candidate_headers(response: ResponseSpec, value: str) -> list[str]:
    """Header names whose values contain the parameter value, case-insensitively."""
    needle = value.lower()
    return [
        name
        for name, values in response.get_headers().items()
        if needle in "\n".join(values).lower()
    ]


class HeaderReflectionScanner:
    """Finds and confirms parameters reflected into response headers."""

    def __init__(self, send: Sender, errors: ErrorStore | None = None) -> None:
        self._send = send
        self._errors = errors

    async def confirm(
        self,
        request: RequestSpec,
        param: Parameter,
        header_names: list[str],
        endpoint: str = "",
    ) -> HeaderConfirmation:
        """
        Re-send the request with a canary plus the header probe plan.

        Args:
            request: Original request
            param: Parameter suspected of reflecting
            header_names: Headers that contained the original value
            endpoint: Endpoint key for the error store

        Returns:
            Confirmed headers and surviving characters; empty on failure
        """
        result = HeaderConfirmation()
        if param.source == ParamSource.COOKIE:
            # Cookie values are not rewritten for header confirmation
            logger.debug(f"Skipping header confirmation for cookie parameter {param.key!r}")
            return result

        canary = HEADER_CANARY_PREFIX + random_value(DEFAULT_RANDOM_LENGTH)
        plan = header_generator.build_plan(header_names)
        try:
            _, response = await send_probe(
                request, [(param, canary + plan.injected_value)], self._send
            )
        except ProbeSendError as e:
            logger.warning(f"Header confirmation for {param.key!r} failed: {e}")
            if self._errors is not None:
                self._errors.mark(endpoint, param, str(e))
            return result

        lowered_canary = canary.lower()
        reflected: dict[str, list[str]] = {}
        for name, values in response.get_headers().items():
            if name.lower() not in {h.lower() for h in header_names}:
                continue
            if any(lowered_canary in value.lower() for value in values):
                result.headers.append(name)
                reflected[name] = values

        if result.headers:
            detection = header_generator.detect(reflected, plan.markers)
            result.allowed_chars = detection.allowed_chars
            result.crlf_injection = detection.crlf_injection
        return result

    async def scan(
        self,
        request: RequestSpec,
        response: ResponseSpec,
        params: list[Parameter],
        endpoint: str = "",
    ) -> list[Finding]:
        """
        Check every parameter for header reflection.

        Args:
            request: Original request
            response: Original response
            params: Parameters to check (not tracked)
            endpoint: Endpoint key for the error store

        Returns:
            One finding per confirmed parameter
        """
        findings: list[Finding] = []
        for param in params:
            if not param.value:
                continue
            if self._errors is not None and self._errors.has(endpoint, param):
                continue
            potential = candidate_headers(response, param.value)
            if not potential:
                continue

            confirmation = await self.confirm(request, param, potential, endpoint)
            if not confirmation.headers:
                continue

            score = score_finding(
                confirmed=True,
                allowed_chars=confirmation.allowed_chars,
                context=HEADER_CONTEXT,
                header=True,
                header_names=confirmation.headers,
                match_count=len(confirmation.headers),
            )
            findings.append(
                Finding(
                    name=param.key,
                    matches=[],
                    context=HEADER_CONTEXT,
                    source=param.source,
                    score=score,
                    allowed_chars=confirmation.allowed_chars,
                    headers=confirmation.headers,
                    crlf_injection=confirmation.crlf_injection,
                    match_count=len(confirmation.headers),
                )
            )
            logger.info(
                f"Header reflection confirmed for {param.key!r} in {', '.join(confirmation.headers)}"
            )
        return findings
