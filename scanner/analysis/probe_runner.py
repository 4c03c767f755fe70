"""Probe Runner - Batched active confirmation of breakout characters."""

import logging
from dataclasses import dataclass

from common.constants import (
    DEFAULT_MARKER_LENGTH,
    DEFAULT_PROBE_BATCH_SIZE,
    KEY_WORDS,
    NO_SNIFF_CONTENT_TYPES,
)
from common.models import ContextInfo, Detection, Match, Parameter, ProbeResult, RequestSpec, Sender
from common.utils.http import is_json_content_type, passes_content_type_gating
from common.utils.text import compute_keyword_counts, encode_uri_component, find_matches, random_value
from scanner.analysis.context_map import (
    allowed_detection_contexts_for,
    canonical_or_raw,
    is_literal_context,
)
from scanner.analysis.stabilizer import ProbeSendError, send_probe
from scanner.payload.body_generator import BodyPayloadGenerator
from scanner.payload.json_generator import JsonPayloadGenerator
from scanner.stores import ErrorStore

logger = logging.getLogger(__name__)

_GENERIC_CONTEXTS = ("html", "body")


@dataclass(frozen=True)
class ProbeMarker:
    ch: str
    pre: str
    suf: str

    @property
    def encoded(self) -> str:
        return self.pre + encode_uri_component(self.ch) + self.suf

    @property
    def decoded(self) -> str:
        return self.pre + self.ch + self.suf


@dataclass
class ProbeBaseline:
    """Reference values every probe response is compared against."""

    matches: list[Match]
    code: int
    signature: list[int]


class ProbeRunner:
    """Confirms which characters of a probe alphabet survive unescaped."""

    def __init__(
        self,
        send: Sender,
        errors: ErrorStore | None = None,
        no_sniff_content_types: frozenset[str] = NO_SNIFF_CONTENT_TYPES,
        batch_size: int = DEFAULT_PROBE_BATCH_SIZE,
    ) -> None:
        self._send = send
        self._errors = errors
        self._no_sniff = no_sniff_content_types
        self._batch_size = batch_size

    async def run(
        self,
        request: RequestSpec,
        param: Parameter,
        context_info: ContextInfo,
        baseline: ProbeBaseline,
        best_context: str,
        endpoint: str = "",
    ) -> ProbeResult:
        """
        Probe a parameter with its candidate characters.

        Args:
            request: Request to clone for each batch
            param: Parameter to inject into
            context_info: Candidate alphabet and observed contexts
            baseline: Baseline matches, status code and keyword signature
            best_context: Current best context label
            endpoint: Endpoint key for the error store

        Returns:
            Confirmation, surviving characters, final best context, stability
        """
        result = ProbeResult(best_context=best_context)
        if not context_info.payload:
            return result

        chars = list(context_info.payload)
        for offset in range(0, len(chars), self._batch_size):
            batch = [
                ProbeMarker(ch, random_value(DEFAULT_MARKER_LENGTH), random_value(DEFAULT_MARKER_LENGTH))
                for ch in chars[offset : offset + self._batch_size]
            ]
            injected = "".join(marker.encoded for marker in batch)
            try:
                _, response = await send_probe(request, [(param, injected)], self._send)
            except ProbeSendError as e:
                logger.warning(f"Probe batch for {param.key!r} failed: {e}")
                if self._errors is not None:
                    self._errors.mark(endpoint, param, str(e))
                continue

            content_type = response.get_header("Content-Type")
            if not passes_content_type_gating(
                content_type, response.get_header("X-Content-Type-Options"), self._no_sniff
            ):
                logger.debug(f"Probe response for {param.key!r} gated out by content type")
                continue

            body = response.get_body()
            if (
                response.get_code() == baseline.code
                and compute_keyword_counts(body, KEY_WORDS) == baseline.signature
            ):
                result.probe_was_stable = True

            is_json = is_json_content_type(content_type)
            detector = JsonPayloadGenerator(body) if is_json else BodyPayloadGenerator(body)

            for marker in batch:
                found = bool(find_matches(body, marker.encoded)) or (
                    is_json and bool(find_matches(body, marker.decoded))
                )
                if not found:
                    continue
                detections = detector.detect(context_info.context, marker.pre, marker.ch, marker.suf)
                if not detections:
                    continue
                result.confirmed = True
                self._credit(result, marker.ch, detections)

        return result

    def _credit(self, result: ProbeResult, ch: str, detections: list[Detection]) -> None:
        """Count a character only for literal detections in an accepted context."""
        literal = [d for d in detections if is_literal_context(d.context)]
        if not literal:
            return
        allowed = {ctx.value for ctx in allowed_detection_contexts_for(result.best_context)}
        if any(not allowed or canonical_or_raw(d.context) in allowed for d in literal):
            if ch not in result.successful_chars:
                result.successful_chars.append(ch)
        if result.best_context.strip().lower() in _GENERIC_CONTEXTS:
            # Only the generic placeholder is ever replaced
            result.best_context = literal[0].context
