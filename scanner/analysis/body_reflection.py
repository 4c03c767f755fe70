"""Body Reflection - Baseline matching, context generation and probing per parameter."""

import logging
from dataclasses import dataclass, field

from common.constants import DEFAULT_PROBE_BATCH_SIZE, KEY_WORDS, NO_SNIFF_CONTENT_TYPES
from common.models import (
    EncodedSignal,
    Finding,
    Parameter,
    RequestSpec,
    ResponseSpec,
    Sender,
)
from common.utils.http import build_endpoint, is_json_content_type
from common.utils.text import compute_keyword_counts, find_matches
from scanner.analysis.context_map import canonical_or_raw
from scanner.analysis.context_resolution import TagSpan, get_tags, resolve_best_context
from scanner.analysis.encoded_signals import detect_encoded_only
from scanner.analysis.params import enumerate_parameters
from scanner.analysis.probe_runner import ProbeBaseline, ProbeRunner
from scanner.analysis.scoring import score_finding
from scanner.analysis.stabilizer import Stabilizer
from scanner.payload.body_generator import BodyPayloadGenerator
from scanner.payload.json_generator import JsonPayloadGenerator
from scanner.stores import ScanState

logger = logging.getLogger(__name__)


@dataclass
class BodyScanResult:
    findings: list[Finding] = field(default_factory=list)
    encoded_signals: list[EncodedSignal] = field(default_factory=list)


class BodyReflectionScanner:
    """Confirms literal reflections of parameter values in the response body."""

    def __init__(
        self,
        send: Sender,
        state: ScanState,
        no_sniff_content_types: frozenset[str] = NO_SNIFF_CONTENT_TYPES,
        probe_batch_size: int = DEFAULT_PROBE_BATCH_SIZE,
    ) -> None:
        self._state = state
        self._stabilizer = Stabilizer(send, state.errored, no_sniff_content_types)
        self._runner = ProbeRunner(send, state.errored, no_sniff_content_types, probe_batch_size)

    async def scan(
        self,
        request: RequestSpec,
        response: ResponseSpec,
        params: list[Parameter] | None = None,
    ) -> BodyScanResult:
        """
        Scan the body of one response for reflected parameters.

        Args:
            request: Request that produced the response
            response: Response to analyse
            params: Enumerated parameters; enumerated with tracking when omitted

        Returns:
            Confirmed findings and encoded-only signals
        """
        result = BodyScanResult()
        endpoint = build_endpoint(request.get_tls(), request.get_host(), request.get_path())
        if params is None:
            params = enumerate_parameters(request, response, self._state.tested, track=True)
        if not params:
            return result

        stabilized = await self._stabilizer.stabilize(endpoint, request, response, params)
        request, response = stabilized.request, stabilized.response

        body = response.get_body()
        baseline_code = response.get_code()
        signature = compute_keyword_counts(body, KEY_WORDS)
        is_json = is_json_content_type(response.get_header("Content-Type"))
        generator = JsonPayloadGenerator(body) if is_json else BodyPayloadGenerator(body)
        tags = get_tags(body)

        for param in stabilized.params:
            if not param.value or self._state.errored.has(endpoint, param):
                continue
            try:
                finding = await self._check_parameter(
                    request, param, body, generator, tags, baseline_code, signature, endpoint, result
                )
            except Exception as e:
                # One parameter never aborts the others
                logger.error(f"Body reflection check failed for {param.key!r}: {e}")
                continue
            if finding is not None:
                result.findings.append(finding)
        return result

    async def _check_parameter(
        self,
        request: RequestSpec,
        param: Parameter,
        body: str,
        generator: BodyPayloadGenerator | JsonPayloadGenerator,
        tags: list[TagSpan],
        baseline_code: int,
        signature: list[int],
        endpoint: str,
        result: BodyScanResult,
    ) -> Finding | None:
        matches = find_matches(body, param.value)
        if not matches:
            signal = detect_encoded_only(body, param)
            if signal is not None:
                result.encoded_signals.append(signal)
            return None

        context_info = generator.generate(param.value)
        best_context = resolve_best_context(matches, body, context_info, tags)
        probe = await self._runner.run(
            request,
            param,
            context_info,
            ProbeBaseline(matches=matches, code=baseline_code, signature=signature),
            best_context,
            endpoint,
        )
        if not probe.confirmed:
            logger.debug(f"Reflection of {param.key!r} not confirmed ({best_context})")
            return None

        score = score_finding(
            confirmed=True,
            allowed_chars=probe.successful_chars,
            context=probe.best_context,
            match_count=len(matches),
            stable_probe=probe.probe_was_stable,
        )
        logger.info(
            f"Confirmed reflection of {param.key!r} in {probe.best_context} "
            f"chars={probe.successful_chars} score={score.total}"
        )
        return Finding(
            name=param.key,
            matches=matches,
            context=canonical_or_raw(probe.best_context),
            source=param.source,
            score=score,
            allowed_chars=probe.successful_chars,
        )
