"""Stabilizer - Replace ambiguous parameter values with random tokens."""

import logging
from dataclasses import dataclass, field

from common.constants import DEFAULT_AMBIGUOUS_MAX_LENGTH, KEY_WORDS, NO_SNIFF_CONTENT_TYPES
from common.models import Parameter, RequestSpec, ResponseSpec, Sender
from common.utils.http import passes_content_type_gating
from common.utils.query import mutate_param_value
from common.utils.text import compute_keyword_counts, random_value
from scanner.stores import ErrorStore

logger = logging.getLogger(__name__)


class ProbeSendError(Exception):
    """Raised when a probe request could not be sent."""


async def send_probe(
    request: RequestSpec,
    params: list[tuple[Parameter, str]],
    send: Sender,
) -> tuple[RequestSpec, ResponseSpec]:
    """
    Send a clone of the request with the given parameter values.

    Args:
        request: Request to clone
        params: (parameter, new raw value) pairs
        send: Transport capability

    Returns:
        The mutated request and its response

    Raises:
        ProbeSendError: If the transport failed
    """
    probe = request.clone()
    for param, value in params:
        if not mutate_param_value(probe, param, value):
            logger.debug(f"Parameter {param.key!r} not found on request; left unchanged")
    try:
        response = await send(probe)
    except Exception as e:
        raise ProbeSendError(f"Probe send failed: {e}") from e
    return probe, response


def is_ambiguous(param: Parameter, max_length: int = DEFAULT_AMBIGUOUS_MAX_LENGTH) -> bool:
    return len(param.value) <= max_length


@dataclass
class StabilizationResult:
    """Input pair to continue with, after any adopted substitution."""

    request: RequestSpec
    response: ResponseSpec
    params: list[Parameter]
    adopted: list[str] = field(default_factory=list)


class Stabilizer:
    """Makes short parameter values attributable before reflection checks."""

    def __init__(
        self,
        send: Sender,
        errors: ErrorStore,
        no_sniff_content_types: frozenset[str] = NO_SNIFF_CONTENT_TYPES,
        max_length: int = DEFAULT_AMBIGUOUS_MAX_LENGTH,
    ) -> None:
        self._send = send
        self._errors = errors
        self._no_sniff = no_sniff_content_types
        self._max_length = max_length

    def _is_stable(self, response: ResponseSpec, code: int, signature: list[int]) -> bool:
        """Same gating outcome, status code and keyword fingerprint as the baseline."""
        if not passes_content_type_gating(
            response.get_header("Content-Type"),
            response.get_header("X-Content-Type-Options"),
            self._no_sniff,
        ):
            return False
        if response.get_code() != code:
            return False
        return compute_keyword_counts(response.get_body(), KEY_WORDS) == signature

    async def stabilize(
        self,
        endpoint: str,
        request: RequestSpec,
        response: ResponseSpec,
        params: list[Parameter],
    ) -> StabilizationResult:
        """
        Randomize ambiguous values, bulk first and then one at a time.

        Args:
            endpoint: Endpoint key for the error store
            request: Baseline request
            response: Baseline response
            params: Enumerated parameters (values updated in place on adoption)

        Returns:
            The request/response pair subsequent checks must use
        """
        result = StabilizationResult(request=request, response=response, params=params)
        ambiguous = [p for p in params if is_ambiguous(p, self._max_length)]
        if not ambiguous:
            return result

        code = response.get_code()
        signature = compute_keyword_counts(response.get_body(), KEY_WORDS)

        # Bulk attempt
        tokens = [(param, random_value()) for param in ambiguous]
        try:
            probe_request, probe_response = await send_probe(request, tokens, self._send)
            if self._is_stable(probe_response, code, signature):
                for param, token in tokens:
                    param.value = token
                    result.adopted.append(param.key)
                result.request, result.response = probe_request, probe_response
                logger.debug(f"Bulk stabilization adopted {len(tokens)} values on {endpoint}")
                return result
            logger.debug(f"Bulk stabilization unstable on {endpoint}; trying parameters one by one")
        except ProbeSendError as e:
            logger.warning(f"Bulk stabilization failed on {endpoint}: {e}")

        # Per-parameter fallback
        for param in ambiguous:
            if self._errors.has(endpoint, param):
                continue
            token = random_value()
            try:
                probe_request, probe_response = await send_probe(
                    result.request, [(param, token)], self._send
                )
            except ProbeSendError as e:
                self._errors.mark(endpoint, param, str(e))
                continue
            if self._is_stable(probe_response, code, signature):
                param.value = token
                result.adopted.append(param.key)
                result.request, result.response = probe_request, probe_response
            else:
                self._errors.mark(endpoint, param, "unstable response")
        return result
