"""Scoring Model - Confidence, severity and combined score for a reflection."""

import math
import re
from collections.abc import Iterable

from common.constants import (
    CHAR_SCORE_CAP,
    CHAR_WEIGHTS,
    CONTEXT_WEIGHTS,
    DEFAULT_CONTEXT_WEIGHT,
    DEFAULT_HEADER_WEIGHT,
    HEADER_SEVERITY_FLOOR,
    HEADER_WEIGHTS,
    QUOTE_CHARS,
    QUOTE_WEIGHT,
    Confidence,
    Severity,
    Verdict,
)
from common.models import ScoreDelta, ScoreResult
from scanner.analysis.context_map import CanonicalContext, is_escaped_canonical, to_canonical

BASE_CONFIDENCE = 30
CONFIRMED_BONUS = 25
STABLE_BONUS = 10
MULTI_MATCH_CAP = 10
ESCAPED_CONFIDENCE_PENALTY = 12
ESCAPED_SEVERITY_PENALTY = 18
COMMENT_SEVERITY_PENALTY = 10
SCRIPT_QUOTE_BONUS = 12
SCRIPT_TAG_BONUS = 6
CHAR_SCORE_SCALE = 0.6

_SCRIPT_LABEL = re.compile(r"script", re.IGNORECASE)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _clamp(value: float) -> int:
    return max(0, min(100, int(value)))


def _clamp_with_note(value: int, label: str, penalties: list[ScoreDelta]) -> int:
    clamped = _clamp(value)
    if clamped != value:
        penalties.append(ScoreDelta(label, clamped - value))
    return clamped


def char_score(allowed_chars: Iterable[str]) -> int:
    """Sum the weights of the breakout characters, capped."""
    chars = set(allowed_chars)
    total = sum(CHAR_WEIGHTS.get(ch, 0) for ch in chars)
    if chars & QUOTE_CHARS:
        total += QUOTE_WEIGHT
    return min(CHAR_SCORE_CAP, total)


def context_weight(context: str) -> int:
    canonical = to_canonical(context)
    if canonical is None:
        return DEFAULT_CONTEXT_WEIGHT
    return CONTEXT_WEIGHTS.get(canonical.value, DEFAULT_CONTEXT_WEIGHT)


def header_weight(header_names: Iterable[str]) -> int:
    """Highest weight among the headers a value reflected into."""
    weights = [HEADER_WEIGHTS.get(name.lower(), DEFAULT_HEADER_WEIGHT) for name in header_names]
    return max(weights, default=DEFAULT_HEADER_WEIGHT)


def confidence_category(confidence: int) -> str:
    if confidence >= 75:
        return Confidence.VERY_HIGH
    if confidence >= 50:
        return Confidence.HIGH
    if confidence >= 35:
        return Confidence.MODERATE
    return Confidence.LOW


def severity_category(severity: int) -> str:
    if severity >= 85:
        return Severity.CRITICAL
    if severity >= 65:
        return Severity.HIGH
    if severity >= 40:
        return Severity.MEDIUM
    if severity >= 20:
        return Severity.LOW
    return Severity.INFO


def total_category(total: int) -> str:
    if total >= 55:
        return Verdict.STRONG
    if total >= 30:
        return Verdict.LIKELY
    return Verdict.WEAK


def score_finding(
    confirmed: bool,
    allowed_chars: Iterable[str],
    context: str,
    header: bool = False,
    header_names: Iterable[str] | None = None,
    match_count: int = 1,
    stable_probe: bool = False,
) -> ScoreResult:
    """
    Score a reflection from its evidence.

    Args:
        confirmed: Active probing confirmed a literal reflection
        allowed_chars: Breakout characters that survived
        context: Context label (canonical, report or generator label)
        header: The reflection is in response headers
        header_names: Headers the value reflected into
        match_count: Number of reflections found
        stable_probe: Probe responses matched the baseline fingerprint

    Returns:
        Confidence, severity, total, categories and rationale
    """
    chars = list(allowed_chars)
    canonical = to_canonical(context)
    escaped = is_escaped_canonical(context)
    confidence_steps: list[ScoreDelta] = [ScoreDelta("Base confidence", BASE_CONFIDENCE)]
    severity_steps: list[ScoreDelta] = []
    penalties: list[ScoreDelta] = []

    # Confidence
    confidence = BASE_CONFIDENCE
    if confirmed:
        confidence += CONFIRMED_BONUS
        confidence_steps.append(ScoreDelta("Confirmed reflection", CONFIRMED_BONUS))
    if stable_probe:
        confidence += STABLE_BONUS
        confidence_steps.append(ScoreDelta("Stable probe", STABLE_BONUS))
    if match_count > 1:
        bonus = min(MULTI_MATCH_CAP, 2 * match_count)
        confidence += bonus
        confidence_steps.append(ScoreDelta("Multiple matches", bonus))
    if escaped:
        confidence -= ESCAPED_CONFIDENCE_PENALTY
        penalties.append(ScoreDelta("Escaped context penalty", -ESCAPED_CONFIDENCE_PENALTY))
    confidence = _clamp_with_note(confidence, "Confidence clamp", penalties)

    # Severity
    if header:
        base = max(HEADER_SEVERITY_FLOOR, header_weight(header_names or []))
        severity_steps.append(ScoreDelta("Header base weight", base))
    else:
        base = context_weight(context)
        severity_steps.append(ScoreDelta("Context base weight", base))
    severity = base

    scaled = _round_half_up(char_score(chars) * CHAR_SCORE_SCALE)
    if scaled:
        severity += scaled
        severity_steps.append(ScoreDelta("Allowed characters", scaled))

    in_script = bool(_SCRIPT_LABEL.search(context)) or canonical in (
        CanonicalContext.JS,
        CanonicalContext.JS_IN_QUOTE,
    )
    if in_script and not header:
        if '"' in chars or "'" in chars:
            severity += SCRIPT_QUOTE_BONUS
            severity_steps.append(ScoreDelta("Script quote breakout", SCRIPT_QUOTE_BONUS))
        if "<" in chars:
            severity += SCRIPT_TAG_BONUS
            severity_steps.append(ScoreDelta("Script tag injection", SCRIPT_TAG_BONUS))

    if escaped:
        severity -= ESCAPED_SEVERITY_PENALTY
        penalties.append(ScoreDelta("Escaped context severity penalty", -ESCAPED_SEVERITY_PENALTY))
    if canonical is CanonicalContext.HTML_COMMENT:
        severity -= COMMENT_SEVERITY_PENALTY
        penalties.append(ScoreDelta("HTML comment penalty", -COMMENT_SEVERITY_PENALTY))
    severity = _clamp_with_note(severity, "Severity clamp", penalties)

    # Total rewards agreement between the two dimensions
    divergence = abs(confidence - severity)
    raw_total = 0.55 * confidence + 0.45 * severity - 0.1 * divergence
    if divergence:
        penalties.append(ScoreDelta("Divergence penalty", round(-0.1 * divergence, 2)))
    total = _clamp_with_note(_round_half_up(raw_total), "Total clamp", penalties)

    return ScoreResult(
        confidence=confidence,
        severity=severity,
        total=total,
        categories={
            "confidence": confidence_category(confidence),
            "severity": severity_category(severity),
            "total": total_category(total),
        },
        rationale={
            "confidence": confidence_steps,
            "severity": severity_steps,
            "penalties": penalties,
        },
    )
