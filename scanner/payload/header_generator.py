"""Header Payload Generator - Probe plans and survival checks for response headers."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from common.constants import DEFAULT_MARKER_LENGTH, HEADER_CHARSETS, UNIVERSAL_HEADER_CHARS
from common.utils.text import encode_uri_component, random_value

CRLF_CHARS = frozenset({"\n", "\r"})


@dataclass(frozen=True)
class HeaderMarker:
    """One probe character wrapped in random markers."""

    ch: str
    pre: str
    suf: str
    needle: str


@dataclass
class HeaderPlan:
    """Markers for every candidate character and the combined injected value."""

    markers: list[HeaderMarker] = field(default_factory=list)

    @property
    def injected_value(self) -> str:
        return "".join(marker.needle for marker in self.markers)


@dataclass
class HeaderDetection:
    """Characters that survived into response headers."""

    allowed_chars: list[str] = field(default_factory=list)
    crlf_injection: bool = False


def candidate_chars(header_names: Iterable[str], extra_chars: Iterable[str] = ()) -> list[str]:
    """Union of the per-header charsets, CR/LF and any extras, in first-seen order."""
    chars: list[str] = []
    for name in header_names:
        chars.extend(HEADER_CHARSETS.get(name.lower(), []))
    chars.extend(UNIVERSAL_HEADER_CHARS)
    chars.extend(extra_chars)
    return list(dict.fromkeys(chars))


def build_plan(header_names: Iterable[str], extra_chars: Iterable[str] = ()) -> HeaderPlan:
    """
    Build one marker per candidate character.

    Args:
        header_names: Headers the value reflected into
        extra_chars: Additional characters to probe

    Returns:
        Plan whose injected value probes every character in one request
    """
    plan = HeaderPlan()
    for ch in candidate_chars(header_names, extra_chars):
        pre = random_value(DEFAULT_MARKER_LENGTH)
        suf = random_value(DEFAULT_MARKER_LENGTH)
        plan.markers.append(
            HeaderMarker(ch=ch, pre=pre, suf=suf, needle=pre + encode_uri_component(ch) + suf)
        )
    return plan


def detect(
    headers: Mapping[str, str | list[str]],
    markers: Iterable[HeaderMarker],
) -> HeaderDetection:
    """
    Check which marker characters came back decoded in header values.

    Args:
        headers: Reflected header values by name
        markers: Markers of the plan that was sent

    Returns:
        Surviving characters and whether CR/LF survived
    """
    values: list[str] = []
    for value in headers.values():
        if isinstance(value, str):
            values.append(value)
        else:
            values.extend(value)
    joined = "\n".join(values)
    joined_lower = joined.lower()

    result = HeaderDetection()
    for marker in markers:
        if marker.pre + marker.ch + marker.suf in joined:
            if marker.ch not in result.allowed_chars:
                result.allowed_chars.append(marker.ch)
            if marker.ch in CRLF_CHARS:
                result.crlf_injection = True
        elif len(marker.ch) == 1 and marker.ch.isalpha():
            needle = (marker.pre + marker.ch + marker.suf).lower()
            if needle in joined_lower and marker.ch.lower() not in result.allowed_chars:
                result.allowed_chars.append(marker.ch.lower())
    return result
