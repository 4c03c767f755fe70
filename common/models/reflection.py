"""Reflection Models - Parameters, context info, probe results and findings."""

from dataclasses import dataclass, field
from typing import Any

Match = tuple[int, int]


@dataclass
class Parameter:
    """A request parameter observed on one request/response pair."""

    key: str
    value: str
    source: str
    method: str = "GET"
    code: int = 200

    @property
    def identity(self) -> tuple[str, str, str, int]:
        """Tracking identity; the value is deliberately not part of it."""
        return (self.key, self.source, self.method, self.code)


@dataclass
class ContextInfo:
    """Probe alphabet and observed context labels for one reflected value."""

    payload: list[str] = field(default_factory=list)
    context: list[str] = field(default_factory=list)

    def add_payload(self, *chars: str) -> None:
        for ch in chars:
            if ch not in self.payload:
                self.payload.append(ch)

    def add_context(self, label: str) -> None:
        if label not in self.context:
            self.context.append(label)


@dataclass(frozen=True)
class Detection:
    """A probe character literally found in a given context."""

    char: str
    context: str


@dataclass
class ProbeResult:
    """Outcome of one probing session for a parameter."""

    confirmed: bool = False
    successful_chars: list[str] = field(default_factory=list)
    best_context: str = "html"
    probe_was_stable: bool = False


@dataclass
class EncodedSignal:
    """A value that reflected only in an encoded or escaped form."""

    name: str
    source: str
    contexts: set[str] = field(default_factory=set)
    evidence: set[str] = field(default_factory=set)
    count: int = 0

    def merge(self, other: "EncodedSignal") -> None:
        self.contexts |= other.contexts
        self.evidence |= other.evidence
        self.count += other.count

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "source": self.source,
            "contexts": sorted(self.contexts),
            "evidence": sorted(self.evidence),
            "count": self.count,
        }


@dataclass
class ScoreDelta:
    """One named step of a score computation."""

    label: str
    delta: float


@dataclass
class ScoreResult:
    """Scoring output with categories and rationale."""

    confidence: int
    severity: int
    total: int
    categories: dict[str, str] = field(default_factory=dict)
    rationale: dict[str, list[ScoreDelta]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "confidence": self.confidence,
            "severity": self.severity,
            "total": self.total,
            "categories": dict(self.categories),
            "rationale": {
                section: [{"label": d.label, "delta": d.delta} for d in deltas]
                for section, deltas in self.rationale.items()
            },
        }


@dataclass
class Finding:
    """
    A confirmed (or exploratory) reflection finding.

    ``matches`` holds body offsets only; header and encoded-only findings
    leave it empty and carry their reflection count in ``match_count``.
    """

    name: str
    matches: list[Match]
    context: str
    source: str
    score: ScoreResult
    allowed_chars: list[str] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    crlf_injection: bool = False
    confirmed: bool = True
    match_count: int = 0

    def __post_init__(self) -> None:
        if not self.match_count:
            self.match_count = len(self.matches)

    @property
    def confidence(self) -> int:
        return self.score.confidence

    @property
    def severity(self) -> int:
        return self.score.severity

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "matches": [list(m) for m in self.matches],
            "match_count": self.match_count,
            "context": self.context,
            "source": self.source,
            "allowed_chars": list(self.allowed_chars),
            "headers": list(self.headers),
            "crlf_injection": self.crlf_injection,
            "confirmed": self.confirmed,
            "confidence": self.confidence,
            "severity": self.severity,
            "score": self.score.to_dict(),
        }


@dataclass
class ScanReport:
    """Everything one scan of a request/response pair produced."""

    endpoint: str
    findings: list[Finding] = field(default_factory=list)
    encoded_signals: list[EncodedSignal] = field(default_factory=list)

    @property
    def dedupe_key(self) -> str:
        """Key used by sinks to drop repeated reports for the same endpoint."""
        names = sorted(f"{f.name}@{f.context.lower()}" for f in self.findings)
        return f"{self.endpoint}|{','.join(names)}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "dedupe_key": self.dedupe_key,
            "findings": [f.to_dict() for f in self.findings],
            "encoded_signals": [s.to_dict() for s in self.encoded_signals],
        }
