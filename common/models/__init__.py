"""Models - Shared data types."""

from common.models.http import HttpRequest, HttpResponse, RequestSpec, ResponseSpec, Sender
from common.models.reflection import (
    ContextInfo,
    Detection,
    EncodedSignal,
    Finding,
    Match,
    Parameter,
    ProbeResult,
    ScanReport,
    ScoreDelta,
    ScoreResult,
)

__all__ = [
    "HttpRequest",
    "HttpResponse",
    "RequestSpec",
    "ResponseSpec",
    "Sender",
    "ContextInfo",
    "Detection",
    "EncodedSignal",
    "Finding",
    "Match",
    "Parameter",
    "ProbeResult",
    "ScanReport",
    "ScoreDelta",
    "ScoreResult",
]
