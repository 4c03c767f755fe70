"""Payload - Context classification and probe alphabets for bodies and headers."""

from scanner.payload.body_generator import BodyPayloadGenerator
from scanner.payload.document import Document
from scanner.payload.json_generator import JsonPayloadGenerator

__all__ = [
    "BodyPayloadGenerator",
    "Document",
    "JsonPayloadGenerator",
]
