"""Utilities - Text matching, query handling and HTTP helpers."""
