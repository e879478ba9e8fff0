"""Utility modules for parley."""

from .json_helpers import extract_json, extract_json_object

__all__ = ["extract_json", "extract_json_object"]
