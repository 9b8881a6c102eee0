"""Serialization helpers for tool results.

Strict JSON has no literal for ``NaN``/``Infinity`` and Starlette renders
responses with ``allow_nan=False``, so non-finite floats become ``None``
before a payload leaves the service. NumPy scalars produced by pandas are
unwrapped to plain Python numbers on the way.
"""
from __future__ import annotations

import math
from typing import Any

import numpy as np


def to_json_safe(obj: Any) -> Any:
    """Recursively convert ``obj`` into strict-JSON-compatible Python values."""
    if isinstance(obj, dict):
        return {str(key): to_json_safe(value) for key, value in obj.items()}

    if isinstance(obj, (list, tuple)):
        return [to_json_safe(item) for item in obj]

    if isinstance(obj, np.generic):
        obj = obj.item()

    if isinstance(obj, float) and not math.isfinite(obj):
        return None

    return obj
