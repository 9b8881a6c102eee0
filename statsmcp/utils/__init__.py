"""Utility functions for statsmcp."""
from .retry import RetryConfig, is_retryable_error, retry_async, with_retry
from .values import MISSING_SENTINELS, StatValue, parse_stat_value, present_numbers
from .serialization import to_json_safe

__all__ = [
    # Retry utilities
    'RetryConfig',
    'is_retryable_error',
    'retry_async',
    'with_retry',
    # Tagged values
    'MISSING_SENTINELS',
    'StatValue',
    'parse_stat_value',
    'present_numbers',
    # Serialization
    'to_json_safe',
]
