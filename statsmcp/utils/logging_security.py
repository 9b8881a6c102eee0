"""
Secure logging utilities with credential redaction.

Upstream statistics APIs take their credentials as query parameters
(e-Stat's ``appId``), so request URLs and parameter maps are redacted
before they are logged or copied into error payloads.
"""
import json
import logging
import time
import uuid
from typing import Any, Dict, Optional, Set
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"


class SecureLogger:
    """
    Request/response log formatter with automatic redaction.

    Features:
    - Redacts sensitive query parameters (API keys, application ids, tokens)
    - Redacts credentials embedded in URLs
    - Generates call ids for correlating tool request/response lines
    """

    # Parameter names that should be redacted (substring match, case-insensitive)
    SENSITIVE_PARAMS: Set[str] = {
        'appid',
        'api_key',
        'apikey',
        'password',
        'secret',
        'token',
        'access_token',
        'client_secret',
        'credentials',
    }

    @classmethod
    def is_sensitive(cls, key: str) -> bool:
        key_lower = str(key).lower().strip()
        return any(sensitive in key_lower for sensitive in cls.SENSITIVE_PARAMS)

    @classmethod
    def generate_call_id(cls) -> str:
        """
        Generate a unique call id for log correlation.
        Format: call_[timestamp]_[random]
        """
        timestamp = int(time.time() * 1000)
        random_part = uuid.uuid4().hex[:8]
        return f"call_{timestamp}_{random_part}"

    @classmethod
    def sanitize_params(cls, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Redact sensitive query parameters

        Args:
            params: Query parameters

        Returns:
            Sanitized parameters
        """
        if not params:
            return {}

        return {
            key: REDACTED if cls.is_sensitive(key) else value
            for key, value in params.items()
        }

    @classmethod
    def redact_url(cls, url: str) -> str:
        """Replace the values of sensitive query parameters inside a URL."""
        if not url:
            return url

        parts = urlsplit(url)
        if not parts.query:
            return url

        query = [
            (key, REDACTED if cls.is_sensitive(key) else value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
        ]
        return urlunsplit(parts._replace(query=urlencode(query, safe="[]")))

    @classmethod
    def sanitize_body(cls, body: Any, max_depth: int = 3, current_depth: int = 0) -> Any:
        """
        Recursively sanitize a tool argument or result body

        Args:
            body: Body content (dict, list, or primitive)
            max_depth: Maximum recursion depth
            current_depth: Current recursion level

        Returns:
            Sanitized body
        """
        if current_depth >= max_depth:
            return "[MAX_DEPTH_REACHED]"

        if isinstance(body, dict):
            return {
                key: REDACTED if cls.is_sensitive(key)
                else cls.sanitize_body(value, max_depth, current_depth + 1)
                for key, value in body.items()
            }

        if isinstance(body, list):
            if len(body) > 100:
                return f"[LIST_TOO_LONG: {len(body)} items]"
            return [cls.sanitize_body(item, max_depth, current_depth + 1) for item in body]

        if isinstance(body, str) and len(body) > 500:
            return body[:500] + '...[TRUNCATED]'

        return body


def log_tool_request(tool: str, args: Dict[str, Any], call_id: str) -> None:
    """Log an incoming tool call with its sanitized arguments."""
    log_secure("info", "Tool request", {
        "tool": tool,
        "args": SecureLogger.sanitize_body(args),
    }, call_id)


def log_tool_response(tool: str, success: bool, duration_ms: float, call_id: str) -> None:
    """Log the outcome of a tool call."""
    log_secure("info" if success else "warning", "Tool response", {
        "tool": tool,
        "success": success,
        "duration_ms": round(duration_ms, 2),
    }, call_id)


def log_secure(level: str, message: str, data: Dict[str, Any], call_id: Optional[str] = None):
    """
    Helper for consistent structured logging

    Args:
        level: Log level (info, warning, error)
        message: Log message
        data: Structured data to log
        call_id: Optional call id for correlation
    """
    if call_id:
        data["call_id"] = call_id

    log_json = json.dumps({"message": message, "data": data}, default=str)

    if level == "info":
        logger.info(log_json)
    elif level == "warning":
        logger.warning(log_json)
    elif level == "error":
        logger.error(log_json)
    else:
        logger.debug(log_json)
