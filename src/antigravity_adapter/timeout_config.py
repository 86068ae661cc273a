# src/antigravity_adapter/timeout_config.py
"""
Timeouts for upstream Antigravity requests.

Every value can be overridden via environment variables:
    ANTIGRAVITY_TIMEOUT_CONNECT - TCP/TLS establishment, including DNS (default: 30s)
    ANTIGRAVITY_TIMEOUT_WRITE - Request body send (default: 30s)
    ANTIGRAVITY_TIMEOUT_POOL - Waiting for a pooled connection (default: 60s)
    ANTIGRAVITY_TIMEOUT_READ_STREAMING - Gap allowed between SSE chunks (default: 180s)
    ANTIGRAVITY_TIMEOUT_READ_NON_STREAMING - Whole generateContent body (default: 600s)
"""

import os
import logging
from typing import Optional

import httpx

lib_logger = logging.getLogger("antigravity_adapter")


class TimeoutConfig:
    """Builds httpx.Timeout objects for streaming and non-streaming calls."""

    _CONNECT = 30.0
    _WRITE = 30.0
    _POOL = 60.0
    _READ_STREAMING = 180.0
    _READ_NON_STREAMING = 600.0

    @classmethod
    def _get_env_float(cls, suffix: str, default: float) -> float:
        key = f"ANTIGRAVITY_TIMEOUT_{suffix}"
        value = os.environ.get(key)
        if value is not None:
            try:
                return float(value)
            except ValueError:
                lib_logger.warning(
                    f"Invalid value for {key}: {value}. Using default: {default}"
                )
        return default

    @classmethod
    def _build(cls, read_suffix: str, read_default: float, read_override: Optional[float]) -> httpx.Timeout:
        read = (
            read_override
            if read_override is not None
            else cls._get_env_float(read_suffix, read_default)
        )
        return httpx.Timeout(
            connect=cls._get_env_float("CONNECT", cls._CONNECT),
            read=read,
            write=cls._get_env_float("WRITE", cls._WRITE),
            pool=cls._get_env_float("POOL", cls._POOL),
        )

    @classmethod
    def streaming(cls, read_override: Optional[float] = None) -> httpx.Timeout:
        """
        Timeout for streamGenerateContent.

        The read timeout bounds the silence between two SSE chunks, not the
        total duration, so a long thinking stream is fine as long as it keeps
        emitting.
        """
        return cls._build("READ_STREAMING", cls._READ_STREAMING, read_override)

    @classmethod
    def non_streaming(cls, read_override: Optional[float] = None) -> httpx.Timeout:
        """Timeout for generateContent, where nothing arrives until the model is done."""
        return cls._build("READ_NON_STREAMING", cls._READ_NON_STREAMING, read_override)
