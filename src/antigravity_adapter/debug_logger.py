# src/antigravity_adapter/debug_logger.py
"""Per-transaction request/response dumps for debugging upstream calls."""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .utils.paths import get_logs_dir

lib_logger = logging.getLogger("antigravity_adapter")

TRANSACTIONS_SUBDIR = "antigravity_transactions"


class AntigravityFileLogger:
    """
    Writes one directory per upstream call under logs/antigravity_transactions/:

        request_payload.json   envelope as sent (inline images shortened)
        response_stream.log    raw SSE lines, one per line
        final_response.json    non-streaming response body
        error.log              transport/status errors and parse failures

    Disabled instances are no-ops, so callers never need to branch.
    """

    __slots__ = ("enabled", "log_dir")

    def __init__(
        self,
        model_name: str,
        enabled: bool = True,
        root: Optional[Union[Path, str]] = None,
    ):
        self.enabled = enabled
        self.log_dir: Optional[Path] = None

        if not enabled:
            return

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        safe_model = model_name.replace("/", "_").replace(":", "_")
        self.log_dir = (
            get_logs_dir(root)
            / TRANSACTIONS_SUBDIR
            / f"{timestamp}_{safe_model}_{uuid.uuid4().hex[:8]}"
        )

        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            lib_logger.error(f"Failed to create transaction log directory: {e}")
            self.enabled = False

    def log_request(self, payload: Dict[str, Any]) -> None:
        self._write_json("request_payload.json", payload)

    def log_response_chunk(self, line: str) -> None:
        self._append_text("response_stream.log", line)

    def log_final_response(self, response: Dict[str, Any]) -> None:
        self._write_json("final_response.json", response)

    def log_error(self, error_message: str) -> None:
        self._append_text(
            "error.log",
            f"[{datetime.now(timezone.utc).isoformat()}] {error_message}",
        )

    def _write_json(self, filename: str, data: Dict[str, Any]) -> None:
        if not self.enabled or not self.log_dir:
            return
        try:
            with open(self.log_dir / filename, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError) as e:
            lib_logger.error(f"Failed to write {filename}: {e}")

    def _append_text(self, filename: str, text: str) -> None:
        if not self.enabled or not self.log_dir:
            return
        try:
            with open(self.log_dir / filename, "a", encoding="utf-8") as f:
                f.write(text + "\n")
        except OSError as e:
            lib_logger.error(f"Failed to append to {filename}: {e}")
