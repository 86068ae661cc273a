"""
Tests for transaction dumps and logging setup.
"""
import json
import logging

from antigravity_adapter.debug_logger import TRANSACTIONS_SUBDIR, AntigravityFileLogger
from antigravity_adapter.logging_config import (
    AdapterDebugFilter,
    NoLiteLLMLogFilter,
    configure_logging,
)


def _record(name, level):
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


class TestAntigravityFileLogger:

    def test_writes_transaction_files(self, tmp_path):
        logger = AntigravityFileLogger("models/gemini-2.5-flash", root=tmp_path)
        logger.log_request({"model": "gemini-2.5-flash"})
        logger.log_response_chunk('data: {"response": {}}')
        logger.log_response_chunk("data: [DONE]")
        logger.log_final_response({"response": {"candidates": []}})
        logger.log_error("HTTP 500")

        assert logger.log_dir.parent == tmp_path / "logs" / TRANSACTIONS_SUBDIR
        assert "models_gemini-2.5-flash" in logger.log_dir.name

        with open(logger.log_dir / "request_payload.json", encoding="utf-8") as f:
            assert json.load(f) == {"model": "gemini-2.5-flash"}
        stream_lines = (logger.log_dir / "response_stream.log").read_text().splitlines()
        assert stream_lines == ['data: {"response": {}}', "data: [DONE]"]
        assert (logger.log_dir / "final_response.json").exists()
        assert "HTTP 500" in (logger.log_dir / "error.log").read_text()

    def test_disabled_logger_writes_nothing(self, tmp_path):
        logger = AntigravityFileLogger("m", enabled=False, root=tmp_path)
        logger.log_request({"a": 1})
        logger.log_error("boom")
        assert logger.log_dir is None
        assert not (tmp_path / "logs").exists()


class TestLoggingConfig:

    def test_filters(self):
        debug_filter = AdapterDebugFilter()
        assert debug_filter.filter(_record("antigravity_adapter.client", logging.DEBUG))
        assert not debug_filter.filter(_record("antigravity_adapter", logging.INFO))
        assert not debug_filter.filter(_record("httpx", logging.DEBUG))

        assert not NoLiteLLMLogFilter().filter(_record("LiteLLM", logging.INFO))
        assert NoLiteLLMLogFilter().filter(_record("antigravity_adapter", logging.INFO))

    def test_configure_creates_log_files_and_replaces_handlers(self, tmp_path):
        root_logger = logging.getLogger()
        try:
            configure_logging(root=tmp_path)
            configure_logging(root=tmp_path)
            ours = [h for h in root_logger.handlers if getattr(h, "_antigravity_adapter", False)]
            assert len(ours) == 3

            logger = logging.getLogger("antigravity_adapter")
            logger.debug("debug line")
            logger.info("info line")
            for handler in ours:
                handler.flush()

            assert "info line" in (tmp_path / "logs" / "adapter.log").read_text()
            debug_text = (tmp_path / "logs" / "adapter_debug.log").read_text()
            assert "debug line" in debug_text
            assert "info line" not in debug_text
        finally:
            for handler in list(root_logger.handlers):
                if getattr(handler, "_antigravity_adapter", False):
                    root_logger.removeHandler(handler)
                    handler.close()
