"""
Tests for upstream timeouts.
"""
from antigravity_adapter.timeout_config import TimeoutConfig


def test_defaults():
    streaming = TimeoutConfig.streaming()
    assert streaming.connect == 30.0
    assert streaming.read == 180.0
    assert streaming.pool == 60.0
    assert TimeoutConfig.non_streaming().read == 600.0


def test_env_override(monkeypatch):
    monkeypatch.setenv("ANTIGRAVITY_TIMEOUT_CONNECT", "5")
    monkeypatch.setenv("ANTIGRAVITY_TIMEOUT_READ_STREAMING", "not-a-number")
    timeout = TimeoutConfig.streaming()
    assert timeout.connect == 5.0
    assert timeout.read == 180.0


def test_configured_read_wins(monkeypatch):
    monkeypatch.setenv("ANTIGRAVITY_TIMEOUT_READ_NON_STREAMING", "10")
    assert TimeoutConfig.non_streaming(42.0).read == 42.0
