"""
Pytest configuration and fixtures for the test suite.
"""
import os
import sys

import pytest

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from antigravity_adapter.config import AdapterConfig
from antigravity_adapter.signature_cache import (
    ConversationSignatures,
    SignaturePolicy,
)
from antigravity_adapter.translation.request_builder import BoundCredential


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test"
    )


@pytest.fixture(scope="session")
def anyio_backend():
    """Set the async backend for pytest-asyncio."""
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep host env vars and the working directory out of config loading."""
    for key in (
        "SYSTEM_INSTRUCTION",
        "OFFICIAL_SYSTEM_PROMPT",
        "PROXY",
        "HTTPS_PROXY",
        "https_proxy",
        "HTTP_PROXY",
        "http_proxy",
        "ALL_PROXY",
        "all_proxy",
        "CACHE_ALL_SIGNATURES",
        "DEBUG_DUMP_REQUEST_RESPONSE",
        "ANTIGRAVITY_PASS_SIGNATURE_TO_CLIENT",
        "ANTIGRAVITY_USE_FALLBACK_SIGNATURE",
        "ANTIGRAVITY_EMPTY_RESPONSE_ATTEMPTS",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ANTIGRAVITY_DATA_DIR", str(tmp_path))


@pytest.fixture
def credential():
    """Bound credential as handed over by the credential source."""
    return BoundCredential(
        project_id="test-project-123",
        session_id="-4242424242",
        access_token="ya29.test-token",
    )


@pytest.fixture
def adapter_config():
    """Default configuration with fast empty-response retries."""
    config = AdapterConfig()
    config.empty_response_retry_delay = 0
    return config


@pytest.fixture
def signatures():
    """A fresh conversation signature context with every category cached."""
    return ConversationSignatures("conv_test", SignaturePolicy())


@pytest.fixture
def sample_messages():
    """Sample messages for chat completion tests."""
    return [
        {"role": "system", "content": "You are a helpful assistant."},
        {"role": "user", "content": "Hello, how are you?"}
    ]


@pytest.fixture
def tool_call_messages():
    """Two tool-call-only assistant messages answered in order."""
    return [
        {"role": "user", "content": "What's the weather in Paris and Rome?"},
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [{
                "id": "call_paris",
                "type": "function",
                "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
            }],
        },
        {
            "role": "assistant",
            "content": "",
            "tool_calls": [{
                "id": "call_rome",
                "type": "function",
                "function": {"name": "get_forecast", "arguments": '{"city": "Rome"}'},
            }],
        },
        {"role": "tool", "tool_call_id": "call_paris", "content": "18C, cloudy"},
        {"role": "tool", "tool_call_id": "call_rome", "content": "24C, sunny"},
    ]


@pytest.fixture
def sample_tools():
    """OpenAI tool declarations with keywords the upstream rejects."""
    return [{
        "type": "function",
        "function": {
            "name": "get_weather",
            "description": "Get current weather",
            "parameters": {
                "$schema": "http://json-schema.org/draft-07/schema#",
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "city": {"type": "string", "minLength": 1, "maxLength": 100},
                    "days": {
                        "type": "array",
                        "items": {"type": "integer"},
                        "minItems": 1,
                        "uniqueItems": True,
                    },
                },
                "required": ["city"],
            },
        },
    }]
