"""
Tests for generationConfig construction and thinking budget resolution.
"""
import pytest

from antigravity_adapter.config import GenerationDefaults
from antigravity_adapter.model_policy import resolve_model
from antigravity_adapter.translation.generation_config import (
    build_generation_config,
    resolve_thinking_budget,
)


class TestThinkingBudget:

    def test_explicit_budget_wins(self):
        params = {"thinking_budget": 2048, "reasoning_effort": "high"}
        assert resolve_thinking_budget(params, True, 16000) == 2048

    @pytest.mark.parametrize("effort,budget", [("low", 1024), ("medium", 16000), ("high", 32000)])
    def test_reasoning_effort(self, effort, budget):
        assert resolve_thinking_budget({"reasoning_effort": effort}, True, 999) == budget

    def test_unknown_effort_uses_default(self):
        assert resolve_thinking_budget({"reasoning_effort": "extreme"}, True, 4096) == 4096

    def test_configured_default_then_fallback(self):
        assert resolve_thinking_budget({}, True, 8000) == 8000
        assert resolve_thinking_budget({}, True, None) == 16000

    @pytest.mark.parametrize(
        "params",
        [
            {},
            {"thinking_budget": 4096},
            {"reasoning_effort": "high"},
            {"thinking_budget": 1, "reasoning_effort": "low"},
        ],
    )
    def test_zero_whenever_thinking_disabled(self, params):
        assert resolve_thinking_budget(params, False, 16000) == 0
        config = build_generation_config(params, resolve_model("gemini-2.5-flash"))
        assert config["thinkingConfig"] == {"includeThoughts": False, "thinkingBudget": 0}


class TestBuildGenerationConfig:

    def test_hard_coded_defaults(self):
        config = build_generation_config({}, resolve_model("gemini-2.5-flash"))
        assert config["temperature"] == 1.0
        assert config["topP"] == 0.85
        assert config["topK"] == 50
        assert config["maxOutputTokens"] == 32000
        assert config["candidateCount"] == 1
        assert config["stopSequences"] == [
            "<|user|>",
            "<|bot|>",
            "<|context_request|>",
            "<|endoftext|>",
            "<|end_of_turn|>",
        ]

    def test_client_values_override_configured_defaults(self):
        defaults = GenerationDefaults(temperature=0.3, top_p=0.5, top_k=10, max_tokens=1000)
        params = {"temperature": 0.0, "top_k": 5, "max_completion_tokens": 256}
        config = build_generation_config(params, resolve_model("gemini-2.5-flash"), defaults)

        assert config["temperature"] == 0.0
        assert config["topP"] == 0.5
        assert config["topK"] == 5
        assert config["maxOutputTokens"] == 256

    def test_max_tokens_preferred_over_alias(self):
        params = {"max_tokens": 100, "max_completion_tokens": 200}
        config = build_generation_config(params, resolve_model("gemini-2.5-flash"))
        assert config["maxOutputTokens"] == 100

    def test_claude_thinking_drops_top_p(self):
        policy = resolve_model("claude-sonnet-4-5-thinking")
        config = build_generation_config({"top_p": 0.9}, policy)

        assert "topP" not in config
        assert config["thinkingConfig"] == {"includeThoughts": True, "thinkingBudget": 16000}

    def test_claude_without_thinking_keeps_top_p(self):
        config = build_generation_config({"top_p": 0.9}, resolve_model("claude-sonnet-4-5"))
        assert config["topP"] == 0.9

    def test_gemini_thinking_keeps_top_p(self):
        config = build_generation_config({}, resolve_model("gemini-2.5-pro"))
        assert config["topP"] == 0.85
        assert config["thinkingConfig"]["includeThoughts"] is True

    def test_stop_sequences_are_a_fresh_list(self):
        policy = resolve_model("gemini-2.5-flash")
        first = build_generation_config({}, policy)
        first["stopSequences"].append("mutated")
        assert "mutated" not in build_generation_config({}, policy)["stopSequences"]
