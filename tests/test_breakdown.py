"""Tests for the breakdown request handler and reply parsing."""

import json

import pytest

from micromove.errors import ValidationError
from micromove.tools.breakdown import (
    BREAKDOWN_SYSTEM_PROMPT,
    breakdown_placeholder,
    handle_breakdown,
    parse_steps,
    steps_from_lines,
)
from micromove.tools.fallback import generate_fallback_steps
from conftest import FakeChatClient


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"task": None}, {"task": 42}, {"task": ""}, [], None, "write"])
    async def test_missing_or_non_string_task(self, body, fake_client):
        with pytest.raises(ValidationError, match="Task is required"):
            await handle_breakdown(body, client=fake_client)
        assert fake_client.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("task", ["ab", "  a  ", "   "])
    async def test_short_task_rejected(self, task, fake_client):
        with pytest.raises(ValidationError, match="Task is too short"):
            await handle_breakdown({"task": task}, client=fake_client)


class TestNoCredential:
    @pytest.mark.asyncio
    async def test_returns_fallback_without_network(self, fake_client):
        result = await handle_breakdown({"task": "  write my thesis intro  "}, client=fake_client)
        assert result.steps == generate_fallback_steps("write my thesis intro")
        assert fake_client.requests == []

    @pytest.mark.asyncio
    async def test_env_key_used(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        client = FakeChatClient(reply='["a", "b", "c"]')
        result = await handle_breakdown({"task": "do taxes"}, client=client)
        assert result.steps == ["a", "b", "c"]
        assert client.requests[0]["api_key"] == "sk-env"
        assert client.requests[0]["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_request_key_and_model_override(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        client = FakeChatClient(reply='["a", "b"]')
        await handle_breakdown({"task": "do taxes", "apiKey": "sk-user", "model": "gpt-4o"}, client=client)
        assert client.requests[0]["api_key"] == "sk-user"
        assert client.requests[0]["model"] == "gpt-4o"


class TestUpstreamCall:
    @pytest.fixture(autouse=True)
    def api_key(self, monkeypatch, no_env_api_key):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    @pytest.mark.asyncio
    async def test_prompt_shape(self):
        client = FakeChatClient(reply='["a", "b", "c"]')
        await handle_breakdown({"task": "clean the garage"}, client=client)
        request = client.requests[0]
        assert request["messages"][0] == {"role": "system", "content": BREAKDOWN_SYSTEM_PROMPT}
        assert request["messages"][1]["role"] == "user"
        assert '"clean the garage"' in request["messages"][1]["content"]
        assert request["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_json_array_with_surrounding_text(self):
        client = FakeChatClient(reply='Sure! Here you go:\n["Open doc", "Write title", "Write line"]\nGood luck')
        result = await handle_breakdown({"task": "write report"}, client=client)
        assert result.steps == ["Open doc", "Write title", "Write line"]

    @pytest.mark.asyncio
    async def test_result_capped_at_seven(self):
        client = FakeChatClient(reply=json.dumps([f"step {i}" for i in range(10)]))
        result = await handle_breakdown({"task": "do taxes"}, client=client)
        assert result.steps == [f"step {i}" for i in range(7)]

    @pytest.mark.asyncio
    async def test_non_json_text_recovers_lines(self):
        long_line = "x" * 200
        reply = "\n".join([
            "1. Open the spreadsheet",
            "",
            "   ",
            "2) Find last year's return",
            long_line,
            "- \"Gather receipts\"",
            "* Add one number",
        ])
        client = FakeChatClient(reply=reply)
        result = await handle_breakdown({"task": "do taxes"}, client=client)
        assert result.steps == [
            "Open the spreadsheet",
            "Find last year's return",
            "Gather receipts",
            "Add one number",
        ]

    @pytest.mark.asyncio
    async def test_too_few_recovered_lines_uses_fallback(self):
        client = FakeChatClient(reply="Just do it.\nYou can!")
        result = await handle_breakdown({"task": "fix the bug"}, client=client)
        assert result.steps == generate_fallback_steps("fix the bug")

    @pytest.mark.asyncio
    async def test_single_json_entry_uses_fallback(self):
        client = FakeChatClient(reply='["only one"]')
        result = await handle_breakdown({"task": "fix the bug"}, client=client)
        assert result.steps == generate_fallback_steps("fix the bug")

    @pytest.mark.asyncio
    async def test_empty_reply_uses_fallback(self):
        client = FakeChatClient(reply="")
        result = await handle_breakdown({"task": "study for exam"}, client=client)
        assert result.steps == generate_fallback_steps("study for exam")

    @pytest.mark.asyncio
    async def test_upstream_failure_uses_fallback(self, upstream_down, caplog):
        with caplog.at_level("WARNING", logger="micromove"):
            result = await handle_breakdown({"task": "reply to emails"}, client=upstream_down)
        assert result.steps == generate_fallback_steps("reply to emails")
        assert any("fell back" in r.getMessage() for r in caplog.records)
        assert caplog.records[-1].props["event"] == "breakdown_fallback"

    @pytest.mark.asyncio
    async def test_unexpected_exception_uses_fallback(self):
        client = FakeChatClient(error=RuntimeError("boom"))
        result = await handle_breakdown({"task": "organize closet"}, client=client)
        assert result.steps == generate_fallback_steps("organize closet")


class TestParseSteps:
    def test_non_string_entries_dropped(self):
        assert parse_steps('["a", 3, null, "  ", "b"]', "task") == ["a", "b"]

    def test_invalid_json_falls_to_lines(self):
        reply = '[broken\n1. one\n2. two\n3. three'
        assert parse_steps(reply, "task") == ["[broken", "one", "two", "three"]

    def test_lines_capped_at_seven(self):
        reply = "\n".join(f"{i}. step {i}" for i in range(1, 11))
        assert len(steps_from_lines(reply)) == 7

    def test_lines_199_chars_kept(self):
        assert steps_from_lines("y" * 199) == ["y" * 199]


def test_placeholder_uses_generic_steps():
    assert breakdown_placeholder().steps[0] == "Open everything you need for: your task"
