"""Tests for briefing prompt construction and generation."""

from unittest.mock import AsyncMock, Mock

import pytest
from openai import OpenAIError

from briefops.briefing.builder import (
    DEFAULT_PROMPT,
    BriefingError,
    build_context_section,
    build_prompt,
    generate_briefing,
)
from briefops.connectors.types import AdapterResult


@pytest.fixture
def results():
    return [
        AdapterResult(source_id="support-desk-open_tickets", source_name="Open tickets", data={"tickets": [1]}),
        AdapterResult.failure("hubspot-recent_deals", "Deals", "Unknown connector: hubspot"),
        AdapterResult(source_id="gong-recent_calls", source_name="Calls", data=[]),
    ]


@pytest.fixture
def mock_openai_client():
    """AsyncOpenAI stand-in returning a fixed completion."""
    client = Mock()
    client.chat.completions.create = AsyncMock(
        return_value=Mock(choices=[Mock(message=Mock(content="## Today\n- Ticket 1"))])
    )
    return client


class TestPromptBuilding:
    """Test cases for prompt text."""

    def test_context_section_skips_failures(self, results):
        section = build_context_section(results)

        assert section == (
            '## Open tickets\n```json\n{\n  "tickets": [\n    1\n  ]\n}\n```'
            "\n\n"
            "## Calls\n```json\n[]\n```"
        )
        assert "Deals" not in section

    def test_default_prompt(self, results):
        prompt = build_prompt(results)

        assert prompt.startswith(DEFAULT_PROMPT)
        assert "## CONTEXT" in prompt
        assert prompt.endswith("Generate the briefing now:")

    def test_custom_prompt(self, results):
        assert build_prompt(results, "Only tickets please.").startswith("Only tickets please.")


class TestGenerateBriefing:
    """Test cases for generate_briefing."""

    @pytest.mark.asyncio
    async def test_generates_from_successful_sources(self, results, mock_openai_client, config):
        briefing = await generate_briefing(results, "Be brief.", client=mock_openai_client, config=config)

        assert briefing.content == "## Today\n- Ticket 1"
        assert briefing.sources == ["support-desk-open_tickets", "gong-recent_calls"]

        kwargs = mock_openai_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 2000
        assert kwargs["messages"][0]["role"] == "user"
        assert kwargs["messages"][0]["content"].startswith("Be brief.")

    @pytest.mark.asyncio
    async def test_empty_completion(self, results, mock_openai_client, config):
        mock_openai_client.chat.completions.create.return_value = Mock(choices=[])

        briefing = await generate_briefing(results, client=mock_openai_client, config=config)
        assert briefing.content == ""

    @pytest.mark.asyncio
    async def test_api_error_raises_briefing_error(self, results, mock_openai_client, config):
        mock_openai_client.chat.completions.create.side_effect = OpenAIError("quota exceeded")

        with pytest.raises(BriefingError, match="quota exceeded"):
            await generate_briefing(results, client=mock_openai_client, config=config)

    @pytest.mark.asyncio
    async def test_to_dict(self, results, mock_openai_client, config):
        briefing = await generate_briefing(results, client=mock_openai_client, config=config)
        data = briefing.to_dict()

        assert data["content"] == "## Today\n- Ticket 1"
        assert data["generatedAt"].endswith("+00:00")
        assert data["sources"] == ["support-desk-open_tickets", "gong-recent_calls"]
