"""
Briefing builder.

Turns gathered context records into a prompt and asks an OpenAI-compatible
chat model for the briefing text. Failed sources are left out of the
prompt; their errors are logged instead.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from briefops.connectors.types import AdapterResult
from briefops.core.config_loader import ConfigLoader
from briefops.utils.logger import LogCategory, get_logger

logger = get_logger(__name__, category=LogCategory.LLM)

DEFAULT_PROMPT = """You are generating a daily briefing based on the provided context.

Create a concise, actionable briefing with:
1. Key items requiring attention today
2. Important context for upcoming meetings
3. Follow-ups needed

Be specific and use the actual data. No generic advice."""


class BriefingError(Exception):
    """The model could not produce a briefing."""


@dataclass
class Briefing:
    """Generated briefing text and the sources it was built from."""
    content: str
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "generatedAt": self.generated_at.isoformat(),
            "sources": list(self.sources),
        }


def build_context_section(results: Sequence[AdapterResult]) -> str:
    """Render successful results as ``## name`` headings with fenced JSON."""
    sections = []
    for result in results:
        if not result.success:
            logger.warning("briefing_source_skipped", source_id=result.source_id, error=result.error)
            continue
        payload = json.dumps(result.data, indent=2, default=str)
        sections.append(f"## {result.source_name}\n```json\n{payload}\n```")
    return "\n\n".join(sections)


def build_prompt(results: Sequence[AdapterResult], prompt: Optional[str] = None) -> str:
    """Full user prompt: instructions, then the context section."""
    return f"{prompt or DEFAULT_PROMPT}\n\n## CONTEXT\n\n{build_context_section(results)}\n\nGenerate the briefing now:"


def create_client(config: Optional[ConfigLoader] = None) -> AsyncOpenAI:
    """Build an AsyncOpenAI client from the ``llm`` config section."""
    llm = (config or ConfigLoader()).get_llm_config()
    kwargs: Dict[str, Any] = {}
    if llm["api_key"]:
        kwargs["api_key"] = llm["api_key"]
    if llm["base_url"]:
        kwargs["base_url"] = llm["base_url"]
    return AsyncOpenAI(**kwargs)


async def generate_briefing(
    results: Sequence[AdapterResult],
    prompt: Optional[str] = None,
    *,
    client: Optional[AsyncOpenAI] = None,
    config: Optional[ConfigLoader] = None,
) -> Briefing:
    """
    Generate a briefing from gathered context.

    Args:
        results: Records returned by the context aggregator
        prompt: Task prompt (the default daily-briefing prompt if None)
        client: Chat client to use; one is built from config if None
        config: Config loader supplying model settings

    Returns:
        Briefing with the model's text and the ids of the sources used

    Raises:
        BriefingError: If the model request fails.
    """
    config = config or ConfigLoader()
    llm = config.get_llm_config()
    client = client or create_client(config)

    used = [r.source_id for r in results if r.success]
    logger.info("briefing_requested", model=llm["model"], sources=used)

    try:
        response = await client.chat.completions.create(
            model=llm["model"],
            messages=[{"role": "user", "content": build_prompt(results, prompt)}],
            max_tokens=llm["max_tokens"],
            temperature=llm["temperature"],
        )
    except OpenAIError as e:
        logger.error("briefing_failed", model=llm["model"], error=str(e))
        raise BriefingError(f"Briefing generation failed: {e}") from e

    content = response.choices[0].message.content if response.choices else None
    return Briefing(content=content or "", sources=used)
