"""Briefing generation over gathered context."""

from .builder import (
    DEFAULT_PROMPT,
    Briefing,
    BriefingError,
    build_context_section,
    build_prompt,
    generate_briefing,
)


__all__ = [
    "DEFAULT_PROMPT",
    "Briefing",
    "BriefingError",
    "build_context_section",
    "build_prompt",
    "generate_briefing",
]
