"""AI Game Master: prompts and the story-generation client.

Example:
    >>> from storyforge.dm import OpenAIStoryGenerator
    >>> generator = OpenAIStoryGenerator()
    >>> raw = await generator.generate(context)
"""

from __future__ import annotations

from storyforge.dm.generator import OpenAIStoryGenerator, StoryGenerator
from storyforge.dm.prompts import (
    DELIMITED_SYSTEM_PROMPT,
    STRUCTURED_SYSTEM_PROMPT,
    SUMMARY_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
    system_prompt_for,
)


__all__ = [
    "OpenAIStoryGenerator",
    "StoryGenerator",
    "DELIMITED_SYSTEM_PROMPT",
    "STRUCTURED_SYSTEM_PROMPT",
    "SUMMARY_PROMPT",
    "SUMMARY_SYSTEM_PROMPT",
    "system_prompt_for",
]
