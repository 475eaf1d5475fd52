"""
Core application package for Lessonbot.
Provides configuration, console utilities, parsing helpers, prompt templates,
thinking filter, and the main agent session orchestration.
"""

__all__ = [
    "config",
    "console",
    "parsing",
    "prompts",
    "thinking",
    "session",
]
