"""
External collaborators for Lessonbot: the Ollama client,
the Chroma lesson memory and the local tool executor.
"""

__all__ = [
    "llm",
    "memory",
    "tools",
]
