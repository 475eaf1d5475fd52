import re

from .console import Colors

_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>")


def strip_thinking(text: str) -> str:
    """Drop complete <think> blocks from a finished response."""
    return _THINK_BLOCK.sub('', text).strip()


class ThinkingFilter:
    """Filter and format <think> tags from LLM output."""

    def __init__(self, show_thinking: bool = False):
        self.show_thinking = show_thinking
        self.in_thinking = False

    def process_chunk(self, chunk: str) -> str:
        result = []
        i = 0
        while i < len(chunk):
            if chunk[i:i+7] == '<think>':
                self.in_thinking = True
                if self.show_thinking:
                    result.append(f"{Colors.GRAY}{Colors.DIM}[thinking: ")
                i += 7
                continue
            if chunk[i:i+8] == '</think>':
                self.in_thinking = False
                if self.show_thinking:
                    result.append(f"]{Colors.RESET}")
                i += 8
                continue
            if self.in_thinking:
                if self.show_thinking:
                    result.append(chunk[i])
            else:
                result.append(chunk[i])
            i += 1
        return ''.join(result)

    def finalize(self) -> str:
        if self.in_thinking and self.show_thinking:
            return f"]{Colors.RESET}"
        return ""
