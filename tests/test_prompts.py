"""Tests for prompt assembly and the thinking filter."""

from lessonbot_app.prompts import (
    CHAT_SYSTEM_PROMPT, TOOL_SYSTEM_PROMPT, build_chat_prompt, build_tool_prompt, format_examples,
)
from lessonbot_app.thinking import ThinkingFilter, strip_thinking


def test_format_examples_empty():
    assert format_examples([]) == ""


def test_format_examples_numbered():
    text = format_examples([
        {'user_request': 'list files', 'tool_call_json': '{"a":1}'},
        {'user_request': 'what time is it', 'tool_call_json': '{"b":2}'},
    ])
    assert "# SUCCESSFUL EXAMPLES" in text
    assert '# Example 1:\n#   User Request: "list files"\n#   Correct Command: {"a":1}' in text
    assert '# Example 2:' in text


def test_build_tool_prompt_order():
    prompt = build_tool_prompt("BASE", "EXAMPLES", "/home/me", "User: hi\n", "list files")
    positions = [prompt.index(p) for p in (
        "BASE", "EXAMPLES", "# CURRENT WORKING DIRECTORY\n/home/me", "--- Previous Conversation ---\nUser: hi",
        "User Request: list files",
    )]
    assert positions == sorted(positions)
    assert prompt.endswith("User Request: list files")


def test_build_chat_prompt():
    prompt = build_chat_prompt(CHAT_SYSTEM_PROMPT, "/tmp", "", "hello")
    assert prompt.startswith(CHAT_SYSTEM_PROMPT)
    assert "# CURRENT WORKING DIRECTORY\n/tmp" in prompt
    assert prompt.endswith("User Request: hello")


def test_tool_prompt_shows_nested_format():
    assert '"tool_call":{"tool_name"' in TOOL_SYSTEM_PROMPT


def test_strip_thinking():
    assert strip_thinking('<think>plan\nsteps</think>\n{"a": 1}') == '{"a": 1}'
    assert strip_thinking('no tags') == 'no tags'


def test_thinking_filter_hides_reasoning():
    f = ThinkingFilter(show_thinking=False)
    out = f.process_chunk("<think>secret") + f.process_chunk("</think>Hello")
    assert out == "Hello"
    assert f.finalize() == ""


def test_thinking_filter_shows_reasoning():
    f = ThinkingFilter(show_thinking=True)
    out = f.process_chunk("<think>idea")
    assert "idea" in out
    assert f.finalize().startswith("]")
