"""Prompt templates for tool mode and chat mode."""

from typing import Dict, List


TOOL_SYSTEM_PROMPT = """You are an expert assistant. Your task is to analyse the user's request and answer **WITHOUT EXCEPTION** in the JSON format below. Do not use ANY other format, text or explanation.

# REQUIRED OUTPUT FORMAT
Your answer must ALWAYS and ONLY use this nested structure:
{"type":"tool_call","tool_call":{"tool_name":"TOOL_NAME","params":{"PARAM_NAME":"VALUE"}}}

# COMMON MISTAKE (DO NOT DO THIS!)
Do NOT use a flat structure like the one below. It is WRONG and breaks the program:
```json
// WRONG EXAMPLE - FLAT STRUCTURE
{
  "type": "tool_call",
  "tool_name": "run_shell_command",
  "params": {}
}
```

# CORRECT STRUCTURE
The `tool_name` and `params` fields must always be INSIDE a key named `tool_call`. Example:
```json
// CORRECT EXAMPLE - NESTED STRUCTURE
{
  "type": "tool_call",
  "tool_call": {
    "tool_name": "run_shell_command",
    "params": {
      "command": "ls -l"
    }
  }
}
```

# EXAMPLE
User Request: "list this directory"
YOUR ANSWER: {"type":"tool_call","tool_call":{"tool_name":"list_directory","params":{"file_path":"."}}}"""


CHAT_SYSTEM_PROMPT = (
    "You are a helpful chat assistant. Your only task is to have a conversation with the user. "
    "Never use special formats, tags or tools."
)


def format_examples(examples: List[Dict[str, str]]) -> str:
    """Render remembered lessons as few-shot examples."""
    if not examples:
        return ""

    lines = [
        "",
        "# SUCCESSFUL EXAMPLES",
        "# Learn from these correctly solved past examples to complete the new task.",
    ]
    for i, example in enumerate(examples, 1):
        lines.append(f"# Example {i}:")
        lines.append(f"#   User Request: \"{example.get('user_request', '')}\"")
        lines.append(f"#   Correct Command: {example.get('tool_call_json', '')}")
    return "\n".join(lines) + "\n"


def build_tool_prompt(base_prompt: str, examples_text: str, cwd: str, history: str, user_input: str) -> str:
    return (
        f"{base_prompt}\n{examples_text}\n\n"
        f"# CURRENT WORKING DIRECTORY\n{cwd}\n\n"
        f"--- Previous Conversation ---\n{history}\n---------------------\n\n"
        f"User Request: {user_input}"
    )


def build_chat_prompt(base_prompt: str, cwd: str, history: str, user_input: str) -> str:
    return (
        f"{base_prompt}\n\n"
        f"# CURRENT WORKING DIRECTORY\n{cwd}\n\n"
        f"--- Previous Conversation ---\n{history}\n---------------------\n\n"
        f"User Request: {user_input}"
    )
