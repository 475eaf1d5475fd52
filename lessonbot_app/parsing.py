import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from lessonbot.tools import ToolError, parse_params, resolve_tool_name, stringify_param


KNOWN_TOOLS = {
    'list_directory', 'read_file', 'write_file', 'append_file',
    'run_shell_command', 'get_current_time', 'run_command',
}


class ResponseParseError(Exception):
    """Raised when the model output is not a decodable JSON object."""


@dataclass
class ToolCall:
    tool_name: str = ''
    params: Dict[str, str] = field(default_factory=dict)


@dataclass
class AgentResponse:
    type: str = ''
    tool_call: ToolCall = field(default_factory=ToolCall)


def extract_json_object(text: str) -> str:
    """Return the span from the first '{' to the last '}', or '' if there is none."""
    start = text.find('{')
    if start == -1:
        return ''
    end = text.rfind('}')
    if end == -1 or end < start:
        return ''
    return text[start:end + 1]


def _to_tool_call(data: Dict[str, Any]) -> ToolCall:
    name = data.get('tool_name') or ''
    params = data.get('params') or {}
    if not isinstance(params, dict):
        params = {}
    return ToolCall(
        tool_name=str(name),
        params={str(k): stringify_param(v) for k, v in params.items()},
    )


def parse_agent_response(json_str: str) -> AgentResponse:
    """Decode the model's JSON reply into an AgentResponse.

    The nested form {"type": ..., "tool_call": {"tool_name": ..., "params": {...}}}
    is expected; the flat form with tool_name at the top level is accepted too.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ResponseParseError(f"Expected a JSON object, got {type(data).__name__}")

    nested = data.get('tool_call')
    if isinstance(nested, dict):
        tool_call = _to_tool_call(nested)
    else:
        tool_call = _to_tool_call(data)

    return AgentResponse(type=str(data.get('type') or ''), tool_call=tool_call)


def extract_tool_call_from_text(text: str) -> Optional[ToolCall]:
    """Try to recover a `[tool_name: params]` hint from plain text."""
    for match in re.finditer(r"\[(\w+):\s*([^\]\n]*)\]", text):
        name = match.group(1)
        if name not in KNOWN_TOOLS:
            continue
        name = resolve_tool_name(name)
        try:
            params = parse_params(name, match.group(2))
        except ToolError:
            continue
        return ToolCall(tool_name=name, params=params)
    return None
