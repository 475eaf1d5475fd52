"""
Local system tools the agent can invoke.
Every tool takes a flat string parameter map and returns text for the model.
"""

import json
import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# Names the model sometimes invents for existing tools
TOOL_ALIASES = {
    'run_command': 'run_shell_command',
}


class ToolError(Exception):
    """Raised when a tool cannot run or its command fails."""


@dataclass
class Tool:
    name: str
    description: str
    execute: Callable[[Dict[str, str]], str]


def resolve_tool_name(name: str) -> str:
    return TOOL_ALIASES.get(name, name)


def stringify_param(value: Any) -> str:
    """Flatten a decoded JSON value into a tool parameter string."""
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def parse_params(tool_name: str, params_string: str) -> Dict[str, str]:
    """
    Parse the loose textual parameter form some models emit,
    e.g. `write_file notes.txt "hello"` instead of a JSON object.
    """
    params_string = params_string.strip()

    if tool_name == 'run_shell_command':
        return {'command': params_string.strip('"')}

    if tool_name in ('read_file', 'list_directory'):
        return {'file_path': params_string.strip('"')}

    if tool_name in ('write_file', 'append_file'):
        parts = params_string.split(' ', 1)
        if len(parts) != 2:
            raise ToolError(
                f"Invalid parameter format for '{tool_name}'. "
                f"Expected: <file_path> \"<content>\". Got: {params_string}"
            )
        return {'file_path': parts[0], 'content': parts[1].strip('"')}

    try:
        parsed = json.loads(params_string)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        return {str(k): stringify_param(v) for k, v in parsed.items()}
    raise ToolError(f"Could not understand parameters for '{tool_name}': {params_string}")


class ToolExecutor:
    """
    Runs the agent's whitelisted tools.

    Tracks its own working directory so relative paths and a bare
    `cd <dir>` behave like an interactive shell would.
    """

    def __init__(self, timeout: int = 60, max_output_size: int = 10000, cwd: Optional[str] = None):
        """
        Initialize tool executor.

        Args:
            timeout: Maximum shell command execution time in seconds
            max_output_size: Maximum output size to return (in characters)
            cwd: Current working directory (defaults to current dir)
        """
        self.timeout = timeout
        self.max_output_size = max_output_size
        self.cwd = cwd or os.getcwd()
        self.tools: Dict[str, Tool] = {}
        for tool in (
            Tool('list_directory',
                 "Lists the files and folders in a file system directory. Parameters: file_path",
                 self.list_directory),
            Tool('read_file',
                 "Reads the contents of a file. Parameters: file_path",
                 self.read_file),
            Tool('write_file',
                 "Writes content to a file. WARNING: completely overwrites the file. "
                 "Parameters: file_path, content",
                 self.write_file),
            Tool('append_file',
                 "Appends content to the end of a file. Parameters: file_path, content",
                 self.append_file),
            Tool('run_shell_command',
                 "Runs a terminal (bash) command. Parameters: command",
                 self.run_shell_command),
            Tool('get_current_time',
                 "Returns the current date and time. Parameters: timezone (optional, e.g. Europe/Istanbul)",
                 self.get_current_time),
        ):
            self.tools[tool.name] = tool

    def _resolve(self, path: str) -> str:
        path = os.path.expanduser(path)
        if not os.path.isabs(path):
            path = os.path.join(self.cwd, path)
        return os.path.normpath(path)

    def _truncate(self, text: str) -> str:
        if len(text) > self.max_output_size:
            return text[:self.max_output_size] + "\n... (output truncated)"
        return text

    def execute(self, tool_name: str, params: Dict[str, str]) -> str:
        """
        Execute a tool by name.

        Returns:
            The tool output as text

        Raises:
            ToolError: unknown tool, missing parameter or failed execution
        """
        tool = self.tools.get(resolve_tool_name(tool_name))
        if tool is None:
            raise ToolError(f"Unknown tool: {tool_name}")
        logger.info(f"Executing tool {tool.name} with params {params}")
        try:
            return tool.execute(params)
        except OSError as e:
            raise ToolError(f"{tool.name} failed: {e}") from e

    def list_directory(self, params: Dict[str, str]) -> str:
        path = self._resolve(params.get('file_path') or '.')
        if not os.path.isdir(path):
            raise ToolError(f"Could not read directory: {path}")
        names = []
        for entry in sorted(os.scandir(path), key=lambda e: e.name):
            names.append(entry.name + '/' if entry.is_dir() else entry.name)
        return "Directory contents:\n" + "\n".join(names)

    def read_file(self, params: Dict[str, str]) -> str:
        if not params.get('file_path'):
            raise ToolError("No file path given")
        path = self._resolve(params['file_path'])
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return f.read()

    def write_file(self, params: Dict[str, str]) -> str:
        if not params.get('file_path'):
            raise ToolError("No file path given")
        path = self._resolve(params['file_path'])
        with open(path, 'w', encoding='utf-8') as f:
            f.write(params.get('content', ''))
        return f"Successfully wrote to '{params['file_path']}'."

    def append_file(self, params: Dict[str, str]) -> str:
        if not params.get('file_path'):
            raise ToolError("No file path given")
        path = self._resolve(params['file_path'])
        with open(path, 'a', encoding='utf-8') as f:
            f.write(params.get('content', ''))
        return f"Successfully appended to '{params['file_path']}'."

    def _change_directory(self, args: List[str]) -> str:
        new_dir = self._resolve(args[0] if args else '~')
        if not os.path.isdir(new_dir):
            raise ToolError(f"Directory not found: {new_dir}")
        self.cwd = new_dir
        return f"Changed directory to: {self.cwd}"

    def run_shell_command(self, params: Dict[str, str]) -> str:
        command = (params.get('command') or '').strip()
        if not command:
            raise ToolError("No command given")

        # A subprocess cannot change our directory, so handle a bare cd here
        try:
            parts = shlex.split(command)
        except ValueError:
            parts = command.split()
        if parts and parts[0] == 'cd' and len(parts) <= 2:
            return self._change_directory(parts[1:])

        try:
            result = subprocess.run(
                ['bash', '-c', command],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
                cwd=self.cwd,
            )
        except subprocess.TimeoutExpired as e:
            raise ToolError(f"Command timed out after {self.timeout} seconds") from e
        except FileNotFoundError as e:
            raise ToolError(f"Could not start shell: {e}") from e

        output = self._truncate(result.stdout or '')
        if result.returncode != 0:
            raise ToolError(f"Command failed (exit code {result.returncode}): {output}")
        return output

    def get_current_time(self, params: Dict[str, str]) -> str:
        zone_name = (params.get('timezone') or '').strip()
        if zone_name:
            try:
                now = datetime.now(ZoneInfo(zone_name))
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ToolError(f"Unknown timezone: {zone_name}") from e
        else:
            now = datetime.now().astimezone()
        return f"{now.isoformat(timespec='seconds')} ({now.strftime('%A, %d %B %Y %H:%M:%S %Z')})"


def generate_tools_prompt(tools: Dict[str, Tool]) -> str:
    """Build the tool guide shown to the model."""
    lines = [
        "# AVAILABLE TOOLS\n",
        "Below is the list of tools you can use to fulfil the user's requests:\n",
    ]
    for tool in tools.values():
        lines.append(f"## Tool: {tool.name}")
        lines.append(f"- Description: {tool.description}\n")
    return "\n".join(lines) + "\n"
