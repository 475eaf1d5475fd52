import os
import re
import sys
import math
import json
import uuid
import logging
import traceback
from typing import Dict, List, Optional, Tuple

from lessonbot.llm import LLMError
from lessonbot.memory import MemoryStoreError
from lessonbot.tools import ToolError, generate_tools_prompt, resolve_tool_name
from .console import Colors, LEVEL_COLORS, print_colored, print_box, get_user_confirmation, select_option
from .thinking import ThinkingFilter, strip_thinking
from .parsing import (
    ResponseParseError, ToolCall, extract_json_object, extract_tool_call_from_text, parse_agent_response,
)
from .prompts import (
    TOOL_SYSTEM_PROMPT, CHAT_SYSTEM_PROMPT, format_examples, build_tool_prompt, build_chat_prompt,
)


logger = logging.getLogger(__name__)

TOOL_MODE = "Tool Use (system automation)"
CHAT_MODE = "General Chat"

EXIT_WORDS = {'exit', 'quit', 'bye'}

DANGEROUS_PATTERNS = [
    re.compile(r"\bsudo\b"),
    re.compile(r"\brm\b[^;&|\n]*\s(-[a-zA-Z]*[rRf][a-zA-Z]*|--recursive|--force)\b"),
    re.compile(r"\bmkfs(\.\w+)?\b"),
    re.compile(r"\bdd\s+if="),
    re.compile(r"\b(shutdown|reboot|poweroff)\b"),
    re.compile(r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:"),
]


def build_confirmation_message(tool_name: str, params: Dict[str, str]) -> Tuple[str, str]:
    """Return (message, level) where level is 'info', 'warning' or 'danger'."""
    if tool_name == 'write_file':
        return (f"WARNING: running '{tool_name}' may overwrite/modify the file "
                f"'{params.get('file_path', '')}'. Do you approve?"), 'warning'
    if tool_name == 'append_file':
        return (f"WARNING: running '{tool_name}' will append to the file "
                f"'{params.get('file_path', '')}'. Do you approve?"), 'warning'
    if tool_name == 'run_shell_command':
        command = params.get('command', '')
        if any(p.search(command) for p in DANGEROUS_PATTERNS):
            return (f"!!! EXTREMELY DANGEROUS OPERATION !!! You are about to run '{command}'. "
                    f"This may make permanent changes to or damage your system. Are you sure?"), 'danger'
        return f"WARNING: you are about to run '{command}' in the terminal. Do you approve?", 'warning'
    return f"Do you approve running the '{tool_name}' tool with these parameters: {params}", 'info'


class ConversationHistory:
    """Plain-text transcript fed back to the model on every turn."""

    def __init__(self, max_chars: int = 12000) -> None:
        self.max_chars = max_chars
        self.lines: List[str] = []

    def add_user(self, text: str) -> None:
        self.lines.append(f"User: {text}")

    def add_assistant(self, text: str) -> None:
        self.lines.append(f"Assistant: {text}")

    def add_raw(self, text: str) -> None:
        self.lines.append(text)

    def add_tool_result(self, text: str) -> None:
        self.lines.append(f"Tool-Result: {text}")

    def clear(self) -> None:
        self.lines = []

    @property
    def total_chars(self) -> int:
        return sum(len(line) + 1 for line in self.lines)

    @property
    def approx_tokens(self) -> int:
        return math.ceil(self.total_chars / 4)

    def render(self) -> str:
        if self.max_chars <= 0:
            return ''
        kept: List[str] = []
        size = 0
        for line in reversed(self.lines):
            entry = line + "\n"
            if size + len(entry) > self.max_chars:
                if not kept:
                    kept.append(entry[-self.max_chars:])
                break
            kept.append(entry)
            size += len(entry)
        return ''.join(reversed(kept))


class AgentSession:
    def __init__(self, llm, memory, executor, config) -> None:
        self.llm = llm
        self.memory = memory
        self.executor = executor
        self.config = config
        self.history = ConversationHistory(config.history_max_chars)
        self.base_tool_prompt = f"{TOOL_SYSTEM_PROMPT}\n\n{generate_tools_prompt(executor.tools)}"
        self.training_mode = False
        self.pending_request = ''
        self.pending_json = ''

    def _print_header(self) -> None:
        print_colored("╔════════════════════════════════════════════╗", Colors.CYAN)
        print_colored("║        🧠 Lessonbot - Local AI Agent       ║", Colors.CYAN)
        print_colored("╚════════════════════════════════════════════╝", Colors.CYAN)
        print_colored(f"\nPlatform: {self.config.os_name}", Colors.BLUE)
        print_colored(f"Model: {self.config.model_name}", Colors.BLUE)
        print_colored(f"Endpoint: {self.llm.base_url}", Colors.BLUE)
        print_colored(f"Session: {self.config.session_id}", Colors.BLUE)
        print_colored(f"Working Directory: {self.executor.cwd}", Colors.BLUE)
        print_colored(f"Memory: {'Enabled' if self.memory else 'Disabled'}", Colors.BLUE)
        print_colored("\nType 'exit', 'quit', or 'bye' to end the conversation.", Colors.YELLOW)
        print_colored("Type '/help' to list the available commands.\n", Colors.YELLOW)

    def _print_help(self, mode: str) -> None:
        print_colored("Commands:", Colors.BOLD)
        print_colored("  exit | quit | bye   end the session", Colors.YELLOW)
        print_colored("  clear               clear conversation history", Colors.YELLOW)
        if mode == TOOL_MODE:
            print_colored("  /train              start/finish teaching a command", Colors.YELLOW)
            print_colored("  /showmemory         list every learned lesson", Colors.YELLOW)

    def _read_input(self, prompt: str) -> Optional[str]:
        try:
            return input(prompt).strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return None

    def _print_context_usage(self) -> None:
        tokens = self.history.approx_tokens
        logger.info(f"Context usage ~{tokens} tokens ({self.history.total_chars} chars)")
        print_colored(f"≈ Context: ~{tokens} tokens", Colors.GRAY)

    def run(self, mode: Optional[str] = None) -> None:
        self._print_header()
        try:
            if mode is None:
                mode = select_option("Choose a working mode", [TOOL_MODE, CHAT_MODE])
                if mode is None:
                    return
            print_colored(f"Started in {mode} mode.\n", Colors.CYAN)
            if mode == TOOL_MODE:
                self._loop(mode, self.process_tool_request)
            else:
                self._loop(mode, self.process_chat_request)
            print_colored("\n👋 Goodbye!", Colors.CYAN)
        finally:
            if self.memory:
                self.memory.close()

    def _prompt_label(self, mode: str) -> str:
        cwd_short = os.path.basename(self.executor.cwd) or self.executor.cwd
        if mode == CHAT_MODE:
            return f"{Colors.CYAN}You (Chat) [{cwd_short}]: {Colors.RESET}"
        if self.training_mode:
            return f"{Colors.MAGENTA}You (Training) [{cwd_short}]: {Colors.RESET}"
        return f"{Colors.YELLOW}You (Tools) [{cwd_short}]: {Colors.RESET}"

    def _loop(self, mode: str, process) -> None:
        while True:
            user_input = self._read_input(self._prompt_label(mode))
            if user_input is None:
                break
            if not user_input:
                continue
            lowered = user_input.lower()
            if lowered in EXIT_WORDS:
                break
            if lowered == 'clear':
                self.history.clear()
                print_colored("✨ Conversation history cleared.", Colors.YELLOW)
                continue
            if lowered == '/help':
                self._print_help(mode)
                continue
            if mode == TOOL_MODE and lowered == '/train':
                self.toggle_training()
                continue
            if mode == TOOL_MODE and lowered == '/showmemory':
                self.show_memory()
                continue

            try:
                process(user_input)
            except KeyboardInterrupt:
                print_colored("\n\n⚠️  Request interrupted", Colors.YELLOW)
            except Exception as e:
                print_colored(f"\n❌ Error: {str(e)}", Colors.RED)
                traceback.print_exc()
            print()

    def _reset_pending(self) -> None:
        self.pending_request = ''
        self.pending_json = ''

    def _abort_training(self) -> None:
        if self.training_mode:
            print_colored("Command failed in training mode. Leaving training mode.", Colors.YELLOW)
            self.training_mode = False

    def toggle_training(self) -> None:
        if not self.training_mode:
            self.training_mode = True
            self._reset_pending()
            print_colored("Training mode started. Enter the command you want to teach.", Colors.CYAN)
            return

        if self.pending_request and self.pending_json:
            print_colored("Finishing training mode. Saving the lesson to memory...", Colors.CYAN)
            self.save_lesson(self.pending_request, self.pending_json)
        else:
            print_colored("No successful command to save. Training mode cancelled.", Colors.YELLOW)
        self.training_mode = False
        self._reset_pending()

    def save_lesson(self, user_request: str, tool_call_json: str) -> bool:
        if not self.memory:
            print_colored("Memory is disabled; the lesson was not saved.", Colors.YELLOW)
            return False
        try:
            embedding = self.llm.embed(user_request)
        except LLMError as e:
            print_colored(f"Could not create an embedding to save to memory: {e}", Colors.YELLOW)
            return False
        try:
            self.memory.add(str(uuid.uuid4()), embedding, user_request, tool_call_json)
        except MemoryStoreError as e:
            print_colored(f"Could not add the lesson to memory: {e}", Colors.YELLOW)
            return False
        print_colored("✅ New lesson saved to memory!", Colors.GREEN)
        return True

    def show_memory(self) -> None:
        if not self.memory:
            print_colored("Memory is disabled.", Colors.YELLOW)
            return
        print_colored("Fetching every lesson from memory...", Colors.CYAN)
        try:
            examples = self.memory.get_all_examples()
        except MemoryStoreError as e:
            print_colored(f"Could not read memory: {e}", Colors.RED)
            return

        if not examples:
            print_colored("Memory is empty.", Colors.CYAN)
            return

        print_colored(f"Found {len(examples)} lessons:", Colors.CYAN)
        for i, example in enumerate(examples, 1):
            tool_call_json = example.get('tool_call_json', '')
            try:
                pretty = json.dumps(json.loads(tool_call_json), indent=2, ensure_ascii=False)
            except (json.JSONDecodeError, TypeError):
                pretty = tool_call_json
            content = f"User Request: {example.get('user_request', '')}\nCorrect Command:\n{pretty}"
            print_box(f"Lesson #{i}", content, Colors.CYAN)

    def recall_examples(self, user_input: str) -> str:
        """Look up similar past lessons and format them for the prompt."""
        if not self.memory:
            return ''
        try:
            embedding = self.llm.embed(user_input)
        except LLMError as e:
            logger.warning(f"Embedding failed: {e}")
            print_colored("Could not create an embedding for the input; memory not queried.", Colors.YELLOW)
            return ''
        try:
            examples, distances = self.memory.query_examples(embedding, self.config.memory_top_n)
        except MemoryStoreError as e:
            print_colored(f"Error while querying memory: {e}", Colors.YELLOW)
            return ''
        if not examples:
            return ''
        shown = ', '.join(f"{d:.4f}" for d in distances)
        print_colored(f"Found {len(examples)} similar examples in memory (distances: {shown}).", Colors.GRAY)
        return format_examples(examples)

    def _record_failure(self, label: str, text: str) -> None:
        self.history.add_assistant(f"[Error: {label}] {text}")
        self._abort_training()

    def process_tool_request(self, user_input: str) -> bool:
        examples_text = self.recall_examples(user_input)

        self.history.add_user(user_input)
        self._print_context_usage()
        prompt = build_tool_prompt(
            self.base_tool_prompt, examples_text, self.executor.cwd, self.history.render(), user_input,
        )

        print_colored("🤔 The expert AI is thinking...", Colors.GRAY)
        try:
            response_text = self.llm.generate(prompt)
        except LLMError as e:
            print_colored(f"❌ No response from the model: {e}", Colors.RED)
            return False

        response_text = strip_thinking(response_text)
        json_str = extract_json_object(response_text)

        if not json_str:
            tool_call = extract_tool_call_from_text(response_text)
            if tool_call is None:
                print_colored("No valid JSON block found in the AI reply. Raw reply:", Colors.YELLOW)
                print(response_text)
                self._record_failure("no JSON found", response_text)
                return False
            logger.info(f"Recovered tool call from text hint: {tool_call.tool_name}")
            json_str = json.dumps(
                {"type": "tool_call", "tool_call": {"tool_name": tool_call.tool_name, "params": tool_call.params}},
                ensure_ascii=False,
            )
        else:
            try:
                tool_call = parse_agent_response(json_str).tool_call
            except ResponseParseError as e:
                print_colored(f"The AI did not answer with valid JSON. Error: {e}\nRaw reply:", Colors.YELLOW)
                print(response_text)
                self._record_failure("invalid JSON", response_text)
                return False

        if not tool_call.tool_name:
            print_colored("The AI did not return a valid tool call.", Colors.RED)
            print_colored(f"Received JSON: {json_str}", Colors.YELLOW)
            self._record_failure("invalid tool call", json_str)
            return False

        success = self.handle_tool_call(tool_call, json_str)
        if self.training_mode:
            if success:
                self.pending_request = user_input
                self.pending_json = json_str
                print_colored("Training command succeeded. Enter /train again to save it.", Colors.GREEN)
            else:
                self._abort_training()
        return success

    def handle_tool_call(self, tool_call: ToolCall, raw_json: str) -> bool:
        """Confirm, execute and record a tool call. Returns True on success."""
        if not tool_call.tool_name:
            print_colored("The AI tried to call a tool without naming it.", Colors.RED)
            self.history.add_assistant("[Error: received a tool call without a name.]")
            return False

        tool_name = resolve_tool_name(tool_call.tool_name)
        if tool_name != tool_call.tool_name:
            print_colored(f"The AI called '{tool_call.tool_name}', correcting it to '{tool_name}'.", Colors.YELLOW)

        print_colored(f"\n💻 Tool call: {tool_name}", Colors.YELLOW)
        print_colored(f"   Params: {tool_call.params}", Colors.YELLOW)

        if tool_name not in self.executor.tools:
            print_colored(f"Unknown tool requested: {tool_name}", Colors.RED)
            self.history.add_assistant("[Error: an unknown tool was requested.]")
            return False

        if tool_name == 'run_shell_command' and not tool_call.params.get('command'):
            print_colored("The 'command' parameter is missing for run_shell_command.", Colors.RED)
            self.history.add_assistant("[Error: missing 'command' parameter.]")
            return False

        message, level = build_confirmation_message(tool_name, tool_call.params)
        print_colored(message, LEVEL_COLORS[level])
        approved = get_user_confirmation("   Execute?")

        self.history.add_raw(raw_json)

        if not approved:
            print_colored("   Operation cancelled.", Colors.YELLOW)
            self.history.add_tool_result("[Cancelled by user.]")
            return False

        print_colored("   Executing...", Colors.CYAN)
        try:
            result = self.executor.execute(tool_name, tool_call.params)
        except ToolError as e:
            print_colored(f"   ❌ Tool error: {e}", Colors.RED)
            self.history.add_tool_result(f"[Error: {e}]")
            return False

        print_box(f"Tool Output: {tool_name}", result)
        self.history.add_tool_result(result)
        return True

    def process_chat_request(self, user_input: str) -> None:
        self.history.add_user(user_input)
        self._print_context_usage()
        prompt = build_chat_prompt(CHAT_SYSTEM_PROMPT, self.executor.cwd, self.history.render(), user_input)

        print(f"{Colors.BLUE}Assistant: {Colors.RESET}", end='')
        thinking_filter = ThinkingFilter(show_thinking=self.config.show_thinking)
        chunks: List[str] = []
        try:
            for chunk in self.llm.stream_generate(prompt):
                filtered = thinking_filter.process_chunk(chunk)
                if filtered:
                    print(filtered, end='')
                    sys.stdout.flush()
                chunks.append(chunk)
        except LLMError as e:
            print()
            print_colored(f"❌ No response from the model: {e}", Colors.RED)
            return
        tail = thinking_filter.finalize()
        if tail:
            print(tail, end='')
        print()

        reply = strip_thinking(''.join(chunks))
        self.history.add_assistant(reply)
