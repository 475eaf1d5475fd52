#!/usr/bin/env python3
"""
Lessonbot - Main Application
A local AI agent that runs system tools on confirmation and learns from successful commands.
"""

import os
import sys
import uuid
import logging
import argparse

from lessonbot.llm import LLMClient, LLMError
from lessonbot.memory import LessonMemory, MemoryStoreError
from lessonbot.tools import ToolExecutor

from lessonbot_app.config import load_config, setup_logging
from lessonbot_app.session import AgentSession, TOOL_MODE, CHAT_MODE
from lessonbot_app.console import print_colored, Colors


logger = logging.getLogger(__name__)

CHECK_DOCUMENT = "This is a test record written directly through the HTTP API."


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Local AI agent with tool use and lesson memory.")
    parser.add_argument('--mode', choices=['tool', 'chat'], help="start directly in this mode")
    parser.add_argument('--check-memory', action='store_true',
                        help="write a test lesson to memory, read it back and exit")
    return parser.parse_args(argv)


def open_memory(config):
    """Connect to the lesson memory, or return None when it is unavailable."""
    if not config.memory_enabled:
        logger.info("CHROMA_URL not set; memory disabled")
        return None
    memory = LessonMemory(config.chroma_url, config.collection_name,
                          similarity_threshold=config.similarity_threshold)
    try:
        memory.ensure_collection()
    except MemoryStoreError as e:
        memory.close()
        print_colored(f"⚠️  Memory unavailable, continuing without it: {e}", Colors.YELLOW)
        return None
    return memory


def check_memory(llm, memory) -> bool:
    """Round-trip a test record through the embedding model and the vector store."""
    test_id = str(uuid.uuid4())
    try:
        print_colored(f"Creating embedding for '{CHECK_DOCUMENT}'...", Colors.CYAN)
        embedding = llm.embed(CHECK_DOCUMENT)
        print_colored(f"Adding document with ID '{test_id}'...", Colors.CYAN)
        memory.add(test_id, embedding, CHECK_DOCUMENT, '{}')
        print_colored("Querying the document back...", Colors.CYAN)
        examples, _ = memory.query_examples(embedding, 1)
    except (LLMError, MemoryStoreError) as e:
        print_colored(f"❌ Memory check failed: {e}", Colors.RED)
        return False

    if not examples:
        print_colored("❌ The query returned no result; reading from memory failed.", Colors.RED)
        return False
    retrieved = examples[0].get('user_request', '')
    if retrieved != CHECK_DOCUMENT:
        print_colored(f"❌ Read data does not match. Got: '{retrieved}', expected: '{CHECK_DOCUMENT}'", Colors.RED)
        return False
    print_colored("✅ Memory check passed: the written record was read back.", Colors.GREEN)
    return True


def main(argv=None):
    """Application entrypoint that wires up dependencies and runs the agent session."""
    args = parse_args(argv)
    config = load_config()

    setup_logging(config.log_level_str)
    logger.info(f"Logging level set to: {config.log_level_str}")

    logger.info(f"Initializing LLM client with URL: {config.ollama_url}")
    logger.info(f"Model: {config.model_name}, embeddings: {config.embedding_model}")
    logger.info(f"Auth: {'Enabled' if config.username and config.password else 'Disabled'}")

    llm = LLMClient(
        config.ollama_url,
        config.model_name,
        config.embedding_model,
        username=config.username,
        password=config.password,
        context_length=config.context_length,
        verify_ssl=config.verify_ssl,
        timeout=config.llm_timeout,
    )
    memory = open_memory(config)

    if args.check_memory:
        if memory is None:
            print_colored("❌ Memory is not available.", Colors.RED)
            sys.exit(1)
        try:
            ok = check_memory(llm, memory)
        finally:
            memory.close()
        sys.exit(0 if ok else 1)

    executor = ToolExecutor(
        timeout=config.command_timeout,
        max_output_size=config.max_output_size,
        cwd=os.getcwd(),
    )

    mode = {'tool': TOOL_MODE, 'chat': CHAT_MODE}.get(args.mode)
    session = AgentSession(llm=llm, memory=memory, executor=executor, config=config)
    session.run(mode)


if __name__ == "__main__":
    main()
