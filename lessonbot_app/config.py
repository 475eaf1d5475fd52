import os
import logging
import platform
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from dotenv import load_dotenv


logger = logging.getLogger(__name__)


@dataclass
class Config:
    ollama_url: str
    model_name: str
    embedding_model: str
    username: Optional[str]
    password: Optional[str]
    verify_ssl: bool
    llm_timeout: float
    context_length: Optional[int]
    chroma_url: str
    collection_name: str
    similarity_threshold: float
    memory_top_n: int
    command_timeout: int
    max_output_size: int
    history_max_chars: int
    show_thinking: bool
    log_level_str: str
    os_name: str
    session_id: str

    @property
    def memory_enabled(self) -> bool:
        return bool(self.chroma_url)


def setup_logging(log_level_str: str) -> None:
    level = getattr(logging, log_level_str.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True,
    )


def _parse_int_env(name: str, default: Optional[int] = None) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        logger.warning(f"Ignoring invalid integer for {name}: {value!r}")
        return default


def _parse_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value.strip())
    except ValueError:
        logger.warning(f"Ignoring invalid number for {name}: {value!r}")
        return default


def _parse_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_config() -> Config:
    load_dotenv()

    log_level_str = os.getenv('LOGGING_LEVEL', 'INFO').upper()
    if log_level_str.startswith('LOGGING.'):
        log_level_str = log_level_str.replace('LOGGING.', '')

    session_id = f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"

    return Config(
        ollama_url=os.getenv('OLLAMA_URL', 'http://localhost:11434'),
        model_name=os.getenv('MODEL_NAME', 'llama3.1:8b'),
        embedding_model=os.getenv('EMBEDDING_MODEL', 'nomic-embed-text'),
        username=os.getenv('OLLAMA_USERNAME'),
        password=os.getenv('OLLAMA_PASSWORD'),
        verify_ssl=_parse_bool_env('VERIFY_SSL', True),
        llm_timeout=_parse_float_env('LLM_TIMEOUT', 120.0),
        context_length=_parse_int_env('CONTEXT_LENGTH'),
        chroma_url=os.getenv('CHROMA_URL', 'http://localhost:8000').strip(),
        collection_name=os.getenv('CHROMA_COLLECTION', 'agent_lessons'),
        similarity_threshold=_parse_float_env('SIMILARITY_THRESHOLD', 0.0),
        memory_top_n=_parse_int_env('MEMORY_TOP_N', 2),
        command_timeout=_parse_int_env('COMMAND_TIMEOUT', 60),
        max_output_size=_parse_int_env('MAX_OUTPUT_SIZE', 10000),
        history_max_chars=_parse_int_env('HISTORY_MAX_CHARS', 12000),
        show_thinking=_parse_bool_env('SHOW_THINKING', False),
        log_level_str=log_level_str,
        os_name=platform.system(),
        session_id=session_id,
    )
