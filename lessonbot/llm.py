"""
LLM interface using the ollama Python library.
Supports basic authentication for reverse proxy setups.
"""

import base64
import logging
from typing import Iterator, List, Optional

import httpx
from ollama import Client, ResponseError

logger = logging.getLogger(__name__)

_ENDPOINT_SUFFIXES = ('/api/generate', '/api/chat', '/api/embeddings', '/api/embed', '/v1/chat/completions')


class LLMError(Exception):
    """Raised when the model server cannot produce a response."""


def normalize_host(url: str) -> str:
    """Strip endpoint paths so the ollama client gets a bare host URL."""
    host = url.strip()
    for suffix in _ENDPOINT_SUFFIXES:
        if host.endswith(suffix):
            host = host[:-len(suffix)]
    return host.rstrip('/')


class LLMClient:
    """Ollama client for text generation and embeddings."""

    def __init__(self, base_url: str, model_name: str, embedding_model: str,
                 username: Optional[str] = None, password: Optional[str] = None,
                 context_length: Optional[int] = None, verify_ssl: bool = True,
                 timeout: float = 120.0, client: Optional[Client] = None):
        """
        Initialize Ollama client.

        Args:
            base_url: Server URL (e.g., http://localhost:11434)
            model_name: Model used for generation
            embedding_model: Model used for embeddings
            username: Optional username for basic auth
            password: Optional password for basic auth
            context_length: Optional context window size
            verify_ssl: Verify TLS certificates of the server
            timeout: Request timeout in seconds
            client: Preconfigured ollama client (tests)
        """
        host = normalize_host(base_url)

        headers = {}
        if username and password:
            credentials = f"{username}:{password}"
            encoded = base64.b64encode(credentials.encode()).decode()
            headers['Authorization'] = f'Basic {encoded}'
            logger.info("Basic auth enabled for Ollama client")

        if client is None:
            client = Client(
                host=host,
                headers=headers if headers else None,
                timeout=timeout,
                verify=verify_ssl,
            )
            if not verify_ssl:
                logger.info("SSL verification disabled for Ollama client")

        self.client = client
        self.model_name = model_name
        self.embedding_model = embedding_model
        self.context_length = context_length
        self.base_url = host

        logger.info(f"Ollama client initialized: {host}")

    def _options(self) -> Optional[dict]:
        if self.context_length:
            return {'num_ctx': int(self.context_length)}
        return None

    def generate(self, prompt: str) -> str:
        """
        Send a single non-streaming generate request.

        Returns:
            The raw response text of the model
        """
        logger.debug(f"Generate request to {self.model_name} ({len(prompt)} chars)")
        try:
            response = self.client.generate(
                model=self.model_name,
                prompt=prompt,
                options=self._options(),
                stream=False,
            )
        except ResponseError as e:
            raise LLMError(f"Ollama API error ({e.status_code}): {e.error}") from e
        except (ConnectionError, httpx.HTTPError) as e:
            raise LLMError(f"Could not reach Ollama at {self.base_url}: {e}") from e

        text = getattr(response, 'response', None)
        if text is None and isinstance(response, dict):
            text = response.get('response')
        logger.debug(f"Generate response: {(text or '')[:200]}")
        return text or ''

    def stream_generate(self, prompt: str) -> Iterator[str]:
        """
        Stream a generate request.

        Yields:
            Content chunks as they arrive
        """
        logger.debug(f"Streaming request to {self.model_name}")
        try:
            stream = self.client.generate(
                model=self.model_name,
                prompt=prompt,
                options=self._options(),
                stream=True,
            )
            for chunk in stream:
                if hasattr(chunk, 'response'):
                    content = chunk.response
                elif isinstance(chunk, dict):
                    content = chunk.get('response')
                else:
                    content = None
                if content:
                    yield content
        except ResponseError as e:
            raise LLMError(f"Ollama API error ({e.status_code}): {e.error}") from e
        except (ConnectionError, httpx.HTTPError) as e:
            raise LLMError(f"Could not reach Ollama at {self.base_url}: {e}") from e

    def embed(self, text: str) -> List[float]:
        """Turn a piece of text into an embedding vector."""
        try:
            response = self.client.embed(model=self.embedding_model, input=text)
        except ResponseError as e:
            raise LLMError(f"Ollama embedding error ({e.status_code}): {e.error}") from e
        except (ConnectionError, httpx.HTTPError) as e:
            raise LLMError(f"Could not reach Ollama at {self.base_url}: {e}") from e

        embeddings = getattr(response, 'embeddings', None)
        if embeddings is None and isinstance(response, dict):
            embeddings = response.get('embeddings')
        if not embeddings or not embeddings[0]:
            raise LLMError(f"Empty embedding returned by model '{self.embedding_model}'")
        return [float(v) for v in embeddings[0]]
