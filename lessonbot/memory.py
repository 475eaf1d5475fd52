"""
Lesson memory backed by a Chroma vector database.
Stores user requests together with the tool call that solved them,
so similar requests can be answered from past successes.
"""

import logging
from typing import Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

COLLECTIONS_PATH = "/api/v2/tenants/default_tenant/databases/default_database/collections"


class MemoryStoreError(Exception):
    """Raised when the vector database rejects or fails a request."""


class LessonMemory:
    """Chroma REST client holding learned tool-call lessons."""

    def __init__(self, base_url: str, collection_name: str, similarity_threshold: float = 0.0,
                 timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize the HTTP client. Call ensure_collection() before use.

        Args:
            base_url: Chroma server URL (e.g., http://localhost:8000)
            collection_name: Collection that stores lessons
            similarity_threshold: Maximum distance of a usable example (0 disables filtering)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip('/')
        self.collection_name = collection_name
        self.similarity_threshold = similarity_threshold
        self.collection_id: Optional[str] = None
        self.client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def _collection_url(self, action: str) -> str:
        if not self.collection_id:
            raise MemoryStoreError("Collection is not initialized; call ensure_collection() first")
        return f"{COLLECTIONS_PATH}/{self.collection_id}/{action}"

    def _post(self, url: str, payload: Dict, what: str) -> httpx.Response:
        try:
            return self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise MemoryStoreError(f"{what} request failed: {e}") from e

    def _decode(self, response: httpx.Response, what: str, allow_null: bool = False) -> Optional[Dict]:
        try:
            data = response.json()
        except ValueError as e:
            raise MemoryStoreError(f"Could not decode {what} response: {e}, body: {response.text}") from e
        if data is None and allow_null:
            return None
        if not isinstance(data, dict):
            raise MemoryStoreError(f"Unexpected {what} response, expected a JSON object: {response.text}")
        return data

    def ensure_collection(self) -> str:
        """Create the collection if missing and resolve its id."""
        response = self._post(COLLECTIONS_PATH, {"name": self.collection_name}, "create collection")
        body = response.text

        if response.status_code in (200, 201):
            logger.info(f"Memory collection '{self.collection_name}' created or verified")
        elif response.status_code == 409:
            logger.info(f"Memory collection '{self.collection_name}' already exists")
        elif "already exists" in body:
            logger.info(f"Memory collection '{self.collection_name}' already exists (reported as server error)")
        else:
            raise MemoryStoreError(
                f"Could not create collection, status: {response.status_code}, body: {body}"
            )

        try:
            info = self.client.get(f"{COLLECTIONS_PATH}/{self.collection_name}")
        except httpx.HTTPError as e:
            raise MemoryStoreError(f"Could not fetch collection info: {e}") from e

        if info.status_code != 200:
            raise MemoryStoreError(f"Could not fetch collection info, status: {info.status_code}")

        data = self._decode(info, "collection info")
        if not data.get("id"):
            raise MemoryStoreError(f"Collection info has no id: {info.text}")

        self.collection_id = str(data["id"])
        logger.info(f"Memory collection '{self.collection_name}' (ID: {self.collection_id}) ready")
        return self.collection_id

    def add(self, lesson_id: str, embedding: List[float], user_request: str, tool_call_json: str) -> None:
        """Store a lesson: the user request and the tool call JSON that solved it."""
        payload = {
            "ids": [lesson_id],
            "embeddings": [embedding],
            "documents": [user_request],
            "metadatas": [{"user_request": user_request, "tool_call_json": tool_call_json}],
        }
        response = self._post(self._collection_url("add"), payload, "add")
        if response.status_code not in (200, 201):
            raise MemoryStoreError(
                f"Could not add lesson, status: {response.status_code}, body: {response.text}"
            )
        logger.debug(f"Lesson {lesson_id} stored")

    def query_examples(self, embedding: List[float], top_n: int) -> Tuple[List[Dict[str, str]], List[float]]:
        """Return the lessons closest to the embedding and their distances."""
        payload = {
            "query_embeddings": [embedding],
            "n_results": top_n,
            "include": ["metadatas", "distances"],
        }
        response = self._post(self._collection_url("query"), payload, "query")
        if response.status_code != 200:
            raise MemoryStoreError(
                f"Could not query memory, status: {response.status_code}, body: {response.text}"
            )

        data = self._decode(response, "query", allow_null=True)
        if data is None:
            return [], []
        metadatas = data.get("metadatas") or []
        distances = data.get("distances") or []
        if not metadatas or not metadatas[0]:
            return [], []

        examples = [m or {} for m in metadatas[0]]
        hit_distances = list(distances[0]) if distances else [0.0] * len(examples)

        if self.similarity_threshold > 0:
            kept = [(m, d) for m, d in zip(examples, hit_distances) if d <= self.similarity_threshold]
            logger.debug(f"{len(examples) - len(kept)} examples above distance {self.similarity_threshold} dropped")
            examples = [m for m, _ in kept]
            hit_distances = [d for _, d in kept]

        return examples, hit_distances

    def get_all_examples(self) -> List[Dict[str, str]]:
        """Fetch every stored lesson."""
        response = self._post(self._collection_url("get"), {"include": ["metadatas"]}, "get")
        if response.status_code != 200:
            raise MemoryStoreError(
                f"Could not list memory, status: {response.status_code}, body: {response.text}"
            )

        data = self._decode(response, "get", allow_null=True)
        if data is None:
            return []
        return [m or {} for m in (data.get("metadatas") or [])]

    def close(self):
        """Close the HTTP client."""
        self.client.close()
