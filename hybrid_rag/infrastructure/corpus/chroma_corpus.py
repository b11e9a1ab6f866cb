import asyncio
import logging
from typing import Optional

import requests

from hybrid_rag.core.errors import ProviderUnreachableError
from hybrid_rag.core.models.document import Passage

from .json_corpus import passage_from_record

logger = logging.getLogger(__name__)


class ChromaCorpus:
    """Read-only corpus over a ChromaDB collection (HTTP API v2)."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8001,
        collection_name: str = "hybrid_rag_passages",
        tenant: str = "default_tenant",
        database: str = "default_database",
        timeout: float = 30.0,
    ):
        """Initialize ChromaDB corpus.

        Args:
            host: ChromaDB host.
            port: ChromaDB port.
            collection_name: Collection name.
            tenant: Tenant name.
            database: Database name.
            timeout: Request timeout in seconds.
        """
        self._base_url = f"http://{host}:{port}/api/v2"
        self._tenant = tenant
        self._database = database
        self._collection_name = collection_name
        self._collection_id: Optional[str] = None
        self._timeout = timeout

    @property
    def _collections_url(self) -> str:
        return f"{self._base_url}/tenants/{self._tenant}/databases/{self._database}/collections"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return requests.request(method, url, timeout=self._timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise ProviderUnreachableError(f"ChromaDB unreachable at {self._base_url}: {e}") from e

    def _collection(self) -> Optional[str]:
        """Look up the collection ID. The corpus never creates collections."""
        if self._collection_id:
            return self._collection_id

        resp = self._request("GET", self._collections_url)
        resp.raise_for_status()
        for col in resp.json():
            if col["name"] == self._collection_name:
                self._collection_id = col["id"]
                return self._collection_id

        logger.warning(f"Collection not found: {self._collection_name}")
        return None

    def query(self, category_filter: Optional[str] = None) -> list[Passage]:
        col_id = self._collection()
        if col_id is None:
            return []

        body: dict = {"include": ["documents", "metadatas", "embeddings"]}
        if category_filter:
            body["where"] = {"category": category_filter}

        resp = self._request("POST", f"{self._collections_url}/{col_id}/get", json=body)
        resp.raise_for_status()
        data = resp.json()

        passages = []
        ids = data.get("ids") or []
        documents = data.get("documents") or [None] * len(ids)
        metadatas = data.get("metadatas") or [None] * len(ids)
        embeddings = data.get("embeddings") or [None] * len(ids)

        for pid, doc, meta, emb in zip(ids, documents, metadatas, embeddings):
            meta = meta or {}
            tags = meta.get("tags") or ()
            passages.append(
                passage_from_record(
                    {
                        "id": pid,
                        "content": doc or "",
                        "search_content": meta.get("search_content"),
                        "embedding": emb,
                        "metadata": {
                            "category": meta.get("category", "general"),
                            "sub_category": meta.get("sub_category", "uncategorized"),
                            # Chroma metadata values are scalars
                            "tags": tags.split(",") if isinstance(tags, str) else tags,
                            "ticket_id": meta.get("ticket_id"),
                        },
                        "source": {
                            "id": meta.get("source_id", meta.get("source", "unknown")),
                            "title": meta.get("source_title", meta.get("source", "Unknown")),
                            "page": meta.get("page"),
                        },
                    }
                )
            )

        # Chroma does not guarantee ordering
        passages.sort(key=lambda p: p.id)
        return passages

    def count(self) -> int:
        col_id = self._collection()
        if col_id is None:
            return 0
        resp = self._request("GET", f"{self._collections_url}/{col_id}/count")
        return resp.json() if resp.status_code == 200 else 0

    async def ping(self, timeout: float = 2.0) -> bool:
        try:
            resp = await asyncio.to_thread(
                requests.get, f"{self._base_url}/heartbeat", timeout=timeout
            )
            return resp.status_code == 200
        except requests.RequestException as e:
            logger.warning(f"ChromaDB ping failed: {e}")
            return False
