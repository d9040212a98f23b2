"""
SightEd Backend — In-Memory DocumentStore
===========================================

What:  Process-local DocumentStore backed by nested dicts.
When:  STORAGE_BACKEND=memory (local development, demos) and the test suite.
Caveat: Data is lost on restart and not shared between uvicorn workers.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from sighted.exceptions import ConflictError, NotFoundError
from sighted.storage.base import DocumentStore, order_documents, strip_id, with_id

logger = logging.getLogger(__name__)


class MemoryDocumentStore(DocumentStore):
    """
    Stores deep copies of every document.

    Layout: {collection: {doc_id: body}}. Python dicts keep insertion order,
    which is the default listing order.
    """

    backend_name = "memory"

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _collection(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        body = self._collection(collection).get(doc_id)
        if body is None:
            return None
        return with_id(doc_id, copy.deepcopy(body))

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = copy.deepcopy(strip_id(data))
        self._collection(collection)[doc_id] = body
        return with_id(doc_id, copy.deepcopy(body))

    async def create(
        self, collection: str, doc_id: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        documents = self._collection(collection)
        # No await between the check and the insert
        if doc_id in documents:
            raise ConflictError(context={"collection": collection, "id": doc_id})
        body = copy.deepcopy(strip_id(data))
        documents[doc_id] = body
        return with_id(doc_id, copy.deepcopy(body))

    async def list(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        documents = [
            with_id(doc_id, copy.deepcopy(body))
            for doc_id, body in self._collection(collection).items()
        ]
        return order_documents(documents, order_by, descending, limit, offset)

    async def count(self, collection: str) -> int:
        return len(self._collection(collection))

    async def find(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        return [
            with_id(doc_id, copy.deepcopy(body))
            for doc_id, body in self._collection(collection).items()
            if body.get(field) == value
        ]

    async def update(
        self, collection: str, doc_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        documents = self._collection(collection)
        if doc_id not in documents:
            raise NotFoundError(resource=collection, resource_id=doc_id)
        documents[doc_id].update(copy.deepcopy(strip_id(changes)))
        return with_id(doc_id, copy.deepcopy(documents[doc_id]))

    async def delete(self, collection: str, doc_id: str) -> bool:
        return self._collection(collection).pop(doc_id, None) is not None

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        logger.info("Memory store closed (%d collections)", len(self._collections))
