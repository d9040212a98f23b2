"""
SightEd Backend — DocumentStore Interface
===========================================

What:  Abstract persistence API for JSON documents grouped into collections.
Why:   Services depend on this interface only; the concrete backend (SQL or
       in-memory) is picked once from STORAGE_BACKEND at startup.

Contract shared by every implementation:
    - Documents are plain dicts. Every document returned carries its "id".
    - Stored bodies never contain "id"; the id is the key.
    - Returned dicts are copies; mutating them never changes stored state.
    - update() on a missing document raises NotFoundError.
    - create() on an existing document raises ConflictError; the existence
      check and the insert are one atomic step.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional


class DocumentStore(ABC):
    """Interface implemented by MemoryDocumentStore and SQLDocumentStore."""

    backend_name: str = "unknown"

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Returns the document or None when it does not exist."""

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Creates or replaces the document stored under `doc_id`."""

    @abstractmethod
    async def create(
        self, collection: str, doc_id: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Stores `data` under `doc_id` only if that id is free."""

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Stores `data` under a fresh uuid4 hex id and returns that id."""
        doc_id = uuid.uuid4().hex
        await self.set(collection, doc_id, data)
        return doc_id

    @abstractmethod
    async def list(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Lists documents of a collection.

        Ordering is by the `order_by` field when given, otherwise by insertion.
        Documents without the `order_by` field sort after all others.
        """

    @abstractmethod
    async def count(self, collection: str) -> int:
        ...

    @abstractmethod
    async def find(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """Returns every document whose `field` equals `value`."""

    @abstractmethod
    async def update(
        self, collection: str, doc_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Merges `changes` into an existing document and returns the result."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Deletes the document; False when there was nothing to delete."""

    @abstractmethod
    async def health_check(self) -> bool:
        ...

    async def close(self) -> None:
        """Releases connections; called from the app lifespan on shutdown."""


# ── Helpers shared by the implementations ─────────────────────────────────

def with_id(doc_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
    document = dict(body)
    document["id"] = doc_id
    return document


def strip_id(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key != "id"}


def order_documents(
    documents: Iterable[Dict[str, Any]],
    order_by: Optional[str],
    descending: bool,
    limit: Optional[int],
    offset: int,
) -> List[Dict[str, Any]]:
    """Sorts by a document field in Python, then applies offset/limit."""
    documents = list(documents)
    if order_by:
        present = [d for d in documents if d.get(order_by) is not None]
        missing = [d for d in documents if d.get(order_by) is None]
        present.sort(key=lambda d: d[order_by], reverse=descending)
        documents = present + missing
    elif descending:
        documents.reverse()

    offset = max(offset, 0)
    if limit is None:
        return documents[offset:]
    return documents[offset:offset + max(limit, 0)]
