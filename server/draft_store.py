"""
draft_store.py
==============

A small document store holding one document per draft and one per trade.
Documents are deep-copied on the way in and on the way out, so a caller
can only change stored state through an explicit write.

Every write returns a :class:`WriteResult` modelled on document-database
drivers (acknowledged flag plus matched/modified counts).  Documents that
carry a ``version`` attribute are written with compare-and-set semantics:
a replace only matches when the caller's version equals the stored one,
and a successful write bumps the version on both copies.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

DRAFTS = "drafts"
TRADES = "trades"


@dataclass(frozen=True)
class WriteResult:
    acknowledged: bool
    matched_count: int = 0
    modified_count: int = 0


class MemoryStore:
    """In-process store keyed by collection name and document id.

    Can later be swapped for a real database by implementing the same five
    methods.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _collection(self, name: str) -> Dict[str, Any]:
        return self._collections.setdefault(name, {})

    def insert(self, collection: str, document: Any) -> WriteResult:
        with self._lock:
            docs = self._collection(collection)
            if document.id in docs:
                return WriteResult(acknowledged=True)
            if hasattr(document, "version"):
                document.version = 1
            docs[document.id] = copy.deepcopy(document)
            return WriteResult(acknowledged=True, matched_count=0, modified_count=1)

    def get(self, collection: str, doc_id: str) -> Optional[Any]:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find(self, collection: str, predicate: Optional[Callable[[Any], bool]] = None) -> List[Any]:
        with self._lock:
            docs = list(self._collection(collection).values())
            return [copy.deepcopy(d) for d in docs if predicate is None or predicate(d)]

    def replace(self, collection: str, document: Any) -> WriteResult:
        with self._lock:
            docs = self._collection(collection)
            stored = docs.get(document.id)
            if stored is None:
                return WriteResult(acknowledged=True)
            versioned = hasattr(document, "version")
            if versioned and stored.version != document.version:
                return WriteResult(acknowledged=True)
            if versioned:
                document.version += 1
            docs[document.id] = copy.deepcopy(document)
            return WriteResult(acknowledged=True, matched_count=1, modified_count=1)

    def delete(self, collection: str, doc_id: str) -> WriteResult:
        with self._lock:
            removed = self._collection(collection).pop(doc_id, None)
            count = 1 if removed is not None else 0
            return WriteResult(acknowledged=True, matched_count=count, modified_count=count)
