"""
In-memory document store shared by all capability units.

Units receive the store through their ``UnitDependencies`` bundle and keep
their state in named collections. Documents are plain dicts keyed by
``_id``; reads return copies so callers cannot mutate stored state.

Manifesto:
    Units only need a handful of document operations (insert, find,
    update, delete with equality filters and an optional unique key).
    Keeping that surface small makes the store trivially swappable and
    keeps unit tests free of infrastructure.

Architecture:
    ::

        DocumentStore
        └── collection(name) → Collection
              insert_one(doc)                  → _id
              find_one(filter)                 → doc | None
              find(filter, where=..., sort=..) → list[doc]
              update_one(filter, set=, unset=, upsert=) → matched count
              delete_one(filter) / delete_many(filter)  → deleted count
              count(filter)                    → int

Guardrails:
    - Not safe for concurrent threads; units run on one event loop
    - A unique key is enforced at insert time only

Tags:
    storage, in-memory, documents, concord

Doc-Types:
    api-reference
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from concord.core.errors import DuplicateKeyError
from concord.core.logging import get_logger

log = get_logger(__name__)

Document = dict[str, Any]
Filter = Mapping[str, Any]


def fresh_id() -> str:
    """Generate a new opaque document identifier."""
    return uuid.uuid4().hex


def _matches(document: Document, filter: Filter | None) -> bool:
    if not filter:
        return True
    return all(key in document and document[key] == value for key, value in filter.items())


class Collection:
    """A named set of documents with optional unique keys."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._documents: dict[Any, Document] = {}
        self._unique_keys: list[tuple[str, ...]] = []

    def create_index(self, fields: Iterable[str], *, unique: bool = False) -> None:
        """Declare a (compound) key. Only unique indexes have an effect."""
        key = tuple(fields)
        if unique and key not in self._unique_keys:
            self._unique_keys.append(key)
            log.debug("index_ensured", collection=self.name, fields=list(key))

    def _check_unique(self, document: Document, ignore_id: Any = None) -> None:
        for key in self._unique_keys:
            probe = {field: document.get(field) for field in key}
            for existing_id, existing in self._documents.items():
                if existing_id != ignore_id and _matches(existing, probe):
                    raise DuplicateKeyError(
                        f"Duplicate key {probe} in collection '{self.name}'."
                    )

    def insert_one(self, document: Mapping[str, Any]) -> Any:
        doc = copy.deepcopy(dict(document))
        doc.setdefault("_id", fresh_id())
        if doc["_id"] in self._documents:
            raise DuplicateKeyError(
                f"Document '{doc['_id']}' already exists in collection '{self.name}'."
            )
        self._check_unique(doc)
        self._documents[doc["_id"]] = doc
        return doc["_id"]

    def find_one(self, filter: Filter | None = None) -> Document | None:
        if filter and set(filter) == {"_id"}:
            found = self._documents.get(filter["_id"])
            return copy.deepcopy(found) if found is not None else None
        for document in self._documents.values():
            if _matches(document, filter):
                return copy.deepcopy(document)
        return None

    def find(
        self,
        filter: Filter | None = None,
        *,
        where: Callable[[Document], bool] | None = None,
        sort: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        """Return copies of matching documents in insertion order (or sorted)."""
        results = [
            copy.deepcopy(document)
            for document in self._documents.values()
            if _matches(document, filter) and (where is None or where(document))
        ]
        if sort is not None:
            results.sort(key=lambda document: document.get(sort), reverse=descending)
        return results

    def count(self, filter: Filter | None = None) -> int:
        return sum(1 for document in self._documents.values() if _matches(document, filter))

    def update_one(
        self,
        filter: Filter,
        *,
        set: Mapping[str, Any] | None = None,
        unset: Iterable[str] = (),
        upsert: bool = False,
    ) -> int:
        """Apply ``set``/``unset`` to the first match; returns matched count."""
        for doc_id, document in self._documents.items():
            if _matches(document, filter):
                updated = copy.deepcopy(document)
                updated.update(copy.deepcopy(dict(set or {})))
                for field in unset:
                    updated.pop(field, None)
                self._check_unique(updated, ignore_id=doc_id)
                self._documents[doc_id] = updated
                return 1
        if upsert:
            document = {**dict(filter), **copy.deepcopy(dict(set or {}))}
            self.insert_one(document)
        return 0

    def delete_one(self, filter: Filter) -> int:
        for doc_id, document in self._documents.items():
            if _matches(document, filter):
                del self._documents[doc_id]
                return 1
        return 0

    def delete_many(self, filter: Filter | None = None) -> int:
        doomed = [doc_id for doc_id, document in self._documents.items() if _matches(document, filter)]
        for doc_id in doomed:
            del self._documents[doc_id]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._documents)


class DocumentStore:
    """Registry of named collections.

    Example::

        store = DocumentStore()
        resources = store.collection("resources")
        rid = resources.insert_one({"owner": "u1", "name": "Bike"})
    """

    def __init__(self) -> None:
        self._collections: dict[str, Collection] = {}

    def collection(self, name: str) -> Collection:
        if name not in self._collections:
            self._collections[name] = Collection(name)
        return self._collections[name]

    def collections(self) -> list[str]:
        return sorted(self._collections)

    def drop(self, name: str) -> None:
        self._collections.pop(name, None)


__all__ = ["Collection", "DocumentStore", "fresh_id"]
