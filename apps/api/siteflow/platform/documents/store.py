"""Document store adapters.

The workflow core only ever talks to a ``DocumentStore``: records are plain
JSON-compatible dicts addressed by ``(collection, document_id)``. The in-memory
adapter backs tests and local runs; ``SqlDocumentStore`` keeps every collection
in one ``documents`` table.
"""

from __future__ import annotations

import copy
import threading
import uuid
from collections.abc import Callable
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from siteflow.core.errors import DocumentStoreError
from siteflow.platform.documents.models import DocumentRecord


Record = dict[str, Any]


class DocumentStore(Protocol):
    def get(self, collection: str, document_id: str) -> Record | None: ...

    def list(self, collection: str) -> list[tuple[str, Record]]: ...

    def add(self, collection: str, record: Record) -> str: ...

    def add_with_id(self, collection: str, document_id: str, record: Record) -> None: ...

    def update(self, collection: str, document_id: str, record: Record) -> None: ...

    def delete(self, collection: str, document_id: str) -> None: ...


def new_document_id() -> str:
    return uuid.uuid4().hex


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._collections: dict[str, dict[str, Record]] = {}

    def get(self, collection: str, document_id: str) -> Record | None:
        with self._lock:
            record = self._collections.get(collection, {}).get(document_id)
            return copy.deepcopy(record) if record is not None else None

    def list(self, collection: str) -> list[tuple[str, Record]]:
        with self._lock:
            rows = self._collections.get(collection, {})
            return [(document_id, copy.deepcopy(record)) for document_id, record in rows.items()]

    def add(self, collection: str, record: Record) -> str:
        document_id = new_document_id()
        self.add_with_id(collection, document_id, record)
        return document_id

    def add_with_id(self, collection: str, document_id: str, record: Record) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[document_id] = copy.deepcopy(record)

    def update(self, collection: str, document_id: str, record: Record) -> None:
        with self._lock:
            rows = self._collections.setdefault(collection, {})
            if document_id not in rows:
                raise DocumentStoreError(f"{collection}/{document_id} does not exist")
            rows[document_id] = copy.deepcopy(record)

    def delete(self, collection: str, document_id: str) -> None:
        with self._lock:
            self._collections.get(collection, {}).pop(document_id, None)

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()


class SqlDocumentStore:
    """Stores documents as JSON rows; each call runs in its own session."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, collection: str, document_id: str) -> Record | None:
        try:
            with self._session_factory() as session:
                row = session.get(DocumentRecord, (collection, document_id))
                return copy.deepcopy(row.data) if row is not None else None
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"failed to read {collection}/{document_id}") from exc

    def list(self, collection: str) -> list[tuple[str, Record]]:
        stmt = select(DocumentRecord).where(DocumentRecord.collection == collection).order_by(DocumentRecord.created_at)
        try:
            with self._session_factory() as session:
                return [(row.document_id, copy.deepcopy(row.data)) for row in session.scalars(stmt).all()]
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"failed to list {collection}") from exc

    def add(self, collection: str, record: Record) -> str:
        document_id = new_document_id()
        self.add_with_id(collection, document_id, record)
        return document_id

    def add_with_id(self, collection: str, document_id: str, record: Record) -> None:
        try:
            with self._session_factory() as session:
                session.add(DocumentRecord(collection=collection, document_id=document_id, data=record))
                session.commit()
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"failed to add {collection}/{document_id}") from exc

    def update(self, collection: str, document_id: str, record: Record) -> None:
        try:
            with self._session_factory() as session:
                row = session.get(DocumentRecord, (collection, document_id))
                if row is None:
                    raise DocumentStoreError(f"{collection}/{document_id} does not exist")
                row.data = record
                session.commit()
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"failed to update {collection}/{document_id}") from exc

    def delete(self, collection: str, document_id: str) -> None:
        try:
            with self._session_factory() as session:
                row = session.get(DocumentRecord, (collection, document_id))
                if row is not None:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"failed to delete {collection}/{document_id}") from exc
