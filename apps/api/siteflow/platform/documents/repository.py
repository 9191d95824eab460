from __future__ import annotations

from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel

from siteflow.platform.documents.store import DocumentStore


ModelT = TypeVar("ModelT", bound=BaseModel)


class BaseDocumentRepository(Generic[ModelT]):
    """Typed view over one document-store collection.

    The document id is the source of truth for ``id_field``: it is injected on
    read and stripped on write, so a record body never disagrees with its key.
    """

    collection: ClassVar[str] = ""
    id_field: ClassVar[str] = ""
    schema: ClassVar[type[BaseModel]]

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def get(self, document_id: str) -> ModelT | None:
        if not document_id:
            return None
        record = self.store.get(self.collection, document_id)
        if record is None:
            return None
        return self._to_model(document_id, record)

    def list(self) -> list[ModelT]:
        return [self._to_model(document_id, record) for document_id, record in self.store.list(self.collection)]

    def add(self, model: ModelT) -> ModelT:
        document_id = self.store.add(self.collection, self._to_record(model))
        setattr(model, self.id_field, document_id)
        return model

    def add_with_id(self, document_id: str, model: ModelT) -> ModelT:
        self.store.add_with_id(self.collection, document_id, self._to_record(model))
        setattr(model, self.id_field, document_id)
        return model

    def update(self, model: ModelT) -> ModelT:
        self.store.update(self.collection, getattr(model, self.id_field), self._to_record(model))
        return model

    def delete(self, document_id: str) -> None:
        self.store.delete(self.collection, document_id)

    def _to_model(self, document_id: str, record: dict[str, Any]) -> ModelT:
        payload = {**record, self.id_field: document_id}
        return self.schema.model_validate(payload)  # type: ignore[return-value]

    def _to_record(self, model: ModelT) -> dict[str, Any]:
        return model.model_dump(mode="json", exclude={self.id_field})
