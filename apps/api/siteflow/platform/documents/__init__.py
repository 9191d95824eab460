from siteflow.platform.documents.repository import BaseDocumentRepository
from siteflow.platform.documents.store import DocumentStore, InMemoryDocumentStore, SqlDocumentStore, new_document_id

__all__ = [
    "BaseDocumentRepository",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "new_document_id",
]
