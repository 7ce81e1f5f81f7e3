"""SQLite persistence: work queue, documents, therapies and results."""

from revenue_extractor.storage.sqlite import (
    get_connection,
    connect,
    transaction,
    initialize_schema,
)
from revenue_extractor.storage.work_queue import WorkQueue
from revenue_extractor.storage.repositories import (
    DocumentRepository,
    TherapyRepository,
    ResultStore,
)

__all__ = [
    "get_connection",
    "connect",
    "transaction",
    "initialize_schema",
    "WorkQueue",
    "DocumentRepository",
    "TherapyRepository",
    "ResultStore",
]
