"""
==============================================================================
Services Package - Business Logic Layer
==============================================================================

Service classes between the API / scan sessions and the database.

    ┌──────────────────────────┐
    │ API Router / ScanSession │
    └────────────┬─────────────┘
                 │
    ┌────────────▼─────────────┐
    │         Service          │  ← Business Logic
    └────────────┬─────────────┘
                 │
    ┌────────────▼─────────────┐
    │       SQLAlchemy ORM     │
    └──────────────────────────┘

The *Client / SqlHistoryStore classes are the async variants used inside
scan sessions; they run the synchronous services in worker threads.

==============================================================================
"""

from .auth_service import AuthService
from .product_service import ProductService, ProductLookupClient
from .history_service import HistoryService, HistoryRecorder, SqlHistoryStore
from .scanner_service import ScannerRegistry, ScannerRegistryClient
from .batch_service import BatchVerifier

__all__ = [
    "AuthService",
    "ProductService",
    "ProductLookupClient",
    "HistoryService",
    "HistoryRecorder",
    "SqlHistoryStore",
    "ScannerRegistry",
    "ScannerRegistryClient",
    "BatchVerifier",
]
