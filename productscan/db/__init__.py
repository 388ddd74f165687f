"""
==============================================================================
Database Package
==============================================================================

SQLAlchemy infrastructure and ORM models.

├── database.py   - DatabaseManager, session factory, FastAPI dependencies
├── models.py     - User, Product, ScanHistory, Scanner, ScanMethod
└── init_db.py    - DatabaseInitializer (tables, admin, product seed)

==============================================================================
"""

from .database import Base, DatabaseManager, SessionFactory, get_db, get_session_factory
from .models import Product, ScanHistory, ScanMethod, Scanner, User
from .init_db import DatabaseInitializer, init_db

__all__ = [
    "Base",
    "DatabaseManager",
    "SessionFactory",
    "get_db",
    "get_session_factory",
    "Product",
    "ScanHistory",
    "ScanMethod",
    "Scanner",
    "User",
    "DatabaseInitializer",
    "init_db",
]
