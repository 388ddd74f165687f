"""
==============================================================================
Database Initialization Module
==============================================================================

Initialization Flow:
-------------------
1. Create all tables from ORM models
2. Create the default admin account if missing
3. Seed the products table from the JSON fixture when it is empty

Fixture Format:
--------------
[
  {
    "serial_number": "SN-001",
    "product_name": "Widget",
    "product_code": "WG-01",
    "packaging": "Box 12",
    "production_order": "PO-7781",
    "production_date": "2025-01-15",
    "production_time": "08:30",
    "location": "Gudang A"
  }
]

==============================================================================
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from productscan.config import get_settings
from productscan.core.security import get_security_manager
from productscan.db.database import DatabaseManager
from productscan.db.models import Product, User
from productscan.schemas.product import ProductSeed


# Module logger
logger = logging.getLogger(__name__)


class DatabaseInitializer:
    """
    Database setup operations.

    Example:
        >>> initializer = DatabaseInitializer()
        >>> initializer.initialize()
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        session: Optional[Session] = None
    ) -> None:
        """
        Args:
            db_manager: DatabaseManager to use (singleton if None)
            session: Existing session to reuse instead of opening one
        """
        self._db_manager = db_manager or DatabaseManager()
        self._settings = get_settings()
        self._session = session

    def _get_session(self) -> Session:
        if self._session is not None:
            return self._session
        return self._db_manager.get_session()

    def _release(self, session: Session) -> None:
        if session is not self._session:
            session.close()

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def create_tables(self) -> None:
        self._db_manager.create_tables()

    def create_default_admin(self) -> bool:
        """
        Create the default admin account if no user has that name.

        Returns:
            True if the account was created
        """
        username = self._settings.default_admin_username.lower()
        session = self._get_session()

        try:
            if session.query(User).filter(User.username == username).first():
                logger.debug(f"Default admin already present: {username}")
                return False

            session.add(User(
                username=username,
                password_hash=get_security_manager().hash_password(
                    self._settings.default_admin_password
                ),
                is_active=True
            ))
            session.commit()

            logger.info(f"👤 Created default admin: {username}")
            if self._settings.default_admin_password == "admin123":
                logger.warning("⚠️ Default admin password in use, change it before deploying")
            return True

        except Exception:
            session.rollback()
            raise
        finally:
            self._release(session)

    def seed_products(self, products_file: Optional[Path] = None) -> int:
        """
        Load the product fixture into an empty products table.

        Invalid entries are skipped with a warning. Nothing is loaded when the
        table already holds products.

        Args:
            products_file: Fixture path (settings.products_path if None)

        Returns:
            Number of products inserted
        """
        path = products_file or self._settings.products_path

        if not path.exists():
            logger.warning(f"⚠️ Products file not found: {path}")
            return 0

        session = self._get_session()

        try:
            if session.query(Product).count() > 0:
                logger.debug("Products table already populated, skipping seed")
                return 0

            with path.open("r", encoding="utf-8") as f:
                entries = json.load(f)

            if not isinstance(entries, list):
                logger.warning(f"Products file must hold a list: {path}")
                return 0

            inserted = 0
            seen = set()

            for index, entry in enumerate(entries):
                try:
                    seed = ProductSeed.model_validate(entry)
                except ValidationError as e:
                    logger.warning(f"Skipping product #{index}: {e.errors()[0]['msg']}")
                    continue

                if seed.serial_number in seen:
                    logger.warning(f"Skipping duplicate serial: {seed.serial_number}")
                    continue

                seen.add(seed.serial_number)
                session.add(Product(**seed.model_dump()))
                inserted += 1

            session.commit()
            logger.info(f"📦 Seeded {inserted} products from {path}")
            return inserted

        except Exception:
            session.rollback()
            raise
        finally:
            self._release(session)

    def initialize(self) -> None:
        """Run the full initialization flow."""
        self.create_tables()
        self.create_default_admin()
        self.seed_products()


def init_db() -> None:
    """Initialize the configured database."""
    DatabaseInitializer().initialize()
