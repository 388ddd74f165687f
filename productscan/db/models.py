"""
==============================================================================
SQLAlchemy ORM Models Module
==============================================================================

Database Schema:
---------------

    ┌──────────────────────────────┐      ┌──────────────────────────────┐
    │            users             │      │           products           │
    ├──────────────────────────────┤      ├──────────────────────────────┤
    │ id (UUID, PK)                │      │ id (INTEGER, PK)             │
    │ username (UNIQUE)            │      │ serial_number (UNIQUE)       │
    │ password_hash                │      │ product_name                 │
    │ is_active                    │      │ product_code                 │
    │ created_at / updated_at      │      │ packaging                    │
    └──────────────┬───────────────┘      │ production_order             │
                   │                      │ production_date / _time      │
                   │ 1:N                  │ location                     │
        ┌──────────┴──────────┐           └──────────────────────────────┘
        ▼                     ▼
    ┌─────────────────────┐  ┌──────────────────────────────────────────┐
    │    scan_history     │  │                scanners                  │
    ├─────────────────────┤  ├──────────────────────────────────────────┤
    │ id (INTEGER, PK)    │  │ id (UUID, PK)                            │
    │ user_id (FK)        │  │ user_id (FK, CASCADE)                    │
    │ serial_number       │  │ scanner_name  ── UNIQUE(user_id, name)   │
    │ scan_method         │  │ scanner_type (camera/manual/excel)       │
    │ scanned_at          │  │ device_info (JSON text)                  │
    └─────────────────────┘  │ is_active / created_at / last_used_at    │
                             └──────────────────────────────────────────┘

Products are read-only here; they belong to an external system of record
and are only seeded locally for development.

==============================================================================
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, relationship

from productscan.db.database import Base


# =============================================================================
# ENUMS
# =============================================================================

class ScanMethod(str, enum.Enum):
    """
    How a serial number reached the system.

    Used both as the history method and as the scanner profile type.
    """

    CAMERA = "camera"
    MANUAL = "manual"
    EXCEL = "excel"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# USER MODEL
# =============================================================================

class User(Base):
    """
    Operator account. Supplies the user id every scan and scanner profile
    is scoped to.
    """

    __tablename__ = "users"

    id: str = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        doc="Unique user identifier (UUID)"
    )

    username: str = Column(String(50), unique=True, nullable=False, index=True)

    password_hash: str = Column(String(255), nullable=False)

    is_active: bool = Column(Boolean, default=True, nullable=False)

    created_at: datetime = Column(DateTime, default=datetime.utcnow, nullable=False)

    updated_at: datetime = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    scanners: Mapped[List["Scanner"]] = relationship(
        "Scanner",
        back_populates="owner",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"User(id={self.id!r}, username={self.username!r}, is_active={self.is_active})"


# =============================================================================
# PRODUCT MODEL
# =============================================================================

class Product(Base):
    """A verifiable product, identified by its serial number."""

    __tablename__ = "products"

    id: int = Column(Integer, primary_key=True, autoincrement=True)

    serial_number: str = Column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
        doc="Printed serial number, matched exactly"
    )

    product_name: str = Column(String(255), nullable=False)

    product_code: Optional[str] = Column(String(100), nullable=True)

    packaging: Optional[str] = Column(String(100), nullable=True)

    production_order: Optional[str] = Column(String(100), nullable=True)

    production_date: Optional[date] = Column(Date, nullable=True)

    production_time: Optional[str] = Column(String(20), nullable=True)

    location: Optional[str] = Column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"Product(serial_number={self.serial_number!r}, product_name={self.product_name!r})"


# =============================================================================
# SCAN HISTORY MODEL
# =============================================================================

class ScanHistory(Base):
    """Append-only log entry for one verification."""

    __tablename__ = "scan_history"

    id: int = Column(Integer, primary_key=True, autoincrement=True)

    user_id: str = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    serial_number: str = Column(String(255), nullable=False)

    scan_method: ScanMethod = Column(Enum(ScanMethod), nullable=False)

    scanned_at: datetime = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return (
            f"ScanHistory(user_id={self.user_id!r}, "
            f"serial_number={self.serial_number!r}, "
            f"scan_method={self.scan_method.value!r})"
        )


# =============================================================================
# SCANNER PROFILE MODEL
# =============================================================================

class Scanner(Base):
    """
    Named input device registered by a user.

    Names are unique per owner; upserts key on (user_id, scanner_name).
    """

    __tablename__ = "scanners"
    __table_args__ = (
        UniqueConstraint("user_id", "scanner_name", name="uq_scanners_user_name"),
    )

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id: str = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    scanner_name: str = Column(String(255), nullable=False)

    scanner_type: ScanMethod = Column(Enum(ScanMethod), default=ScanMethod.CAMERA, nullable=False)

    device_info: Optional[str] = Column(Text, nullable=True, doc="Free-form JSON metadata")

    is_active: bool = Column(Boolean, default=True, nullable=False)

    created_at: datetime = Column(DateTime, default=datetime.utcnow, nullable=False)

    last_used_at: Optional[datetime] = Column(DateTime, nullable=True)

    owner: Mapped["User"] = relationship("User", back_populates="scanners")

    def __repr__(self) -> str:
        return (
            f"Scanner(id={self.id!r}, scanner_name={self.scanner_name!r}, "
            f"scanner_type={self.scanner_type.value!r}, is_active={self.is_active})"
        )
