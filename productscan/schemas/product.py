"""
==============================================================================
Product Schemas Module
==============================================================================

Product detail shown after a successful verification, the fixture entry
used for seeding, and the request/response bodies of the verify endpoints.

==============================================================================
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductDetail(BaseModel):
    """
    Verified product as displayed to the operator.

    Attributes:
        serial_number: Serial that was matched
        product_name: Nama Produk
        product_code: Kode Produk
        packaging: Kemasan
        production_order: Production Order
        production_date: Tanggal Produksi
        production_time: Production time of day, as recorded
        location: Lokasi
    """

    model_config = ConfigDict(from_attributes=True)

    serial_number: str
    product_name: str
    product_code: Optional[str] = None
    packaging: Optional[str] = None
    production_order: Optional[str] = None
    production_date: Optional[date] = None
    production_time: Optional[str] = None
    location: Optional[str] = None


class ProductSeed(ProductDetail):
    """Fixture entry; same fields, stricter serial handling."""

    model_config = ConfigDict(from_attributes=False, extra="ignore")

    @field_validator("serial_number", "product_name")
    @classmethod
    def require_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class VerifyRequest(BaseModel):
    """Manual serial entry."""
    serial_number: str = Field(..., min_length=1, max_length=255)

    @field_validator("serial_number")
    @classmethod
    def strip_serial(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Serial number is required")
        return v


class ProductResponse(BaseModel):
    success: bool = Field(default=True)
    product: ProductDetail


class BatchVerificationResponse(BaseModel):
    """Outcome of verifying every serial in an uploaded spreadsheet."""
    success: bool = Field(default=True)
    total: int = Field(ge=0)
    found: List[ProductDetail]
    missing: List[str]
