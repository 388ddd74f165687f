"""
In-memory stand-ins for the engine and stores used by scan session tests.
"""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional
from uuid import uuid4

from productscan.core.exceptions import LookupTransportError, RegistryError
from productscan.db.models import ScanMethod
from productscan.scanner.engine import CaptureConfig, DecodeEngine
from productscan.schemas.product import ProductDetail
from productscan.schemas.scanner import ScannerDetail
from productscan.schemas.session import CameraInfo


WIDGET = ProductDetail(serial_number="SN-001", product_name="Widget", location="Gudang A")
GADGET = ProductDetail(serial_number="SN-002", product_name="Gadget")


class FakeDecodeEngine(DecodeEngine):
    """Engine whose decodes are triggered by the test."""

    def __init__(self, cameras: Optional[List[CameraInfo]] = None) -> None:
        super().__init__()
        self.cameras = list(cameras or [])
        self.enumerate_error: Optional[Exception] = None
        self.start_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None
        self.opened: List[CameraInfo] = []
        self.stop_calls = 0

    async def enumerate_cameras(self) -> List[CameraInfo]:
        if self.enumerate_error:
            raise self.enumerate_error
        return list(self.cameras)

    async def _open(self, camera: CameraInfo, config: CaptureConfig) -> None:
        if self.start_error:
            raise self.start_error
        self.opened.append(camera)

    async def _close(self) -> None:
        self.stop_calls += 1
        if self.stop_error:
            raise self.stop_error

    def emit(self, text: str) -> None:
        self._emit(text)


class FakeProductStore:
    """Product lookup with per-serial latency."""

    def __init__(self, products: Optional[Dict[str, ProductDetail]] = None) -> None:
        self.products = dict(products or {})
        self.delays: Dict[str, float] = {}
        self.fail = False
        self.calls: List[str] = []
        self.completed: List[str] = []

    async def find_by_serial(self, serial_number: str) -> Optional[ProductDetail]:
        self.calls.append(serial_number)
        await asyncio.sleep(self.delays.get(serial_number, 0))
        self.completed.append(serial_number)

        if self.fail:
            raise LookupTransportError()
        return self.products.get(serial_number)


class FakeHistoryStore:
    def __init__(self, delay: float = 0) -> None:
        self.events: List[tuple] = []
        self.delay = delay
        self.fail = False

    async def append(self, user_id: str, serial_number: str, method: ScanMethod) -> None:
        await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("history store offline")
        self.events.append((user_id, serial_number, method))


class FakeRegistry:
    """Scanner profile store keeping every call it receives."""

    def __init__(self, scanners: Optional[List[ScannerDetail]] = None) -> None:
        self.scanners = list(scanners or [])
        self.calls: List[tuple] = []
        self.failing: set = set()

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise RegistryError()

    async def list_active(self, user_id: str) -> List[ScannerDetail]:
        self.calls.append(("list_active", user_id))
        self._check("list_active")
        return [s for s in self.scanners if s.is_active]

    async def search(self, user_id: str, query: str) -> Optional[List[ScannerDetail]]:
        self.calls.append(("search", user_id, query))
        self._check("search")
        needle = query.strip().lower()
        return [s for s in self.scanners if needle in s.scanner_name.lower()]

    async def upsert(self, user_id, scanner_name, scanner_type=ScanMethod.CAMERA, device_info=None):
        self.calls.append(("upsert", user_id, scanner_name, scanner_type, device_info))
        self._check("upsert")
        scanner = make_scanner(scanner_name)
        self.scanners.append(scanner)
        return scanner

    async def delete(self, user_id: str, scanner_id: str, confirmed: bool = False) -> bool:
        self.calls.append(("delete", user_id, scanner_id, confirmed))
        self._check("delete")
        self.scanners = [s for s in self.scanners if s.id != scanner_id]
        return True

    def operations(self) -> List[str]:
        return [call[0] for call in self.calls]


def make_scanner(name: str, scanner_id: Optional[str] = None, is_active: bool = True) -> ScannerDetail:
    return ScannerDetail(
        id=scanner_id or str(uuid4()),
        scanner_name=name,
        scanner_type=ScanMethod.CAMERA,
        is_active=is_active,
        created_at=datetime.utcnow(),
        last_used_at=datetime.utcnow(),
    )
