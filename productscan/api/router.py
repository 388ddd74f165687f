"""
==============================================================================
Main API Router
==============================================================================

    /api/v1
      ├── /health
      ├── /auth
      ├── /products      lookup, manual and spreadsheet verification
      ├── /scanners      scanner profiles
      └── /history       scan events of the caller

==============================================================================
"""

from fastapi import APIRouter

from productscan.api.v1 import auth, health, history, products, scanners


V1_MODULES = (health, auth, products, scanners, history)


class MainAPIRouter:
    """Mounts every v1 module router under one versioned prefix."""

    def __init__(self, prefix: str = "/api/v1", modules=V1_MODULES):
        self._router = APIRouter(prefix=prefix)

        for module in modules:
            self._router.include_router(module.router)

    @property
    def router(self) -> APIRouter:
        return self._router


api_router = MainAPIRouter().router
