"""
==============================================================================
API v1 Endpoints
==============================================================================

Version 1 of the REST API.

Routers:
--------
- health: Health check endpoints
- auth: Registration, login, tokens
- products: Lookup and verification
- scanners: Scanner profile registry
- history: Scan history

==============================================================================
"""

from . import health, auth, products, scanners, history

__all__ = ["health", "auth", "products", "scanners", "history"]
