"""
==============================================================================
WebSocket Package
==============================================================================

Real-time scan sessions.

Handlers:
---------
- scanner: Camera / manual verification and scanner profile management

==============================================================================
"""

from .scanner import router as scanner_router

__all__ = ["scanner_router"]
