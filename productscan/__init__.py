"""
==============================================================================
Product Verification Scanner
==============================================================================

Scan a barcode/QR payload from a camera or manual entry, verify it against
the product store, and keep a flat history of every verification.

==============================================================================
"""

__version__ = "1.0.0"
