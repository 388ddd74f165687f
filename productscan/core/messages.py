"""
==============================================================================
User-Facing Copy
==============================================================================

Literal strings shown to scanner operators. Kept verbatim (Indonesian and
English) so clients render exactly what operators already know.

==============================================================================
"""

# Camera acquisition
CAMERA_PERMISSION_DENIED = (
    "Camera permission denied. Please allow camera access in your browser "
    "settings and try again."
)
CAMERA_NOT_FOUND = (
    "No camera found on this device. Please check your device has a working camera."
)
CAMERA_START_FAILED = (
    "Failed to access camera. Please check your permissions and device settings."
)
CAMERA_ALREADY_ACTIVE = "Camera is already active"

# Product lookup
PRODUCT_NOT_FOUND = "Produk tidak ditemukan di database"
PRODUCT_LOOKUP_FAILED = "Error searching product"

# Scanner registry
SCANNER_REGISTER_FAILED = "Failed to register scanner"
SCANNER_SEARCH_FAILED = "Failed to search scanner"
SCANNER_DELETE_FAILED = "Failed to delete scanner"
SCANNER_LOAD_FAILED = "Failed to load scanners"
SCANNER_DELETE_CONFIRM = (
    "Are you sure you want to delete this scanner? This action cannot be undone."
)


def scanner_not_found(name: str) -> str:
    """Notice shown when a scanner search returns nothing."""
    return f'Scanner "{name}" not found'
