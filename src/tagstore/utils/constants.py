"""Global constants used throughout the store.

This module centralizes error codes, namespace names, on-disk format values
and configuration names so they can be changed in one place.
"""

from typing import Final

# ============================================================================
# Error Codes
# ============================================================================

# Validation Errors
ERROR_CODE_VALIDATION_FAILED = "VALIDATION_FAILED"
ERROR_CODE_INVALID_GROUP_NAME = "INVALID_GROUP_NAME"

# Not Found Errors
ERROR_CODE_RESOURCE_NOT_FOUND = "NOT_FOUND"
ERROR_CODE_GROUP_NOT_FOUND = "GROUP_NOT_FOUND"
ERROR_CODE_IMAGE_NOT_FOUND = "IMAGE_NOT_FOUND"
ERROR_CODE_IMAGE_DATA_NOT_FOUND = "IMAGE_DATA_NOT_FOUND"

# Conflict Errors
ERROR_CODE_GROUP_EXISTS = "GROUP_EXISTS"
ERROR_CODE_GROUP_NOT_EMPTY = "GROUP_NOT_EMPTY"

# Corruption Errors
ERROR_CODE_DECODE_FAILED = "DECODE_FAILED"

# Storage / I/O Errors
ERROR_CODE_STORAGE = "STORAGE_ERROR"
ERROR_CODE_STORE_LOCKED = "STORE_LOCKED"
ERROR_CODE_STORE_CLOSED = "STORE_CLOSED"
ERROR_CODE_STORE_OPEN_FAILED = "STORE_OPEN_FAILED"
ERROR_CODE_GROUP_CREATE_FAILED = "GROUP_CREATE_FAILED"
ERROR_CODE_GROUP_DELETE_FAILED = "GROUP_DELETE_FAILED"
ERROR_CODE_GROUP_FETCH_FAILED = "GROUP_FETCH_FAILED"
ERROR_CODE_IMAGE_ADD_FAILED = "IMAGE_ADD_FAILED"
ERROR_CODE_IMAGE_UPDATE_FAILED = "IMAGE_UPDATE_FAILED"
ERROR_CODE_IMAGE_DELETE_FAILED = "IMAGE_DELETE_FAILED"
ERROR_CODE_IMAGE_FETCH_FAILED = "IMAGE_FETCH_FAILED"
ERROR_CODE_IMAGE_DATA_FAILED = "IMAGE_DATA_FAILED"


# ============================================================================
# Key Space
# ============================================================================

# Reserved namespaces. Group namespaces always carry GROUP_BUCKET_PREFIX,
# which contains a "/" that neither reserved name has.
GROUPS_BUCKET: Final[bytes] = b"groups"
BLOBS_BUCKET: Final[bytes] = b"blobs"
GROUP_BUCKET_PREFIX: Final[bytes] = b"group/"

ID_KEY_WIDTH = 8
MAX_IMAGE_ID = 2**64 - 1


# ============================================================================
# Record Format
# ============================================================================

RECORD_FORMAT_VERSION = 1


# ============================================================================
# Backing File
# ============================================================================

DEFAULT_OPEN_TIMEOUT = 5.0  # seconds
LOCK_POLL_INTERVAL = 0.05  # seconds
LOCK_FILE_SUFFIX = ".lock"
DB_FILE_MODE = 0o600

SQLITE_PRAGMAS: Final[tuple[str, ...]] = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)


# ============================================================================
# Image Listing
# ============================================================================

SUPPORTED_IMAGE_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {"gif", "jpeg", "jpg", "png", "swf"}
)


# ============================================================================
# Environment Variable Names
# ============================================================================

ENV_DB_PATH = "TAGSTORE_DB_PATH"
ENV_OPEN_TIMEOUT = "TAGSTORE_OPEN_TIMEOUT"

LOG_SERVICE_NAME = "tagstore"


# ============================================================================
# Helper Functions
# ============================================================================


def is_supported_image(filename: str) -> bool:
    """Return True when the file name carries a supported image extension."""
    _, dot, ext = filename.rpartition(".")
    return bool(dot) and ext.lower() in SUPPORTED_IMAGE_EXTENSIONS
