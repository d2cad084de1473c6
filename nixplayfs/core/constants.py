"""
NixplayFS Core: Constants and Type Definitions

This module provides system-wide constants, error codes, collection kinds
and the default configuration shared by every layer of NixplayFS.
"""
from enum import Enum, IntEnum
from typing import TypeAlias

# Version information
NIXPLAYFS_VERSION = "0.1.0"
NIXPLAYFS_API_VERSION = 1


# Error codes (0-9 range)
class ErrorCode(IntEnum):
    """Standardized error codes for NixplayFS operations."""

    SUCCESS = 0  # Operation completed successfully
    INVALID_INPUT = 1  # Bad path, invalid configuration
    NOT_FOUND = 2  # Directory, photo or collection doesn't exist
    PERMISSION_DENIED = 3  # Operation not permitted at this path
    CONFLICT = 4  # Ambiguous or non-empty collection
    DEPENDENCY_ERROR = 5  # Remote photo service failed
    INTERNAL_ERROR = 6  # Bug in NixplayFS
    TIMEOUT = 7  # Operation timed out
    RATE_LIMITED = 8  # Too many operations
    DEGRADED = 9  # Running with reduced functionality


# Type aliases for clarity
VirtualPath: TypeAlias = str
MountRoot: TypeAlias = str
CollectionName: TypeAlias = str
ItemName: TypeAlias = str
PhotoContent: TypeAlias = bytes


class CollectionKind(Enum):
    """Kinds of remote collection exposed under the filesystem root.

    The value is the directory name used for the kind in virtual paths.
    """

    ALBUM = "album"  # Unordered named set of photos
    PLAYLIST = "playlist"  # Ordered named set of photos


# Path separator used by every virtual path
PATH_SEPARATOR = "/"

# MIME type assumed when the file name gives no hint
DEFAULT_MIME_TYPE = "image/jpeg"


class Limits:
    """System limits and default values."""

    # Path limits
    MAX_PATH_LENGTH = 4096
    MAX_FILENAME_LENGTH = 255

    # Upload limits
    MAX_UPLOAD_SIZE = 100 * 1024 * 1024  # 100MB

    # Filesystem block size reported by statfs
    BLOCK_SIZE = 4096


class ConfigKey:
    """Configuration key constants."""

    # Top-level keys
    ROOT = "root"
    READONLY = "readonly"
    ALLOW_OTHER = "allow_other"
    SERVICE = "service"
    USER_NAME = "user_name"
    PASSWORD = "password"
    LOGGING = "logging"

    # Service configuration
    SERVICE_TYPE = "type"
    SERVICE_FACTORY = "factory"
    SERVICE_OPTIONS = "options"

    # Logging configuration
    LOG_LEVEL = "level"
    LOG_FILE = "file"


# Service types that ship with NixplayFS
SERVICE_TYPES = ("memory",)

# Default configuration values
DEFAULT_CONFIG = {
    ConfigKey.ROOT: "",
    ConfigKey.READONLY: False,
    ConfigKey.ALLOW_OTHER: False,
    ConfigKey.SERVICE: {
        ConfigKey.SERVICE_TYPE: "memory",
        ConfigKey.SERVICE_OPTIONS: {},
    },
    ConfigKey.LOGGING: {
        ConfigKey.LOG_LEVEL: "INFO",
        ConfigKey.LOG_FILE: None,
    },
}
