"""
NixplayFS Core: Input Validators.

This module provides validation functions for configuration, virtual paths,
collection names and photo names supplied by users and by the kernel.
"""
import re
from typing import Any, Dict, Pattern

from nixplayfs.core.constants import SERVICE_TYPES, ConfigKey, ErrorCode, Limits


class ValidationError(Exception):
    """Base exception for validation errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        """Initialize ValidationError.

        Args:
            message: Error message
            error_code: Associated error code
        """
        super().__init__(message)
        self.error_code = error_code


def validate_config(config: Dict[str, Any]) -> bool:
    """Validate the merged NixplayFS configuration section.

    Args:
        config: Configuration dictionary (contents of the ``nixplayfs`` key)

    Returns:
        True if valid

    Raises:
        ValidationError: If configuration is invalid
    """
    if not isinstance(config, dict):
        raise ValidationError("Configuration must be a dictionary")

    if ConfigKey.ROOT in config:
        root = config[ConfigKey.ROOT]
        if root is not None and not isinstance(root, str):
            raise ValidationError(f"Root must be a string: {root!r}")

    for key in (ConfigKey.READONLY, ConfigKey.ALLOW_OTHER):
        if key in config and not isinstance(config[key], bool):
            raise ValidationError(f"'{key}' must be boolean: {config[key]!r}")

    if ConfigKey.SERVICE in config:
        try:
            validate_service_config(config[ConfigKey.SERVICE])
        except ValidationError as e:
            raise ValidationError(f"Invalid service configuration: {e}")

    if ConfigKey.LOGGING in config:
        validate_logging_config(config[ConfigKey.LOGGING])

    return True


def validate_service_config(service: Dict[str, Any]) -> bool:
    """Validate the photo service section.

    A service is either one of the built-in types or a ``module:callable``
    factory returning a PhotoService.

    Args:
        service: Service configuration dictionary

    Returns:
        True if valid

    Raises:
        ValidationError: If service config is invalid
    """
    if not isinstance(service, dict):
        raise ValidationError("Service must be a dictionary")

    factory = service.get(ConfigKey.SERVICE_FACTORY)
    service_type = service.get(ConfigKey.SERVICE_TYPE)

    if factory is None and service_type is None:
        raise ValidationError("Service must have 'type' or 'factory' field")

    if factory is not None:
        if not isinstance(factory, str) or factory.count(":") != 1:
            raise ValidationError(f"Service factory must look like 'module:callable': {factory!r}")
        module_name, attr = factory.split(":")
        if not module_name or not attr:
            raise ValidationError(f"Service factory must look like 'module:callable': {factory!r}")
    elif service_type not in SERVICE_TYPES:
        raise ValidationError(
            f"Invalid service type: {service_type}. Must be one of {list(SERVICE_TYPES)}"
        )

    options = service.get(ConfigKey.SERVICE_OPTIONS)
    if options is not None and not isinstance(options, dict):
        raise ValidationError("Service options must be a dictionary")

    return True


def validate_logging_config(logging_config: Dict[str, Any]) -> bool:
    """Validate logging configuration.

    Args:
        logging_config: Logging configuration dictionary

    Returns:
        True if valid

    Raises:
        ValidationError: If logging config is invalid
    """
    if not isinstance(logging_config, dict):
        raise ValidationError("Logging configuration must be a dictionary")

    level = logging_config.get(ConfigKey.LOG_LEVEL)
    if level is not None:
        valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if not isinstance(level, str) or level.upper() not in valid_levels:
            raise ValidationError(f"Invalid log level: {level}. Must be one of {list(valid_levels)}")

    log_file = logging_config.get(ConfigKey.LOG_FILE)
    if log_file is not None and not isinstance(log_file, str):
        raise ValidationError(f"Log file must be a string: {log_file!r}")

    return True


def validate_virtual_path(path: str) -> bool:
    """Validate a caller-supplied virtual path.

    Empty paths are valid (they name the mount root).

    Args:
        path: Virtual path to validate

    Returns:
        True if valid

    Raises:
        ValidationError: If path is invalid
    """
    if not isinstance(path, str):
        raise ValidationError(f"Path must be string, got {type(path)}")

    if len(path) > Limits.MAX_PATH_LENGTH:
        raise ValidationError(f"Path exceeds maximum length ({Limits.MAX_PATH_LENGTH})")

    if "\0" in path:
        raise ValidationError("Path contains null bytes")

    if any(ord(c) < 32 for c in path):
        raise ValidationError("Path contains control characters")

    return True


def validate_name(name: str, what: str = "Name") -> bool:
    """Validate a single path segment (collection or photo name).

    Args:
        name: Segment to validate
        what: Label used in error messages

    Returns:
        True if valid

    Raises:
        ValidationError: If name is invalid
    """
    if not name:
        raise ValidationError(f"{what} cannot be empty")

    if not isinstance(name, str):
        raise ValidationError(f"{what} must be string, got {type(name)}")

    if len(name) > Limits.MAX_FILENAME_LENGTH:
        raise ValidationError(f"{what} exceeds maximum length ({Limits.MAX_FILENAME_LENGTH})")

    if "/" in name:
        raise ValidationError(f"{what} cannot contain '/': {name}")

    if name in (".", ".."):
        raise ValidationError(f"{what} cannot be '.' or '..'")

    if "\0" in name or any(ord(c) < 32 for c in name):
        raise ValidationError(f"{what} contains control characters")

    return True


def validate_collection_name(name: str) -> bool:
    """Validate an album or playlist name."""
    return validate_name(name, "Collection name")


def validate_item_name(name: str) -> bool:
    """Validate a photo file name."""
    return validate_name(name, "Photo name")


def validate_regex(pattern: str) -> Pattern[str]:
    """Validate and compile a regex pattern.

    Args:
        pattern: Regex pattern string

    Returns:
        Compiled regex pattern

    Raises:
        ValidationError: If pattern is invalid
    """
    if not isinstance(pattern, str):
        raise ValidationError(f"Regex pattern must be string, got {type(pattern)}")

    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValidationError(f"Failed to compile regex pattern: {e}")
