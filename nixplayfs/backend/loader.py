"""
NixplayFS Backend: Service Loading.

Builds the PhotoService named by the ``service`` configuration section:

    service:
      type: memory

or, for a client living in another package:

    service:
      factory: mypackage.nixplay:create_service
      options:
        timeout: 30

The factory is called with the options as keyword arguments, plus
``user_name`` and ``password`` when they are configured.
"""

import importlib
from typing import Any, Dict, Optional

from nixplayfs.backend.memory import MemoryPhotoService
from nixplayfs.backend.service import PhotoService
from nixplayfs.core.constants import ConfigKey, ErrorCode
from nixplayfs.core.validators import ValidationError, validate_service_config
from nixplayfs.infrastructure.config_manager import ConfigError

BUILTIN_SERVICES = {
    "memory": MemoryPhotoService,
}


def _import_factory(spec: str):
    module_name, attr = spec.split(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(
            f"Cannot import service module {module_name!r}: {e}", ErrorCode.DEPENDENCY_ERROR
        )
    try:
        return getattr(module, attr)
    except AttributeError:
        raise ConfigError(
            f"Service module {module_name!r} has no attribute {attr!r}", ErrorCode.NOT_FOUND
        )


def create_service(
    service_config: Dict[str, Any],
    user_name: Optional[str] = None,
    password: Optional[str] = None,
) -> PhotoService:
    """
    Create the configured photo service.

    Args:
        service_config: The ``service`` configuration section
        user_name: Account name passed to factory services
        password: Account password passed to factory services

    Returns:
        Ready to use PhotoService

    Raises:
        ConfigError: If the section is invalid or the factory fails
    """
    try:
        validate_service_config(service_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid service configuration: {e}", e.error_code)

    options = dict(service_config.get(ConfigKey.SERVICE_OPTIONS) or {})
    factory_spec = service_config.get(ConfigKey.SERVICE_FACTORY)

    if factory_spec is None:
        return BUILTIN_SERVICES[service_config[ConfigKey.SERVICE_TYPE]](**options)

    factory = _import_factory(factory_spec)
    if user_name is not None:
        options.setdefault(ConfigKey.USER_NAME, user_name)
    if password is not None:
        options.setdefault(ConfigKey.PASSWORD, password)

    try:
        service = factory(**options)
    except Exception as e:
        raise ConfigError(
            f"Service factory {factory_spec!r} failed: {e}", ErrorCode.DEPENDENCY_ERROR
        )

    if not isinstance(service, PhotoService):
        raise ConfigError(
            f"Service factory {factory_spec!r} returned {type(service).__name__}, "
            "expected a PhotoService"
        )
    return service
