"""NixplayFS Core - constants and validators shared by every layer.

Import specific names from submodules:
    from nixplayfs.core.constants import CollectionKind, ErrorCode
    from nixplayfs.core.validators import ValidationError
"""

from nixplayfs.core import constants, validators

__all__ = [
    "constants",
    "validators",
]
