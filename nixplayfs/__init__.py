"""NixplayFS - Remote photo albums and playlists as a FUSE filesystem."""

from nixplayfs.core.constants import NIXPLAYFS_VERSION

__version__ = NIXPLAYFS_VERSION
