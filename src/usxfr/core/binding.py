"""
=============================================================================
SOCKET PATH BINDING
=============================================================================

A UNIX domain socket is addressed by a path in the filesystem:

    struct sockaddr_un {
        sa_family_t sun_family;   /* AF_UNIX */
        char        sun_path[108];  /* 104 on macOS and the BSDs */
    };

Three things follow from that:

1. THE PATH HAS A HARD LENGTH LIMIT
   The kernel copies the path into a fixed array. We reserve one byte for
   the terminating NUL, so the usable length is sizeof(sun_path) - 1.
   Longer paths are rejected up front instead of being silently truncated.

2. BIND() CREATES A FILE
   bind() makes a socket inode at the path, and that inode outlives the
   process. If a previous server crashed, its file is still there and the
   next bind() fails with EADDRINUSE. So we remove the old entry first:

        remove(path)
            ├── ok          → stale entry gone
            ├── ENOENT      → nothing to remove, fine
            └── other error → cannot start (e.g. path is a directory)

3. THE PATH CAN CHANGE HANDS
   A second server started on the same path removes our file as "stale"
   and binds its own. On shutdown we only unlink the file if it is still
   the inode we bound (same st_dev and st_ino).

=============================================================================
"""

import os
import sys
import stat
import logging
from typing import Optional, Tuple

from ..errors import AddressTooLong, StaleRemovalFailed


logger = logging.getLogger(__name__)


def max_path_bytes() -> int:
    """Usable length of sun_path on this platform, excluding the NUL."""
    if sys.platform == "darwin" or sys.platform.startswith(("freebsd", "openbsd", "netbsd")):
        return 104 - 1
    return 108 - 1


class PathBinding:
    """
    Owns the filesystem address the server listens on.

    Usage:
        binding = PathBinding("/tmp/us_xfr")
        binding.validate()       # AddressTooLong if it can't fit
        binding.remove_stale()   # StaleRemovalFailed if it can't be cleared
        sock.bind(binding.path)
        binding.claim()          # unlink() removes only this file
    """

    def __init__(self, path: str):
        self.path = path
        # (st_dev, st_ino) of the socket file we bound, set by claim()
        self._identity: Optional[Tuple[int, int]] = None

    @property
    def encoded_length(self) -> int:
        """Length of the path as the kernel sees it (filesystem encoding)."""
        return len(os.fsencode(self.path))

    def validate(self) -> None:
        limit = max_path_bytes()
        if self.encoded_length > limit:
            raise AddressTooLong(
                "socket path",
                f"too long: {self.path} "
                f"({self.encoded_length} bytes, limit {limit})",
            )

    def remove_stale(self) -> None:
        """
        Remove whatever is left at the path by a previous run.

        Mirrors remove(3): a missing entry is not an error, anything else is.
        """
        try:
            os.remove(self.path)
        except FileNotFoundError:
            logger.debug(f"No stale entry at {self.path}")
            return
        except OSError as e:
            raise StaleRemovalFailed(f"remove-{self.path}", os_error=e) from e

        logger.info(f"Removed stale entry at {self.path}")

    def claim(self) -> None:
        """Remember the socket file bind() just created as ours."""
        try:
            st = os.stat(self.path)
        except OSError as e:
            logger.warning(f"Cannot stat {self.path} after bind, it will not be removed: {e}")
            return
        self._identity = (st.st_dev, st.st_ino)

    def unlink(self) -> None:
        """
        Remove our socket file on shutdown.

        Only the file recorded by claim() is removed. Another server may have
        replaced it since; that server's socket is left alone.
        """
        identity, self._identity = self._identity, None
        if identity is None:
            return

        try:
            st = os.lstat(self.path)
            if not stat.S_ISSOCK(st.st_mode) or (st.st_dev, st.st_ino) != identity:
                logger.info(f"{self.path} now belongs to another socket, leaving it in place")
                return
            os.unlink(self.path)
            logger.debug(f"Unlinked {self.path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove {self.path}: {e}")
