import logging
import os
import re
from typing import Iterable, List, Pattern, Set, Tuple

logger = logging.getLogger(__name__)

INTERFACE_FAMILIES: Tuple[str, ...] = (
    "SteamClient",
    "SteamUser",
    "SteamFriends",
    "SteamUtils",
    "SteamMatchMaking",
    "SteamUserStats",
    "SteamApps",
    "SteamNetworking",
    "SteamRemoteStorage",
    "SteamScreenshots",
    "SteamHTTP",
    "SteamController",
    "SteamUGC",
    "SteamAppList",
    "SteamMusic",
    "SteamMusicRemote",
    "SteamHTMLSurface",
    "SteamInventory",
    "SteamVideo",
    "SteamParentalSettings",
    "SteamInput",
    "SteamParties",
    "SteamRemotePlay",
    "SteamNetworkingMessages",
    "SteamNetworkingSockets",
    "SteamNetworkingUtils",
    "SteamGameServer",
    "SteamGameServerStats",
)

# Compiled once at import; each pattern is a family name followed by its version digits
INTERFACE_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = tuple(
    (family, re.compile(re.escape(family) + r"\d+", re.ASCII)) for family in INTERFACE_FAMILIES
)

# Longest version suffix carried across a chunk boundary
MAX_VERSION_DIGITS = 16

# Bytes carried from one chunk into the next; covers the longest possible match
OVERLAP = max(len(family) for family in INTERFACE_FAMILIES) + MAX_VERSION_DIGITS

DEFAULT_CHUNK_SIZE = 64 * 1024


class InterfaceScanner:
    """Finds the versioned Steam interface names embedded in an API module."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, overlap: int = OVERLAP):
        if chunk_size <= overlap:
            raise ValueError(f"chunk_size ({chunk_size}) must be larger than the overlap ({overlap})")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def detect_interfaces(self, file_path: str) -> List[str]:
        """
        Streams a binary and returns the sorted, distinct interface names it contains.

        The file is read in fixed-size chunks. The tail of each chunk is moved
        to the front of the buffer before the next read so names straddling a
        chunk boundary are still seen whole. A match that runs up to the end of
        the buffer is left for the next pass, since more digits may follow.

        Returns an empty list if the file is missing or cannot be read.
        """
        if not os.path.isfile(file_path):
            return []

        found: Set[str] = set()
        buffer = bytearray(self.chunk_size)
        offset = 0
        try:
            with open(file_path, "rb") as f:
                file_size = os.fstat(f.fileno()).st_size
                while True:
                    with memoryview(buffer) as view, view[offset:] as free:
                        bytes_read = f.readinto(free)
                    if not bytes_read:
                        break
                    total = offset + bytes_read
                    at_eof = f.tell() >= file_size
                    # Non-ASCII bytes decode to U+FFFD and can never be part of a match
                    text = buffer[:total].decode("ascii", errors="replace")
                    self._scan_text(text, found, at_eof)

                    if at_eof:
                        break

                    keep = min(total, self.overlap)
                    buffer[0:keep] = buffer[total - keep:total]
                    offset = keep
        except OSError as e:
            logger.warning(f"Error detecting interfaces in {file_path}: {e}")
            return []

        return sorted(found)

    @staticmethod
    def _scan_text(text: str, found: Set[str], at_eof: bool):
        end = len(text)
        for _family, pattern in INTERFACE_PATTERNS:
            for match in pattern.finditer(text):
                if match.end() == end and not at_eof:
                    continue
                found.add(match.group())

    def scan_many(self, file_paths: Iterable[str]) -> Set[str]:
        """Unions the interfaces of several files, skipping ones that fail to scan."""
        interfaces: Set[str] = set()
        for path in file_paths:
            try:
                interfaces.update(self.detect_interfaces(path))
            except Exception as e:
                logger.warning(f"Failed to scan {os.path.basename(path)} for interfaces: {e}")
        return interfaces
