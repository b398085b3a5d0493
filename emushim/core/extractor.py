import logging
import os
import shutil
import tarfile
import zipfile
from typing import Optional

import py7zr
import zstandard as zstd

from emushim.core.errors import ArchiveError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".7z", ".zip", ".tar.zst")


def archive_extension(path: str) -> str:
    """Returns the recognized archive extension of path, or its plain extension."""
    lowered = path.lower()
    for ext in SUPPORTED_EXTENSIONS:
        if lowered.endswith(ext):
            return ext
    return os.path.splitext(lowered)[1]


class ArchiveExtractor:
    """Extracts downloaded shim archives into a staging directory."""

    def extract(self, archive_path: str, destination: str, extension: Optional[str] = None) -> int:
        """
        Extracts every file entry of an archive, preserving relative paths.

        Args:
            archive_path: The archive to read.
            destination: The directory to extract into. Existing files are overwritten.
            extension: The archive extension; derived from archive_path when omitted.

        Returns:
            The number of files written.
        """
        ext = (extension or archive_extension(archive_path)).lower()
        if not ext.startswith("."):
            ext = f".{ext}"
        os.makedirs(destination, exist_ok=True)
        logger.info(f"Extracting '{archive_path}' ({ext}) to '{destination}'...")

        try:
            if ext == ".zip":
                count = self._extract_zip(archive_path, destination)
            elif ext == ".7z":
                count = self._extract_7z(archive_path, destination)
            elif ext == ".tar.zst":
                count = self._extract_tar_zst(archive_path, destination)
            else:
                raise ArchiveError(f"Unsupported archive format: {ext}")
        except (zipfile.BadZipFile, py7zr.exceptions.ArchiveError, tarfile.TarError, zstd.ZstdError) as e:
            raise ArchiveError(f"{archive_path} is not a valid {ext} archive or is corrupted: {e}") from e

        logger.info(f"Extracted {count} files from {os.path.basename(archive_path)}")
        return count

    @staticmethod
    def _target_path(destination: str, member_name: str) -> str:
        """Resolves an entry name under destination, refusing path traversal."""
        relative = member_name.replace("\\", "/").lstrip("/")
        target = os.path.normpath(os.path.join(destination, relative))
        root = os.path.normpath(destination)
        if os.path.commonpath([root, target]) != root or target == root:
            raise ArchiveError(f"Attempted path traversal in archive detected: {member_name}")
        return target

    def _write_member(self, source, destination: str, member_name: str):
        target = self._target_path(destination, member_name)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "wb") as out:
            shutil.copyfileobj(source, out)
        logger.debug(f"Extracted {member_name}")

    def _extract_zip(self, archive_path: str, destination: str) -> int:
        count = 0
        with zipfile.ZipFile(archive_path, "r") as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                with zf.open(info) as source:
                    self._write_member(source, destination, info.filename)
                count += 1
        return count

    def _extract_7z(self, archive_path: str, destination: str) -> int:
        with py7zr.SevenZipFile(archive_path, "r") as sz:
            members = [entry.filename for entry in sz.list() if not entry.is_directory]
            for member in members:
                target = self._target_path(destination, member)
                os.makedirs(os.path.dirname(target), exist_ok=True)
        # py7zr needs a fresh handle after list() to read entries
        with py7zr.SevenZipFile(archive_path, "r") as sz:
            sz.extract(path=destination, targets=members)
        return len(members)

    def _extract_tar_zst(self, archive_path: str, destination: str) -> int:
        count = 0
        dctx = zstd.ZstdDecompressor()
        # 'r|' reads the tar as a non-seekable stream
        with open(archive_path, "rb") as f, dctx.stream_reader(f) as reader, tarfile.open(fileobj=reader, mode="r|") as tar:
            for member in tar:
                if not member.isfile():
                    continue
                source = tar.extractfile(member)
                if source is None:
                    continue
                with source:
                    self._write_member(source, destination, member.name)
                count += 1
        return count
