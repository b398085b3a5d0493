import logging
import os
import shutil
import tempfile
import threading
from typing import Dict, List, Optional
from urllib.parse import urlparse

from emushim.core.extractor import ArchiveExtractor, archive_extension
from emushim.core.models import Settings
from emushim.core.network import NetworkManager, ProgressCallback
from emushim.core.resolver import ReleaseResolver
from emushim.providers.base import ReleaseProvider
from emushim.providers.github_release import GitHubReleaseProvider
from emushim.providers.gitlab_release import GitLabReleaseProvider

logger = logging.getLogger(__name__)

API_FILES = ("steam_api.dll", "steam_api64.dll")
CLIENT_FILES = ("steamclient.dll", "steamclient64.dll")
SHIM_FILES = API_FILES + CLIENT_FILES
VERSION_FILE = "version.txt"


def canonicalize_version(raw_version: str) -> str:
    """Cleans up a tag like "release-2025_11_27" to "2025.11.27"."""
    raw_version = raw_version.strip()
    if "-" in raw_version:
        return raw_version.split("-")[-1].replace("_", ".")
    return raw_version


class ShimInstaller:
    """Downloads the emulator release and installs its API modules into a flat directory."""

    def __init__(
        self,
        install_path: str,
        network: NetworkManager,
        resolver: Optional[ReleaseResolver] = None,
        extractor: Optional[ArchiveExtractor] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.install_path = install_path
        self.network = network
        self.resolver = resolver or ReleaseResolver(
            GitHubReleaseProvider(network, network.settings.github_url),
            [GitLabReleaseProvider(network, network.settings.gitlab_url)],
        )
        self.primary: ReleaseProvider = self.resolver.primary
        self.extractor = extractor or ArchiveExtractor()
        self.progress_callback = progress_callback

    @classmethod
    def from_settings(cls, settings: Settings, progress_callback: Optional[ProgressCallback] = None) -> "ShimInstaller":
        return cls(settings.install_path, NetworkManager(settings=settings), progress_callback=progress_callback)

    def _report(self, message: str, percent: int):
        if self.progress_callback:
            self.progress_callback(message, percent)

    def is_installed(self) -> bool:
        """Checks that both API modules are present at the install path."""
        return all(os.path.isfile(os.path.join(self.install_path, name)) for name in API_FILES)

    def get_installed_version(self) -> Optional[str]:
        version_path = os.path.join(self.install_path, VERSION_FILE)
        if not os.path.isfile(version_path):
            return None
        try:
            with open(version_path, "r", encoding="utf-8") as f:
                raw_version = f.read().strip()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading installed shim version: {e}")
            return None
        return canonicalize_version(raw_version) if raw_version else None

    def list_available_versions(self) -> List[str]:
        return self.primary.list_versions()

    def check_for_update(self) -> Optional[str]:
        """Returns the latest remote version if it differs from the installed one."""
        versions = self.list_available_versions()
        if not versions:
            return None
        latest = canonicalize_version(versions[0])
        return latest if latest != self.get_installed_version() else None

    def ensure_installed(self, cancel_event: Optional[threading.Event] = None) -> bool:
        if self.is_installed():
            return True
        return self.install(cancel_event=cancel_event)

    def install(self, specific_version: Optional[str] = None, cancel_event: Optional[threading.Event] = None) -> bool:
        """
        Resolves, downloads and installs the shim.

        Files are copied into the install path only after the archive has
        been fully extracted, and each copy is renamed into place, so a
        failed attempt never leaves a half-written module behind.

        Args:
            specific_version: A release tag to install instead of the latest one.
            cancel_event: Lets the caller abandon the download.

        Returns:
            True if both API modules are present at the install path afterwards.
        """
        archive_path = None
        staging_dir = None
        try:
            self._report("Checking for emulator releases...", 5)
            asset = self.resolver.resolve_asset(specific_version)
            if asset is None:
                logger.error("Could not find an emulator download URL from any source")
                self._report("Download failed - no URL found", 0)
                return False

            logger.info(f"Download URL: {asset.download_url}, Version: {asset.version}")
            ext = self._archive_extension(asset.name, asset.download_url)

            self._report("Downloading emulator...", 10)
            fd, archive_path = tempfile.mkstemp(prefix="emushim-", suffix=ext)
            os.close(fd)
            self.network.download_file(
                asset.download_url, archive_path, self.progress_callback, (10, 70), cancel_event
            )

            self._report("Extracting emulator files...", 70)
            staging_dir = tempfile.mkdtemp(prefix="emushim-extract-")
            self.extractor.extract(archive_path, staging_dir, ext)

            self._report("Installing emulator modules...", 85)
            os.makedirs(self.install_path, exist_ok=True)
            copied = self._install_files(staging_dir)
            missing = [name for name in API_FILES if name not in copied]
            if missing:
                logger.error(f"The downloaded archive is missing required modules: {', '.join(missing)}")
                self._report("Install failed - modules missing from archive", 0)
                return False

            if asset.version:
                version = canonicalize_version(asset.version)
                with open(os.path.join(self.install_path, VERSION_FILE), "w", encoding="utf-8") as f:
                    f.write(version)
                logger.info(f"Saved version {version} to {self.install_path}")

            self._report("Cleaning up...", 95)
        except Exception as e:
            logger.error(f"Error installing emulator: {e}", exc_info=True)
            return False
        finally:
            self._cleanup(archive_path, staging_dir)

        if not self.is_installed():
            return False
        self._report("Emulator ready!", 100)
        return True

    @staticmethod
    def _archive_extension(name: str, url: str) -> str:
        for candidate in (name, urlparse(url).path):
            ext = archive_extension(candidate or "")
            if ext in (".7z", ".zip", ".tar.zst"):
                return ext
        return ".zip"

    def _install_files(self, staging_dir: str) -> List[str]:
        candidates: Dict[str, List[str]] = {name: [] for name in SHIM_FILES}
        for dirpath, _dirnames, filenames in os.walk(staging_dir):
            for filename in filenames:
                key = filename.lower()
                if key in candidates:
                    candidates[key].append(os.path.join(dirpath, filename))

        copied = []
        for name, paths in candidates.items():
            if not paths:
                continue
            source = pick_preferred_build(paths, staging_dir)
            destination = os.path.join(self.install_path, name)
            partial = destination + ".partial"
            shutil.copyfile(source, partial)
            os.replace(partial, destination)
            copied.append(name)
            logger.info(f"Copied: {name} (from {os.path.relpath(source, staging_dir)})")
        return copied

    @staticmethod
    def _cleanup(archive_path: Optional[str], staging_dir: Optional[str]):
        try:
            if archive_path and os.path.exists(archive_path):
                os.remove(archive_path)
            if staging_dir and os.path.exists(staging_dir):
                shutil.rmtree(staging_dir)
        except OSError as e:
            logger.debug(f"Temp cleanup failed (non-critical): {e}")


def pick_preferred_build(paths: List[str], root: str = "") -> str:
    """Prefers a 'release' build, then an 'experimental' one, then whatever comes first."""
    def rank(path: str):
        relative = os.path.relpath(path, root).lower() if root else path.lower()
        return ("release" in relative, "experimental" in relative)

    return sorted(paths, key=rank, reverse=True)[0]
