import logging
from typing import List, Optional

import requests

from emushim.core.models import DEFAULT_GITHUB_URL, ReleaseAsset
from emushim.core.network import NetworkManager
from .base import ReleaseProvider, has_archive_extension, strip_tag

logger = logging.getLogger(__name__)


class GitHubReleaseProvider(ReleaseProvider):
    """Primary source: the GitHub releases API of the maintained emulator fork."""

    def __init__(self, network: NetworkManager, api_url: str = DEFAULT_GITHUB_URL):
        self.network = network
        self.api_url = api_url

    def _release_url(self, specific_version: Optional[str]) -> str:
        if specific_version and self.api_url.endswith("/latest"):
            return self.api_url[: -len("/latest")] + f"/tags/v{specific_version}"
        return self.api_url

    def _list_url(self) -> str:
        if self.api_url.endswith("/latest"):
            return self.api_url[: -len("/latest")]
        return self.api_url

    def get_release_asset(self, specific_version: Optional[str] = None) -> Optional[ReleaseAsset]:
        url = self._release_url(specific_version)
        suffix = f" for version {specific_version}" if specific_version else ""
        logger.debug(f"Fetching GitHub releases{suffix} from {url}")
        try:
            data = self.network.fetch_json(url, "GitHub Releases API")
            release = self._select_release(data, specific_version)
            if release is None:
                return None
            version = strip_tag(release.get("tag_name"))
            return select_github_asset(release.get("assets") or [], version)
        except (requests.RequestException, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"GitHub API error: {e}")
            return None

    @staticmethod
    def _select_release(data, specific_version: Optional[str]) -> Optional[dict]:
        if isinstance(data, list):
            if specific_version:
                for item in data:
                    tag = item.get("tag_name")
                    if tag in (specific_version, f"v{specific_version}"):
                        return item
                return None
            return data[0] if data else None
        if isinstance(data, dict):
            return data
        return None

    def list_versions(self) -> List[str]:
        versions = []
        try:
            data = self.network.fetch_json(self._list_url(), "GitHub Releases API")
            releases = data if isinstance(data, list) else [data]
            for release in releases:
                if not isinstance(release, dict):
                    continue
                tag = strip_tag(release.get("tag_name"))
                if tag:
                    versions.append(tag)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Failed to fetch available versions: {e}")
        return versions

    def get_name(self) -> str:
        return "GitHub Releases"


def select_github_asset(assets: list, version: Optional[str]) -> Optional[ReleaseAsset]:
    """
    Picks the Windows build from a GitHub release's asset list.

    Named Windows release builds win over the vendor's 'emu-win' builds, which
    win over any remaining archive that isn't a source snapshot or a
    non-Windows build.
    """
    named = [(asset.get("name") or "", asset) for asset in assets]

    for name, asset in named:
        lowered = name.lower()
        if ("win" in lowered and "release" in lowered
                and "debug" not in lowered and "migrate" not in lowered
                and has_archive_extension(name)):
            return ReleaseAsset(name=name, download_url=asset["browser_download_url"], version=version)

    for name, asset in named:
        lowered = name.lower()
        if lowered.startswith("emu-win") and "migrate" not in lowered and has_archive_extension(name):
            return ReleaseAsset(name=name, download_url=asset["browser_download_url"], version=version)

    # The maintainer occasionally changes the naming convention
    for name, asset in named:
        lowered = name.lower()
        if (has_archive_extension(name)
                and "source" not in lowered and "linux" not in lowered and "mac" not in lowered):
            logger.info(f"Using fallback asset: {name}")
            return ReleaseAsset(name=name, download_url=asset["browser_download_url"], version=version)

    return None
