import logging
from typing import List, Optional

import requests

from emushim.core.models import DEFAULT_GITLAB_URL, ReleaseAsset
from emushim.core.network import NetworkManager
from .base import ReleaseProvider, strip_tag

logger = logging.getLogger(__name__)

# Release links that mention one of these are the emulator build itself
PROJECT_KEYWORDS = ("goldberg", "emu")


def _link_url(link: dict) -> Optional[str]:
    return link.get("direct_asset_url") or link.get("url")


class GitLabReleaseProvider(ReleaseProvider):
    """Secondary source: the original project's GitLab releases API."""

    def __init__(self, network: NetworkManager, api_url: str = DEFAULT_GITLAB_URL):
        self.network = network
        self.api_url = api_url

    def _fetch_releases(self) -> list:
        data = self.network.fetch_json(self.api_url, "GitLab Releases API")
        return data if isinstance(data, list) else []

    def get_release_asset(self, specific_version: Optional[str] = None) -> Optional[ReleaseAsset]:
        if specific_version:
            logger.debug("GitLab releases are only consulted for the latest version")
            return None
        logger.debug(f"Fetching GitLab releases from {self.api_url}")
        try:
            releases = self._fetch_releases()
            if not releases:
                return None
            latest = releases[0]
            version = strip_tag(latest.get("tag_name"))
            links = (latest.get("assets") or {}).get("links") or []
            return select_gitlab_link(links, version)
        except (requests.RequestException, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"GitLab API error: {e}")
            return None

    def list_versions(self) -> List[str]:
        try:
            return [tag for tag in (strip_tag(r.get("tag_name")) for r in self._fetch_releases()) if tag]
        except (requests.RequestException, ValueError, AttributeError) as e:
            logger.warning(f"Failed to fetch GitLab versions: {e}")
            return []

    def get_name(self) -> str:
        return "GitLab Releases"


def select_gitlab_link(links: list, version: Optional[str]) -> Optional[ReleaseAsset]:
    """Picks a zip from GitLab 'assets.links', preferring ones named after the project."""
    for link in links:
        name = link.get("name") or ""
        lowered = name.lower()
        url = _link_url(link)
        if url and lowered.endswith(".zip") and any(keyword in lowered for keyword in PROJECT_KEYWORDS):
            return ReleaseAsset(name=name, download_url=url, version=version)

    for link in links:
        name = link.get("name") or ""
        url = _link_url(link)
        if url and name.lower().endswith(".zip"):
            return ReleaseAsset(name=name, download_url=url, version=version)

    return None
