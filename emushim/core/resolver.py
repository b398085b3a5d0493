import logging
from typing import List, Optional, Tuple

from emushim.core.models import ReleaseAsset
from emushim.providers.base import ReleaseProvider

logger = logging.getLogger(__name__)


class ReleaseResolver:
    """Resolves a shim download from a primary release source with fallbacks."""

    def __init__(self, primary: ReleaseProvider, fallbacks: Optional[List[ReleaseProvider]] = None):
        self.primary = primary
        self.fallbacks = fallbacks or []

    def resolve_asset(self, specific_version: Optional[str] = None) -> Optional[ReleaseAsset]:
        """
        Returns the first asset any source yields.

        A specific version is only looked up at the primary source; fallback
        sources only ever serve their latest release.
        """
        logger.debug(f"Attempting to fetch from {self.primary.get_name()}...")
        asset = self.primary.get_release_asset(specific_version)
        if asset is not None or specific_version:
            return asset

        for provider in self.fallbacks:
            logger.warning(f"{self.primary.get_name()} failed, trying {provider.get_name()}...")
            asset = provider.get_release_asset()
            if asset is not None:
                return asset
        return None

    def resolve(self, specific_version: Optional[str] = None) -> Tuple[Optional[str], Optional[str]]:
        """Returns (download_url, version), or (None, None) when no source has a usable asset."""
        asset = self.resolve_asset(specific_version)
        if asset is None:
            return None, None
        return asset.download_url, asset.version
