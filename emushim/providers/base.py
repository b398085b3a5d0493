import abc
from typing import List, Optional

from emushim.core.models import ReleaseAsset

ARCHIVE_EXTENSIONS = (".7z", ".zip")


def has_archive_extension(name: str, extensions=ARCHIVE_EXTENSIONS) -> bool:
    lowered = name.lower()
    return any(lowered.endswith(ext) for ext in extensions)


def strip_tag(tag: Optional[str]) -> Optional[str]:
    """Strips the leading 'v' from a release tag."""
    if not tag:
        return None
    return tag.lstrip("v") or None


class ReleaseProvider(abc.ABC):
    @abc.abstractmethod
    def get_release_asset(self, specific_version: Optional[str] = None) -> Optional[ReleaseAsset]:
        """This method should return the downloadable shim asset of the latest (or the requested) release, or None."""
        pass

    @abc.abstractmethod
    def list_versions(self) -> List[str]:
        """This method should return every published version tag, newest first, without a leading 'v'."""
        pass

    @abc.abstractmethod
    def get_name(self) -> str:
        """A human-readable provider name used in logging (e.g., "GitHub Releases")."""
        pass
