import os
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_GITHUB_URL = "https://api.github.com/repos/Detanup01/gbe_fork/releases/latest"
DEFAULT_GITLAB_URL = "https://gitlab.com/api/v4/projects/Mr_Goldberg%2Fgoldberg_emulator/releases"
USER_AGENT = "emushim/1.0"


def default_install_path() -> str:
    base = os.environ.get("LOCALAPPDATA") or os.path.join(os.path.expanduser("~"), ".local", "share")
    return os.path.join(base, "emushim", "shim")


class Settings(BaseModel):
    install_path: str = Field(default_factory=default_install_path)
    github_url: str = DEFAULT_GITHUB_URL
    gitlab_url: str = DEFAULT_GITLAB_URL
    user_agent: str = USER_AGENT
    request_timeout: float = 30.0
    max_retries: int = 2
    save_path_name: str = "emushim_saves"

class ReleaseAsset(BaseModel):
    name: str
    download_url: str
    version: Optional[str] = None

class PatchConfig(BaseModel):
    """User options written into the generated steam_settings bundle."""
    model_config = ConfigDict(frozen=True)

    account_name: str = "Player"
    disable_networking: bool = True
    disable_overlay: bool = True
    enable_lan: bool = False

class PatchOutcome(BaseModel):
    replaced: int = 0
    already_patched: int = 0
    skipped: int = 0
    interfaces: List[str] = []

    @property
    def succeeded(self) -> int:
        """Binaries that now match the shim, whether replaced now or earlier."""
        return self.replaced + self.already_patched
