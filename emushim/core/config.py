import json
import logging
import os

from dotenv import load_dotenv
from pydantic import ValidationError

from .models import Settings

logger = logging.getLogger(__name__)

# Environment variables that take precedence over the JSON config file
ENV_OVERRIDES = {
    "EMUSHIM_INSTALL_PATH": "install_path",
    "EMUSHIM_GITHUB_URL": "github_url",
    "EMUSHIM_GITLAB_URL": "gitlab_url",
}

class ConfigManager:
    """Manages the persisted settings for the shim installer and patcher."""

    def __init__(self, config_file: str = "emushim.json"):
        """Initializes the ConfigManager, loading existing settings or falling back to defaults."""
        self.config_path = config_file
        self.config: Settings = self._load()

    def _load(self) -> Settings:
        """Loads settings from file and applies environment overrides."""
        load_dotenv()
        data = {}
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            pass
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable config file {self.config_path}: {e}")

        for env_name, field in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                data[field] = value

        try:
            return Settings(**data)
        except ValidationError as e:
            logger.warning(f"Invalid settings in {self.config_path}, using defaults: {e}")
            return Settings()

    def _save(self):
        """Saves the current settings to the file."""
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(self.config.model_dump(), f, indent=4)

    def get_config(self) -> Settings:
        """Returns the current settings object."""
        return self.config

    def update_config(self, **kwargs):
        """
        Updates settings attributes and saves the changes.

        Args:
            **kwargs: The fields to update (e.g., install_path="C:/...").
        """
        updated_fields = self.config.model_copy(update=kwargs)
        if updated_fields != self.config:
            self.config = updated_fields
            self._save()
