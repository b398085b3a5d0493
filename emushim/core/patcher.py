import hashlib
import logging
import os
import shutil
from typing import Dict, Iterable, List, Optional, Set

from emushim.core.installer import API_FILES
from emushim.core.models import PatchConfig, PatchOutcome
from emushim.core.scanner import InterfaceScanner

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".original"
SETTINGS_DIR = "steam_settings"
APPID_FILE = "steam_appid.txt"
INTERFACES_FILE = "steam_interfaces.txt"

HASH_CHUNK_SIZE = 81920


def file_digest(file_path: str) -> bytes:
    """Streams a file through a short blake2b digest; used for equality only."""
    hasher = hashlib.blake2b(digest_size=8)
    with open(file_path, "rb") as f:
        while chunk := f.read(HASH_CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.digest()


def files_equal(first: str, second: str) -> bool:
    """Compares two files by content. Any error counts as 'not equal'."""
    try:
        if os.path.getsize(first) != os.path.getsize(second):
            return False
        return file_digest(first) == file_digest(second)
    except OSError as e:
        logger.debug(f"Hash comparison failed: {e}")
        return False


def create_backup(original: str, backup_path: str):
    """Copies original to backup_path via a partial file so a torn copy never looks like a backup."""
    partial = backup_path + ".partial"
    try:
        shutil.copy2(original, partial)
        os.replace(partial, backup_path)
    except BaseException:
        if os.path.exists(partial):
            try:
                os.remove(partial)
            except OSError as cleanup_error:
                logger.debug(f"Could not remove partial backup {partial}: {cleanup_error}")
        raise


def find_files(directory: str, names: Iterable[str]) -> List[str]:
    """Recursively finds files whose lower-cased name is in names."""
    wanted = {name.lower() for name in names}
    matches = []
    for dirpath, _dirnames, filenames in os.walk(directory):
        for filename in filenames:
            if filename.lower() in wanted:
                matches.append(os.path.join(dirpath, filename))
    return sorted(matches)


class BinaryPatcher:
    """Replaces a game's Steam API modules with the installed emulator and writes its settings."""

    def __init__(self, shim_path: str, scanner: Optional[InterfaceScanner] = None, save_path_name: str = "emushim_saves"):
        self.shim_path = shim_path
        self.scanner = scanner or InterfaceScanner()
        self.save_path_name = save_path_name
        self.last_outcome: Optional[PatchOutcome] = None

    def is_shim_available(self) -> bool:
        if not os.path.isdir(self.shim_path):
            return False
        return all(os.path.isfile(os.path.join(self.shim_path, name)) for name in API_FILES)

    def _shim_for(self, file_name: str) -> Optional[str]:
        mapping: Dict[str, str] = {name: os.path.join(self.shim_path, name) for name in API_FILES}
        return mapping.get(file_name.lower())

    def apply_patch(self, target_dir: str, app_id: int, config: Optional[PatchConfig] = None) -> bool:
        """
        Applies the emulator to a game directory.

        Every API module is scanned for interface names before it is touched.
        Modules already identical to the shim are left alone; others are backed
        up once to '<name>.original' and then overwritten.

        Args:
            target_dir: The game package directory.
            app_id: The Steam application id written to steam_appid.txt.
            config: Options for the generated settings; defaults when omitted.

        Returns:
            True if at least one module was replaced or already matched the shim.
        """
        if not self.is_shim_available():
            logger.warning("Emulator modules not available - skipping module replacement")
            return False

        outcome = PatchOutcome()
        self.last_outcome = outcome
        try:
            interfaces: Set[str] = set()

            for original in find_files(target_dir, API_FILES):
                file_name = os.path.basename(original)

                # Scan the original module before it is replaced
                try:
                    detected = self.scanner.detect_interfaces(original)
                    interfaces.update(detected)
                    if detected:
                        logger.debug(f"Detected {len(detected)} interfaces in {file_name}")
                except Exception as e:
                    logger.warning(f"Failed to scan {file_name} for interfaces: {e}")

                shim_file = self._shim_for(file_name)
                if shim_file is None or not os.path.isfile(shim_file):
                    outcome.skipped += 1
                    continue

                if files_equal(original, shim_file):
                    logger.info(f"{file_name} is already patched - skipping.")
                    outcome.already_patched += 1
                    continue

                backup_path = original + BACKUP_SUFFIX
                if not os.path.exists(backup_path):
                    create_backup(original, backup_path)

                shutil.copyfile(shim_file, original)
                outcome.replaced += 1
                logger.info(f"Replaced {os.path.relpath(original, target_dir)}")

            outcome.interfaces = sorted(interfaces)
            if outcome.succeeded > 0:
                settings_dir = os.path.join(target_dir, SETTINGS_DIR)
                os.makedirs(settings_dir, exist_ok=True)

                if outcome.interfaces:
                    with open(os.path.join(settings_dir, INTERFACES_FILE), "w", encoding="utf-8") as f:
                        f.write("\n".join(outcome.interfaces) + "\n")
                    logger.info(f"Generated {INTERFACES_FILE} with {len(outcome.interfaces)} interfaces")

                with open(os.path.join(target_dir, APPID_FILE), "w", encoding="utf-8") as f:
                    f.write(str(app_id))

                self.write_settings(settings_dir, config or PatchConfig())

            return outcome.succeeded > 0
        except Exception as e:
            logger.error(f"Error applying emulator to {target_dir}: {e}", exc_info=True)
            return False

    def write_settings(self, settings_dir: str, config: PatchConfig):
        """Writes the emulator's configuration bundle into settings_dir."""
        os.makedirs(settings_dir, exist_ok=True)

        def write(name: str, content: str = ""):
            with open(os.path.join(settings_dir, name), "w", encoding="utf-8") as f:
                f.write(content)

        write("configs.user.ini", (
            "[user::general]\n"
            f"account_name = {config.account_name}\n"
            "\n"
            "[user::saves]\n"
            f"local_save_path = {self.save_path_name}\n"
        ))
        write("force_account_name.txt", config.account_name)

        if config.disable_networking:
            write("offline.txt")
            write("disable_networking.txt")
        if config.disable_overlay:
            write("disable_overlay.txt")

        write("configs.main.ini", (
            "[main::connectivity]\n"
            f"disable_networking={int(config.disable_networking)}\n"
            f"disable_lan_only={int(not config.enable_lan)}\n"
            "\n"
            "[main::general]\n"
            f"disable_overlay={int(config.disable_overlay)}\n"
        ))

    def find_backups(self, target_dir: str) -> List[str]:
        return find_files(target_dir, [name + BACKUP_SUFFIX for name in API_FILES])

    def restore_originals(self, target_dir: str) -> int:
        """
        Copies every '<name>.original' backup back over its module.

        The backups themselves are kept. Returns the number of modules restored.
        """
        restored = 0
        for backup_path in self.find_backups(target_dir):
            original = backup_path[: -len(BACKUP_SUFFIX)]
            try:
                shutil.copyfile(backup_path, original)
                restored += 1
                logger.info(f"Restored {os.path.relpath(original, target_dir)}")
            except OSError as e:
                logger.error(f"Failed to restore {original}: {e}")
        return restored
