import argparse
import logging
import sys

from .core.config import ConfigManager
from .core.installer import ShimInstaller
from .core.models import PatchConfig
from .core.patcher import BinaryPatcher
from .core.scanner import InterfaceScanner
from .utils.logging import setup_logging


def _print_progress(message: str, percent: int):
    print(f"[{percent:3d}%] {message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="emushim", description="Install the Steam API emulator and patch game packages.")
    parser.add_argument("--config", default="emushim.json", help="Path to the JSON settings file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Also write the log to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    install = sub.add_parser("install", help="Download and install the emulator")
    install.add_argument("--version", dest="specific_version", help="Install this release tag instead of the latest")

    sub.add_parser("versions", help="List available emulator releases")
    sub.add_parser("installed", help="Show the installed emulator version")

    patch = sub.add_parser("patch", help="Apply the emulator to a game directory")
    patch.add_argument("target", help="Game package directory")
    patch.add_argument("app_id", type=int, help="Steam application id")
    patch.add_argument("--name", default="Player", help="Account name shown in-game")
    patch.add_argument("--enable-networking", action="store_true")
    patch.add_argument("--enable-overlay", action="store_true")
    patch.add_argument("--enable-lan", action="store_true")

    scan = sub.add_parser("scan", help="List the Steam interfaces a module uses")
    scan.add_argument("file")

    restore = sub.add_parser("restore", help="Restore original modules from their backups")
    restore.add_argument("target")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)
    settings = ConfigManager(args.config).get_config()

    if args.command == "scan":
        for name in InterfaceScanner().detect_interfaces(args.file):
            print(name)
        return 0

    if args.command == "restore":
        restored = BinaryPatcher(settings.install_path).restore_originals(args.target)
        print(f"Restored {restored} module(s)")
        return 0 if restored else 1

    if args.command == "patch":
        config = PatchConfig(
            account_name=args.name,
            disable_networking=not args.enable_networking,
            disable_overlay=not args.enable_overlay,
            enable_lan=args.enable_lan,
        )
        patcher = BinaryPatcher(settings.install_path, save_path_name=settings.save_path_name)
        return 0 if patcher.apply_patch(args.target, args.app_id, config) else 1

    installer = ShimInstaller.from_settings(settings, progress_callback=_print_progress)
    if args.command == "install":
        return 0 if installer.install(args.specific_version) else 1
    if args.command == "versions":
        versions = installer.list_available_versions()
        for version in versions:
            print(version)
        return 0 if versions else 1
    if args.command == "installed":
        version = installer.get_installed_version()
        print(version or "not installed")
        return 0 if version else 1
    return 1


if __name__ == "__main__":
    sys.exit(main())
