"""Pre-flight check for the dashboard API's ``.env`` file.

Loads the file through ``AppSettings`` so malformed rate-limit or URL values
fail here rather than on the first dashboard request, then lists which Fanvue
credentials are present. A deployment with no way to authenticate upstream
is rejected.

``record`` additionally pins a SHA256 fingerprint of the file and ``verify``
compares against it, so credential rotations that were not rolled out
everywhere show up::

    python -m scripts.check_env check
    python -m scripts.check_env record --hash-file .env.sha256
    python -m scripts.check_env verify --hash-file .env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from app.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_NO_AUTH_MODE = 4
EXIT_RUNTIME_ERROR = 5


def _fingerprint(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    if not env_file.exists():
        raise FileNotFoundError(f"No environment file at {env_file}.")
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _auth_modes(settings: AppSettings) -> dict[str, bool]:
    """Which ways of authenticating against the Fanvue API are configured."""
    return {
        "apiKey": bool(settings.fanvue.api_key),
        "oauth": settings.oauth.is_configured,
        "serviceAccount": bool(settings.service_account.access_token),
        "powerbiKey": bool(settings.powerbi.api_key and settings.fanvue.api_key),
    }


def _report_auth_modes(settings: AppSettings) -> int:
    modes = _auth_modes(settings)
    for name, enabled in modes.items():
        print(f"  {name:<15} {'enabled' if enabled else 'not configured'}")
    if not any(modes.values()):
        print(
            "No authentication mode is configured. Set FANVUE_API_KEY or the "
            "FANVUE_OAUTH_CLIENT_ID/SECRET/REDIRECT_URI trio.",
            file=sys.stderr,
        )
        return EXIT_NO_AUTH_MODE
    return EXIT_OK


def _pin(env_file: Path, hash_file: Path) -> int:
    fingerprint = _fingerprint(env_file)
    hash_file.write_text(f"{fingerprint}\n", encoding="utf-8")
    print(f"Pinned {env_file} as {fingerprint}")
    return EXIT_OK


def _compare(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(f"No pinned fingerprint at {hash_file}; run 'record' first.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    pinned = hash_file.read_text(encoding="utf-8").strip()
    current = _fingerprint(env_file)
    if pinned != current:
        print(
            f"{env_file} changed since it was pinned ({pinned} -> {current}).",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR
    print(f"{env_file} matches its pinned fingerprint.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check the dashboard API configuration and Fanvue credentials."
    )
    commands = parser.add_subparsers(dest="command", required=True)

    specs = {
        "check": ("Load the settings and list the configured auth modes.", False),
        "record": ("Check, then pin the file's fingerprint.", True),
        "verify": ("Check, then compare against the pinned fingerprint.", True),
    }
    for name, (help_text, needs_hash) in specs.items():
        command = commands.add_parser(name, help=help_text)
        command.add_argument("--env-file", default=".env", type=Path)
        if needs_hash:
            command.add_argument("--hash-file", required=True, type=Path)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    try:
        settings = _load_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(f"Invalid settings in {env_file}:\n{exc.json(indent=2)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Could not load {env_file}: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    status = _report_auth_modes(settings)
    if status != EXIT_OK:
        return status

    handlers: dict[str, Callable[[], int]] = {
        "check": lambda: EXIT_OK,
        "record": lambda: _pin(env_file, args.hash_file),
        "verify": lambda: _compare(env_file, args.hash_file),
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
