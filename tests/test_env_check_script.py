"""Tests for the environment drift detection script."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from scripts import check_env

MANAGED_ENV_KEYS = [
    "FANVUE_API_KEY",
    "FANVUE_OAUTH_CLIENT_ID",
    "FANVUE_OAUTH_CLIENT_SECRET",
    "FANVUE_OAUTH_REDIRECT_URI",
    "FANVUE_MAX_RETRIES",
    "POWERBI_API_KEY",
    "SERVICE_ACCESS_TOKEN",
    "SERVICE_REFRESH_TOKEN",
]


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_managed_env() -> None:
    for key in MANAGED_ENV_KEYS:
        os.environ.pop(key, None)


@pytest.fixture(autouse=True)
def restore_environ():
    """The script loads the env file into ``os.environ``; undo that per test."""
    saved = dict(os.environ)
    _clear_managed_env()
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.mark.parametrize("command", ["record", "verify", "check"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"
    hash_file = tmp_path / ".env.sha256"

    argv = [command, "--env-file", str(env_file)]
    if command != "check":
        argv.extend(["--hash-file", str(hash_file)])

    exit_code = check_env.main(argv)
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_record_and_verify_detects_mismatched_checksum(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _write_env(
        env_file,
        FANVUE_API_KEY="fv-key",
        FANVUE_OAUTH_CLIENT_ID="client",
        FANVUE_OAUTH_CLIENT_SECRET="secret",
        FANVUE_OAUTH_REDIRECT_URI="https://example.com/api/auth/callback",
    )

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK
    baseline = hash_file.read_text(encoding="utf-8").strip()
    assert baseline

    _clear_managed_env()
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK

    _write_env(
        env_file,
        FANVUE_API_KEY="fv-key",
        FANVUE_OAUTH_CLIENT_ID="client",
        FANVUE_OAUTH_CLIENT_SECRET="different",
        FANVUE_OAUTH_REDIRECT_URI="https://example.com/api/auth/callback",
    )

    _clear_managed_env()
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_CHECKSUM_ERROR


def test_validation_failure_for_invalid_values(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _write_env(env_file, FANVUE_API_KEY="fv-key", FANVUE_MAX_RETRIES="lots")

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert not hash_file.exists()


def test_check_fails_without_any_auth_mode(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, APP_ENV="production")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_NO_AUTH_MODE
    assert "No authentication mode is configured" in capsys.readouterr().err


def test_check_reports_enabled_modes(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _write_env(env_file, SERVICE_ACCESS_TOKEN="svc-token")

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_OK
    output = capsys.readouterr().out
    assert "serviceAccount" in output
    assert "apiKey" in output
