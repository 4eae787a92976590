"""Preflight checks for the relay's environment before it is (re)started.

``check``
    Load ``AppSettings`` from the given env file. Add ``--probe-store`` to
    also read the credential record and require a refresh token, which tells
    an operator whether the /auth flow still has to be completed.
``record`` / ``verify``
    Validate the settings, then write or compare a SHA256 baseline of the env
    file so that edits made outside a deploy show up in cron or systemd.

Example::

    python -m scripts.check_env check --env-file /srv/relay/.env --probe-store
    python -m scripts.check_env record --env-file /srv/relay/.env \
        --baseline /srv/relay/.env.sha256
"""

from __future__ import annotations

import argparse
import asyncio
import hashlib
import sys
from pathlib import Path

from pydantic import ValidationError

from app.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_STORE_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _fail(message: str, code: int) -> int:
    print(message, file=sys.stderr)
    return code


def _digest(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    if not env_file.is_file():
        raise FileNotFoundError(f"Environment file {env_file} does not exist.")
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _record(env_file: Path, baseline: Path) -> int:
    digest = _digest(env_file)
    baseline.write_text(f"{digest}\n", encoding="utf-8")
    print(f"Recorded {env_file} baseline to {baseline}.")
    return EXIT_OK


def _verify(env_file: Path, baseline: Path) -> int:
    if not baseline.is_file():
        return _fail(
            f"No baseline at {baseline}; run 'record' first.", EXIT_RUNTIME_ERROR
        )
    expected = baseline.read_text(encoding="utf-8").strip()
    actual = _digest(env_file)
    if expected != actual:
        return _fail(
            f"{env_file} changed since the baseline was recorded "
            f"(expected {expected}, got {actual}).",
            EXIT_CHECKSUM_ERROR,
        )
    print("Environment baseline matches.")
    return EXIT_OK


def _probe_store(settings: AppSettings) -> int:
    """Load the refresh token through the configured credential store."""
    from app.dependencies.clients import build_credential_store
    from app.services import TokenCipherService

    cipher = TokenCipherService.from_secret(settings.security.token_encryption_secret)
    store = build_credential_store(settings.store, cipher)
    where = f"{store.backend_name} (row {store.row_id})"

    if not asyncio.run(store.load()):
        return _fail(
            f"No usable refresh token in {where}. Complete /auth before serving traffic.",
            EXIT_STORE_ERROR,
        )
    print(f"Refresh token present in {where}.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Relay environment preflight.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Validate settings only.")
    check.add_argument(
        "--probe-store",
        action="store_true",
        help="Also require a refresh token in the credential store.",
    )
    for name, help_text in (
        ("record", "Validate settings and write the env file baseline."),
        ("verify", "Validate settings and compare against the baseline."),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--baseline", required=True, type=Path)

    for sub in subparsers.choices.values():
        sub.add_argument("--env-file", default=Path(".env"), type=Path)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    try:
        settings = _load_settings(env_file)
    except FileNotFoundError as exc:
        return _fail(str(exc), EXIT_RUNTIME_ERROR)
    except ValidationError as exc:
        return _fail(f"Invalid relay settings:\n{exc.json(indent=2)}", EXIT_VALIDATION_ERROR)

    if args.command == "record":
        return _record(env_file, args.baseline)
    if args.command == "verify":
        return _verify(env_file, args.baseline)
    if args.probe_store:
        return _probe_store(settings)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
