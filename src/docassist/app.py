"""Command-line host for docassist: chat, mention triage and key management."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, TextIO, get_args, get_origin, get_type_hints

from .documents.google import GoogleDocsStore
from .documents.local import LocalDocumentStore
from .services.container import Services, create_services
from .services.settings import Settings, SettingsStore, redact_secret
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)
_GOOGLE_TOKEN_ENV = "DOCASSIST_GOOGLE_TOKEN"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def configure_logging(debug: bool = False, *, force: bool = False) -> Path:
    log_path = logging_utils.setup_logging(debug, force=force)
    _LOGGER.debug("Logging to %s (debug=%s)", log_path, debug)
    return log_path


def load_settings(
    path: Path | None = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None) -> int:
    """Entry point invoked by the ``docassist`` console script."""

    out = stdout or sys.stdout
    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or _env_flag("DOCASSIST_DEBUG")
    log_path = configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("DOCASSIST_SETTINGS_PATH")
    store = SettingsStore(Path(settings_path).expanduser() if settings_path else None)
    try:
        overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return EXIT_USAGE

    if args.command == "key":
        return _run_key_command(args, store, out)

    settings = load_settings(store=store, overrides=overrides or None)
    if args.dump_settings:
        _dump_settings(settings, store, overrides=overrides, log_path=log_path, stream=out)
        return EXIT_OK
    if args.command is None:
        parser.print_help(out)
        return EXIT_USAGE

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    try:
        document_store = _build_store(args, settings)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_USAGE

    return asyncio.run(_run_service_command(args, settings, document_store, out))


async def _run_service_command(
    args: argparse.Namespace,
    settings: Settings,
    document_store: LocalDocumentStore | GoogleDocsStore,
    out: TextIO,
) -> int:
    services: Services = create_services(
        settings, document_store=document_store, comment_store=document_store
    )
    try:
        if args.command == "chat":
            if args.selection and isinstance(document_store, LocalDocumentStore):
                document_store.set_selection(args.selection)
            result = await services.conversation.converse(args.message, has_selection=bool(args.selection))
        else:
            result = await services.triage.process_mentions()
    finally:
        await services.aclose()
        if isinstance(document_store, GoogleDocsStore):
            await document_store.aclose()
    _write_json(result.to_dict(), out)
    return EXIT_OK if result.success else EXIT_FAILED


def _run_key_command(args: argparse.Namespace, store: SettingsStore, out: TextIO) -> int:
    if args.key_command == "set":
        status = store.set_api_key(args.value)
    else:
        status = store.api_key_status()
    _write_json(status.to_dict(), out)
    return EXIT_OK


def _build_store(args: argparse.Namespace, settings: Settings) -> LocalDocumentStore | GoogleDocsStore:
    if args.google_doc:
        token = os.environ.get(_GOOGLE_TOKEN_ENV, "").strip()
        if not token:
            raise ValueError(f"{_GOOGLE_TOKEN_ENV} must hold an OAuth access token for --google-doc")
        return GoogleDocsStore(
            args.google_doc,
            token,
            timeout=settings.request_timeout,
            exact_anchor_text=settings.exact_anchor_text,
        )
    if args.document:
        return LocalDocumentStore(
            Path(args.document).expanduser(),
            comments_path=Path(args.comments).expanduser() if args.comments else None,
            exact_anchor_text=settings.exact_anchor_text,
        )
    raise ValueError("Choose a document with --document PATH or --google-doc ID")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docassist",
        description="Chat about a document and answer comments that mention the assistant.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging on the console.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.docassist/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    backend = parser.add_mutually_exclusive_group()
    backend.add_argument("--document", metavar="PATH", help="Plain-text document to work on.")
    backend.add_argument("--google-doc", metavar="ID", help="Google Docs document id.")
    parser.add_argument("--comments", metavar="PATH", help="JSON comments file for --document.")

    commands = parser.add_subparsers(dest="command")
    chat = commands.add_parser("chat", help="Ask a question about the document.")
    chat.add_argument("message")
    chat.add_argument("--selection", metavar="TEXT", help="Text the question refers to.")

    commands.add_parser("mentions", help="Answer comments that mention the assistant.")

    key = commands.add_parser("key", help="Manage the stored API key.")
    key_commands = key.add_subparsers(dest="key_command", required=True)
    key_set = key_commands.add_parser("set", help="Store a new API key (encrypted).")
    key_set.add_argument("value")
    key_commands.add_parser("status", help="Show whether a key is stored (masked).")
    return parser


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        if key == "api_key":
            raise ValueError("Use `docassist key set` to change the API key.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if target is str or target is Any:
        return normalized
    if normalized.lower() in {"none", "null"} and _is_optional(annotation):
        return None
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is dict:
        try:
            return json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    log_path: Path,
    stream: TextIO,
) -> None:
    payload = asdict(settings)
    payload["api_key"] = redact_secret(payload.get("api_key") or "")
    metadata = {
        "path": str(store.path),
        "key_path": str(store.vault.key_path),
        "log_path": str(log_path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": sorted(name for name in os.environ if name.startswith("DOCASSIST_")),
    }
    _write_json({"settings": payload, "meta": metadata}, stream)


def _write_json(payload: Mapping[str, Any], stream: TextIO) -> None:
    json.dump(payload, stream, indent=2, ensure_ascii=False)
    stream.write("\n")
