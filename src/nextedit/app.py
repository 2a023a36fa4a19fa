"""Bootstrap helpers and the headless ``nextedit`` command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO

from .ai.client import AIClient, ClientSettings
from .ai.services import OpenAIClassificationService, OpenAICompletionService, OpenAIEditProposalService
from .core.edits import Classification
from .editor.highlights import HighlightRenderer
from .editor.patches import render_diff
from .engine.analysis import CodeContextAnalyzer
from .engine.classifier import ClassifierConfig, SuggestionClassifier
from .engine.context import DocumentMutationSink, EditorContext, FileEditorContext, SuggestionRenderer
from .engine.resolver import OffsetResolver
from .engine.session import EditorSession, SessionConfig
from .services.ignore import GitIgnoreFilter
from .services.settings import Settings, SettingsStore, coerce_setting, redact_secret
from .utils import logging as logging_utils

__all__ = [
    "configure_logging",
    "load_settings",
    "build_client",
    "build_classifier",
    "build_session",
    "main",
]

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)
_MISSING_KEY_WARNED = False


def configure_logging(debug: bool = False, *, force: bool = False, console: bool = True) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, console=console, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_client(settings: Settings, *, debug_logging: bool = False) -> AIClient:
    client_settings = ClientSettings(
        base_url=settings.base_url,
        api_key=settings.api_key,
        model=settings.model,
        organization=settings.organization,
        request_timeout=settings.request_timeout,
        max_retries=settings.max_retries,
        retry_min_seconds=settings.retry_min_seconds,
        retry_max_seconds=settings.retry_max_seconds,
        default_headers=settings.default_headers,
        metadata=settings.metadata,
        debug_logging=debug_logging or settings.debug_logging,
    )
    return AIClient(client_settings)


def build_classifier(settings: Settings, client: AIClient) -> SuggestionClassifier:
    """Wire the three OpenAI-backed collaborators into a classifier."""

    return SuggestionClassifier(
        OpenAIClassificationService(client, model=settings.classification_model),
        OpenAICompletionService(client, model=settings.model),
        OpenAIEditProposalService(client, model=settings.model),
        resolver=OffsetResolver(max_mismatches=settings.fuzzy_max_mismatches),
        analyzer=CodeContextAnalyzer(),
        config=ClassifierConfig(
            classification_timeout=settings.classification_timeout,
            completion_timeout=settings.completion_timeout,
            proposal_timeout=settings.proposal_timeout,
            min_confidence=settings.min_edit_confidence,
        ),
    )


def build_session(
    settings: Settings,
    editor: EditorContext,
    classifier: SuggestionClassifier,
    *,
    renderer: SuggestionRenderer | None = None,
    highlight_renderer: HighlightRenderer | None = None,
    sink: DocumentMutationSink | None = None,
) -> EditorSession:
    """Create an :class:`EditorSession` configured from ``settings``.

    Without an API key the session is created disabled so it never publishes.
    """

    global _MISSING_KEY_WARNED
    enabled = settings.enabled
    if enabled and not settings.has_api_key:
        if not _MISSING_KEY_WARNED:
            _LOGGER.warning(
                "No API key configured; set NEXTEDIT_API_KEY or OPENAI_API_KEY to enable suggestions."
            )
            _MISSING_KEY_WARNED = True
        enabled = False
    return EditorSession(
        editor,
        classifier,
        renderer=renderer,
        highlight_renderer=highlight_renderer,
        sink=sink,
        ignore_filter=GitIgnoreFilter() if settings.respect_gitignore else None,
        config=SessionConfig(
            debounce_seconds=settings.debounce_seconds,
            window_chars=settings.context_window_chars,
            enabled=enabled,
        ),
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the ``nextedit`` console script."""

    args = _parse_cli_args(argv)
    debug = args.debug or _env_flag("NEXTEDIT_DEBUG", default=False)
    configure_logging(debug, console=args.verbose or debug)

    settings_path = args.settings_path or os.environ.get("NEXTEDIT_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.save_settings:
        saved = settings_store.save(replace(settings_store.read(), **cli_overrides))
        print(f"Saved settings to {saved}", file=sys.stderr)
        if args.command is None and not args.dump_settings:
            return

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if settings.debug_logging and not debug:
        configure_logging(True, force=True, console=args.verbose)
        debug = True

    if args.command != "suggest":
        print("nothing to do; try 'nextedit suggest FILE --offset N'", file=sys.stderr)
        raise SystemExit(2)

    code = run_suggest(args, settings, debug_logging=debug)
    if code:
        raise SystemExit(code)


def run_suggest(
    args: argparse.Namespace,
    settings: Settings,
    *,
    client: AIClient | None = None,
    stream: TextIO | None = None,
    debug_logging: bool = False,
) -> int:
    """Run one suggestion request against a file; returns the exit status."""

    destination = stream or sys.stdout
    path = Path(args.file).expanduser()
    try:
        editor = FileEditorContext.from_path(path, cursor_offset=args.offset)
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Unable to read {path}: {exc}", file=sys.stderr)
        return 2
    if args.language:
        editor.language = args.language
    if not settings.has_api_key and client is None:
        print("No API key configured; set NEXTEDIT_API_KEY or OPENAI_API_KEY.", file=sys.stderr)
        return 1

    # One-shot requests have nothing to debounce.
    settings = replace(settings, debounce_ms=0, respect_gitignore=settings.respect_gitignore and not args.force)
    active_client = client or build_client(settings, debug_logging=debug_logging)
    before = editor.text
    applied, session = asyncio.run(
        _suggest(
            settings,
            editor,
            active_client,
            apply=args.apply and not args.dry_run,
            close_client=client is None,
        )
    )

    state = session.state
    if not state.has_suggestion and not applied:
        print("No suggestion.", file=destination)
        return 0
    if state.classification is Classification.SIMPLE_INSERTION and not applied:
        destination.write(state.completion or "")
        destination.write("\n")
        return 0

    after = editor.text if applied else session.preview()
    diff = render_diff(before, after, path=path.name)
    destination.write(diff or "No changes.\n")
    if applied:
        path.write_text(editor.text, encoding="utf-8")
        _LOGGER.info("Wrote accepted suggestion to %s", path)
    return 0


async def _suggest(
    settings: Settings,
    editor: FileEditorContext,
    client: AIClient,
    *,
    apply: bool,
    close_client: bool = False,
) -> tuple[bool, EditorSession]:
    classifier = build_classifier(settings, client)
    session = build_session(settings, editor, classifier, renderer=editor, sink=editor)
    try:
        generation = session.notify_changed()
        if generation is None:
            _LOGGER.info("No request issued for %s", editor.path)
        await session.wait_idle()
        applied = session.accept() if apply else False
        await session.coordinator.shutdown()
    finally:
        if close_client:
            await client.aclose()
    return applied, session


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="nextedit",
        description="Request, preview and apply AI next-edit suggestions for a file.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--save-settings",
        action="store_true",
        help="Persist the --set overrides to the settings file (the API key is stored encrypted).",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.nextedit/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Echo log records to stderr.")

    commands = parser.add_subparsers(dest="command")
    suggest = commands.add_parser("suggest", help="Ask for a suggestion at a cursor offset.")
    suggest.add_argument("file", help="File to read the document from.")
    suggest.add_argument("--offset", type=int, default=None, help="Cursor offset (defaults to end of file).")
    suggest.add_argument("--language", default=None, help="Language label sent to the model.")
    suggest.add_argument("--apply", action="store_true", help="Write the accepted suggestion back to FILE.")
    suggest.add_argument("--dry-run", action="store_true", help="Show the diff without writing, even with --apply.")
    suggest.add_argument("--force", action="store_true", help="Request suggestions even for git-ignored files.")
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        overrides[key] = coerce_setting(key, raw_value)
    return overrides


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(payload.get("api_key") or "")
    metadata = {
        "path": str(store.path),
        "key_path": str(store.seal.key_path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    names = sorted(name for name in os.environ if name.startswith("NEXTEDIT_"))
    if "OPENAI_API_KEY" in os.environ:
        names.append("OPENAI_API_KEY")
    return names
