"""Editor-facing protocols and the request snapshot built from them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

from ..core.edits import CURSOR_MARKER, EditKind

LOGGER = logging.getLogger(__name__)

DEFAULT_WINDOW_CHARS = 500

_LANGUAGE_BY_EXTENSION: Mapping[str, str] = {
    "java": "Java",
    "kt": "Kotlin",
    "py": "Python",
    "js": "JavaScript/TypeScript",
    "ts": "JavaScript/TypeScript",
    "jsx": "JavaScript/TypeScript",
    "tsx": "JavaScript/TypeScript",
    "cpp": "C++",
    "cc": "C++",
    "cxx": "C++",
    "c": "C",
    "cs": "C#",
    "php": "PHP",
    "rb": "Ruby",
    "go": "Go",
    "rs": "Rust",
    "swift": "Swift",
    "scala": "Scala",
    "sql": "SQL",
    "html": "HTML",
    "htm": "HTML",
    "css": "CSS",
    "xml": "XML",
    "json": "JSON",
    "yaml": "YAML",
    "yml": "YAML",
    "md": "Markdown",
}


class EditorContext(Protocol):
    """Read access to the live document, implemented by the editor shell."""

    def get_text(self) -> str:  # pragma: no cover - protocol stub
        ...

    def get_cursor_offset(self) -> int:  # pragma: no cover - protocol stub
        ...

    def get_language(self) -> str:  # pragma: no cover - protocol stub
        ...

    def get_path(self) -> Optional[Path]:  # pragma: no cover - protocol stub
        ...


class DocumentMutationSink(Protocol):
    """The only channel through which accepted edits reach the live document."""

    def apply_mutation(self, kind: EditKind, start: int, end: int, new_text: str) -> None:  # pragma: no cover
        ...


class SuggestionRenderer(Protocol):
    """Shows and hides inline completion text."""

    def show_inline(self, text: str, offset: int) -> None:  # pragma: no cover - protocol stub
        ...

    def clear_inline(self) -> None:  # pragma: no cover - protocol stub
        ...


@dataclass(slots=True, frozen=True)
class SuggestionRequest:
    """Immutable snapshot handed to background work for one generation."""

    context: str
    language: str
    cursor_offset: int
    document_text: str
    document_version: int = 0
    path: Optional[Path] = None

    @property
    def is_blank(self) -> bool:
        return not self.context.replace(CURSOR_MARKER, "").strip()


def detect_language(path: Path | str | None) -> str:
    """Map a file extension onto the language label sent to the model."""

    if path is None:
        return "code"
    suffix = Path(path).suffix.lower().lstrip(".")
    return _LANGUAGE_BY_EXTENSION.get(suffix, "code")


def build_context(text: str, cursor_offset: int, window: int = DEFAULT_WINDOW_CHARS) -> str:
    """Return up to ``window`` chars either side of the cursor joined by the marker."""

    cursor = max(0, min(cursor_offset, len(text)))
    before = text[max(0, cursor - window) : cursor]
    after = text[cursor : min(len(text), cursor + window)]
    return f"{before}{CURSOR_MARKER}{after}"


def build_request(
    editor: EditorContext,
    *,
    window: int = DEFAULT_WINDOW_CHARS,
    document_version: int = 0,
) -> SuggestionRequest:
    text = editor.get_text()
    cursor = max(0, min(editor.get_cursor_offset(), len(text)))
    return SuggestionRequest(
        context=build_context(text, cursor, window),
        language=editor.get_language() or "code",
        cursor_offset=cursor,
        document_text=text,
        document_version=document_version,
        path=editor.get_path(),
    )


@dataclass(slots=True)
class FileEditorContext:
    """In-memory editor used by the CLI and tests; also acts as its own sink."""

    text: str
    cursor_offset: int = 0
    path: Optional[Path] = None
    language: str | None = None
    mutations: list[tuple[EditKind, int, int, str]] = field(default_factory=list)
    inline: Optional[tuple[str, int]] = None

    @classmethod
    def from_path(cls, path: Path | str, *, cursor_offset: int | None = None, encoding: str = "utf-8") -> "FileEditorContext":
        target = Path(path).expanduser()
        text = target.read_text(encoding=encoding)
        offset = len(text) if cursor_offset is None else cursor_offset
        return cls(text=text, cursor_offset=max(0, min(offset, len(text))), path=target)

    def get_text(self) -> str:
        return self.text

    def get_cursor_offset(self) -> int:
        return self.cursor_offset

    def get_language(self) -> str:
        return self.language or detect_language(self.path)

    def get_path(self) -> Optional[Path]:
        return self.path

    def apply_mutation(self, kind: EditKind, start: int, end: int, new_text: str) -> None:
        replacement = "" if kind is EditKind.DELETE else new_text
        self.text = self.text[:start] + replacement + self.text[end:]
        self.mutations.append((kind, start, end, new_text))

    def show_inline(self, text: str, offset: int) -> None:
        self.inline = (text, offset)

    def clear_inline(self) -> None:
        self.inline = None

    def describe(self) -> dict[str, Any]:
        return {
            "path": str(self.path) if self.path else None,
            "language": self.get_language(),
            "cursor_offset": self.cursor_offset,
            "length": len(self.text),
        }


__all__ = [
    "EditorContext",
    "DocumentMutationSink",
    "SuggestionRenderer",
    "SuggestionRequest",
    "FileEditorContext",
    "DEFAULT_WINDOW_CHARS",
    "detect_language",
    "build_context",
    "build_request",
]
