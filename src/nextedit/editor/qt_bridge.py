"""PySide6 glue: drive an :class:`EditorSession` from a ``QPlainTextEdit``.

Install the ``qt`` extra to use this module.  The adapter implements every
editor-side protocol the session needs (context, mutation sink, inline
renderer and highlight renderer) on top of one widget.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from PySide6.QtCore import QEvent, QObject, Qt, QtMsgType, qInstallMessageHandler
from PySide6.QtGui import QColor, QTextCharFormat, QTextCursor
from PySide6.QtWidgets import QApplication, QLabel, QPlainTextEdit, QTextEdit
from qasync import QEventLoop

from ..core.edits import EditKind
from ..engine.context import detect_language
from ..engine.session import EditorSession

__all__ = ["QtEditorAdapter", "SuggestionKeyFilter", "QtRuntime", "install_event_loop", "install_qt_message_handler"]

LOGGER = logging.getLogger(__name__)

_REMOVAL_BACKGROUND = (255, 205, 210)
_ADDITION_FOREGROUND = (46, 125, 50)
_INLINE_FOREGROUND = (128, 128, 128)


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`install_event_loop`."""

    app: Any
    loop: asyncio.AbstractEventLoop


class QtEditorAdapter:
    """Exposes a ``QPlainTextEdit`` through the session's editor protocols."""

    def __init__(self, editor: QPlainTextEdit, *, path: Path | str | None = None, language: str | None = None) -> None:
        self._editor = editor
        self._path = Path(path) if path is not None else None
        self._language = language
        self._applying = False
        self._inline_label: Optional[QLabel] = None
        self._selections: dict[int, Any] = {}
        self._labels: dict[int, QLabel] = {}
        self._handles = itertools.count(1)
        self._session: EditorSession | None = None

    @property
    def widget(self) -> QPlainTextEdit:
        return self._editor

    @property
    def applying(self) -> bool:
        return self._applying

    # EditorContext -----------------------------------------------------
    def get_text(self) -> str:
        return self._editor.toPlainText()

    def get_cursor_offset(self) -> int:
        return self._editor.textCursor().position()

    def get_language(self) -> str:
        return self._language or detect_language(self._path)

    def get_path(self) -> Optional[Path]:
        return self._path

    # DocumentMutationSink ----------------------------------------------
    def apply_mutation(self, kind: EditKind, start: int, end: int, new_text: str) -> None:
        cursor = QTextCursor(self._editor.document())
        cursor.setPosition(start)
        cursor.setPosition(end, QTextCursor.MoveMode.KeepAnchor)
        self._applying = True
        try:
            if kind is EditKind.DELETE:
                cursor.removeSelectedText()
            else:
                cursor.insertText(new_text)
        finally:
            self._applying = False

    # SuggestionRenderer ------------------------------------------------
    def show_inline(self, text: str, offset: int) -> None:
        self.clear_inline()
        self._inline_label = self._ghost_label(text, offset, _INLINE_FOREGROUND)

    def clear_inline(self) -> None:
        if self._inline_label is not None:
            self._inline_label.deleteLater()
            self._inline_label = None

    @property
    def inline_text(self) -> str | None:
        return self._inline_label.text() if self._inline_label is not None else None

    # HighlightRenderer -------------------------------------------------
    def add_removal(self, start: int, end: int) -> int:
        cursor = QTextCursor(self._editor.document())
        cursor.setPosition(start)
        cursor.setPosition(end, QTextCursor.MoveMode.KeepAnchor)
        selection = QTextEdit.ExtraSelection()
        selection.cursor = cursor
        char_format = QTextCharFormat()
        char_format.setBackground(QColor(*_REMOVAL_BACKGROUND))
        char_format.setFontStrikeOut(True)
        selection.format = char_format
        handle = next(self._handles)
        self._selections[handle] = selection
        self._refresh_selections()
        return handle

    def add_addition(self, offset: int, text: str) -> int:
        handle = next(self._handles)
        self._labels[handle] = self._ghost_label(text, offset, _ADDITION_FOREGROUND)
        return handle

    def remove(self, handle: Any) -> None:
        if handle in self._selections:
            del self._selections[handle]
            self._refresh_selections()
            return
        label = self._labels.pop(handle, None)
        if label is not None:
            label.deleteLater()

    @property
    def highlight_count(self) -> int:
        return len(self._selections) + len(self._labels)

    # Session wiring ----------------------------------------------------
    def connect(self, session: EditorSession) -> "SuggestionKeyFilter":
        """Forward edits and cursor moves to ``session``; Tab accepts, Escape dismisses."""

        self._session = session
        self._editor.textChanged.connect(self._on_changed)
        self._editor.cursorPositionChanged.connect(self._on_changed)
        key_filter = SuggestionKeyFilter(session, parent=self._editor)
        self._editor.installEventFilter(key_filter)
        return key_filter

    def _on_changed(self) -> None:
        if self._applying or self._session is None:
            return
        self._session.notify_changed()

    def _refresh_selections(self) -> None:
        self._editor.setExtraSelections(list(self._selections.values()))

    def _ghost_label(self, text: str, offset: int, rgb: tuple[int, int, int]) -> QLabel:
        cursor = QTextCursor(self._editor.document())
        cursor.setPosition(max(0, min(offset, len(self.get_text()))))
        rect = self._editor.cursorRect(cursor)
        label = QLabel(text, self._editor.viewport())
        label.setFont(self._editor.font())
        label.setStyleSheet("color: rgb({}, {}, {}); background: transparent;".format(*rgb))
        label.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)
        label.move(rect.right() + 1, rect.top())
        label.adjustSize()
        label.show()
        return label


class SuggestionKeyFilter(QObject):
    """Event filter mapping Tab to accept and Escape to dismiss."""

    def __init__(self, session: EditorSession, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._session = session

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:  # noqa: N802 - Qt API
        if event.type() != QEvent.Type.KeyPress:
            return False
        key = event.key()  # type: ignore[attr-defined]
        if key == Qt.Key.Key_Tab and self._session.state.has_suggestion:
            self._session.accept()
            return True
        if key == Qt.Key.Key_Escape and self._session.state.has_suggestion:
            self._session.dismiss()
            return True
        return False


def install_event_loop(app: QApplication | None = None) -> QtRuntime:
    """Create (or reuse) a ``QApplication`` and make a qasync loop current."""

    qt_app = app or QApplication.instance() or QApplication(sys.argv)
    loop = QEventLoop(qt_app)
    asyncio.set_event_loop(loop)
    qt_app.aboutToQuit.connect(loop.stop)
    LOGGER.debug("qasync event loop installed")
    return QtRuntime(app=qt_app, loop=loop)


def install_qt_message_handler() -> None:
    """Redirect Qt warnings to the Python logging stack."""

    level_map = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        del context
        logging.getLogger("PySide6").log(level_map.get(mode, logging.INFO), message)

    qInstallMessageHandler(_handler)
