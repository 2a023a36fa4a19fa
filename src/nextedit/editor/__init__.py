"""Editor-side models: the text buffer, batch patches and highlight state.

The Qt bridge lives in :mod:`nextedit.editor.qt_bridge` and is not imported
here so the package stays usable without PySide6.
"""

from .document_model import TextBuffer
from .highlights import HighlightRenderer, HighlightSpan, HighlightStateManager
from .patches import BatchOrder, BatchResult, apply_batch, preview_batch, render_diff

__all__ = [
    "TextBuffer",
    "HighlightRenderer",
    "HighlightSpan",
    "HighlightStateManager",
    "BatchOrder",
    "BatchResult",
    "apply_batch",
    "preview_batch",
    "render_diff",
]
