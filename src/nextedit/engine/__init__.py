"""Suggestion engine: anchor resolution, classification and request ordering."""

from .classifier import ClassifierConfig, GenerationGuard, SuggestionClassifier, SuggestionOutcome
from .context import EditorContext, FileEditorContext, SuggestionRequest, build_request
from .coordinator import RequestCoordinator
from .resolver import OffsetResolver
from .session import EditorSession, PendingSuggestionState, SessionConfig

__all__ = [
    "ClassifierConfig",
    "GenerationGuard",
    "SuggestionClassifier",
    "SuggestionOutcome",
    "EditorContext",
    "FileEditorContext",
    "SuggestionRequest",
    "build_request",
    "RequestCoordinator",
    "OffsetResolver",
    "EditorSession",
    "PendingSuggestionState",
    "SessionConfig",
]
