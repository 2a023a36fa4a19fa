"""Service layer helpers (settings, telemetry, ignore rules)."""

from .ignore import GitIgnoreFilter
from .settings import ApiKeySeal, Settings, SettingsStore, redact_secret
from .telemetry import InMemoryTelemetrySink, SuggestionEvent, emit

__all__ = [
    "GitIgnoreFilter",
    "Settings",
    "SettingsStore",
    "ApiKeySeal",
    "redact_secret",
    "InMemoryTelemetrySink",
    "SuggestionEvent",
    "emit",
]
