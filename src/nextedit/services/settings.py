"""Engine settings and where they come from.

Values are layered, later sources winning: dataclass defaults, the JSON file
(``~/.nextedit/settings.json``), ``NEXTEDIT_<FIELD>`` environment variables
and finally ``--set`` overrides from the command line.  ``OPENAI_API_KEY`` is
consulted only when no layer supplied a key.

The API key is the one secret.  It never reaches the JSON file in the clear:
:class:`ApiKeySeal` encrypts it with a Fernet key kept beside the settings
file.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, get_args, get_origin, get_type_hints

from cryptography.fernet import Fernet, InvalidToken

__all__ = [
    "Settings",
    "SettingsStore",
    "ApiKeySeal",
    "coerce_setting",
    "env_var_for",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
DEFAULT_SETTINGS_PATH = Path.home() / ".nextedit" / "settings.json"
ENV_PREFIX = "NEXTEDIT_"
FALLBACK_API_KEY_ENV = "OPENAI_API_KEY"
_SEALED_KEY_FIELD = "api_key_sealed"
_FORMAT_VERSION = 1
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_NONE_VALUES = {"none", "null"}


@dataclass(slots=True)
class Settings:
    """Everything a user can tune about suggestions and the model backend."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o"
    classification_model: str = "gpt-4o-mini"
    organization: str | None = None
    request_timeout: float = 10.0
    max_retries: int = 2
    retry_min_seconds: float = 0.25
    retry_max_seconds: float = 2.0
    default_headers: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    debug_logging: bool = False
    enabled: bool = True
    debounce_ms: int = 300
    context_window_chars: int = 500
    classification_timeout: float = 3.0
    completion_timeout: float = 5.0
    proposal_timeout: float = 5.0
    min_edit_confidence: float = 0.0
    fuzzy_max_mismatches: int = 2
    respect_gitignore: bool = True

    @property
    def debounce_seconds(self) -> float:
        return max(0, self.debounce_ms) / 1000.0

    @property
    def has_api_key(self) -> bool:
        return bool((self.api_key or "").strip())


@lru_cache(maxsize=1)
def _field_types() -> Dict[str, Any]:
    hints = get_type_hints(Settings)
    return {item.name: hints[item.name] for item in fields(Settings)}


def env_var_for(name: str) -> str:
    return f"{ENV_PREFIX}{name.upper()}"


def coerce_setting(name: str, raw: str) -> Any:
    """Convert the text ``raw`` to the type declared for setting ``name``.

    Raises :class:`ValueError` for unknown settings and unparseable values.
    """

    types = _field_types()
    if name not in types:
        raise ValueError(f"Unknown setting '{name}'.")
    annotation = types[name]
    text = raw.strip()
    members = get_args(annotation)
    if type(None) in members and text.lower() in _NONE_VALUES:
        return None

    target = get_origin(annotation) or annotation
    if type(None) in members:
        target = next(member for member in members if member is not type(None))
    if target is bool:
        lowered = text.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"Cannot read '{raw}' as a boolean for '{name}'.")
    if target is int:
        return int(text, 10)
    if target is float:
        return float(text)
    if target is dict:
        try:
            payload = json.loads(text or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError(f"'{name}' expects a JSON object") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"'{name}' expects a JSON object")
        return payload
    return text


def redact_secret(value: str) -> str:
    """Mask all but the first and last two characters of ``value``."""

    secret = (value or "").strip()
    if len(secret) <= 4:
        return "*" * len(secret)
    return secret[:2] + "*" * (len(secret) - 4) + secret[-2:]


class ApiKeySeal:
    """Encrypts the API key with a Fernet key stored in ``key_path``.

    The key file is created on first use and readable by the owner only.
    """

    def __init__(self, key_path: Path) -> None:
        self._key_path = key_path
        self._fernet: Fernet | None = None

    @property
    def key_path(self) -> Path:
        return self._key_path

    def seal(self, api_key: str) -> str:
        return self._cipher().encrypt(api_key.encode("utf-8")).decode("ascii")

    def unseal(self, token: str) -> str:
        """Return the plaintext key; :class:`ValueError` if ``token`` was not sealed here."""

        try:
            return self._cipher().decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise ValueError(f"API key was not sealed with {self._key_path}") from exc

    def _cipher(self) -> Fernet:
        if self._fernet is None:
            if not self._key_path.exists():
                self._key_path.parent.mkdir(parents=True, exist_ok=True)
                self._key_path.write_bytes(Fernet.generate_key())
                self._key_path.chmod(0o600)
                LOGGER.debug("Created API key seal at %s", self._key_path)
            self._fernet = Fernet(self._key_path.read_bytes().strip())
        return self._fernet


class SettingsStore:
    """Reads and writes :class:`Settings` as JSON and layers overrides on top."""

    def __init__(self, path: Path | None = None, *, seal: ApiKeySeal | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH
        self._seal = seal or ApiKeySeal(self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def seal(self) -> ApiKeySeal:
        return self._seal

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Return the effective settings: file, then environment, then ``overrides``."""

        settings = self.read()
        settings = _merge(settings, _environment_values(), source="environment")
        if overrides:
            settings = _merge(settings, overrides, source="command line")
        if not settings.has_api_key:
            fallback = os.environ.get(FALLBACK_API_KEY_ENV, "").strip()
            if fallback:
                LOGGER.debug("Using %s as the API key", FALLBACK_API_KEY_ENV)
                settings = replace(settings, api_key=fallback)
        return settings

    def read(self) -> Settings:
        """Return the settings stored in the file alone; defaults when it is missing or broken."""

        payload = self._read_json()
        if not payload:
            return Settings()
        sealed = payload.pop(_SEALED_KEY_FIELD, None)
        plaintext = payload.pop("api_key", None)
        payload.pop("version", None)
        known = _field_types()
        unknown = sorted(key for key in payload if key not in known)
        if unknown:
            LOGGER.debug("Ignoring unknown keys in %s: %s", self._path, unknown)
        settings = Settings(**{key: value for key, value in payload.items() if key in known})

        api_key = ""
        if sealed:
            try:
                api_key = self._seal.unseal(str(sealed))
            except ValueError as exc:
                LOGGER.warning("Dropping stored API key: %s", exc)
        elif plaintext:
            LOGGER.warning("%s holds the API key in plain text; it is sealed on the next save", self._path)
            api_key = str(plaintext)
        return replace(settings, api_key=api_key)

    def save(self, settings: Settings) -> Path:
        data = asdict(settings)
        api_key = data.pop("api_key", "")
        if api_key:
            data[_SEALED_KEY_FIELD] = self._seal.seal(api_key)
        data["version"] = _FORMAT_VERSION
        self._path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._path.with_suffix(".tmp")
        staging.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        staging.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_json(self) -> Dict[str, Any]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload


def _environment_values() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name in _field_types():
        env_name = env_var_for(name)
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        try:
            values[name] = coerce_setting(name, raw)
        except ValueError as exc:
            LOGGER.warning("Ignoring %s: %s", env_name, exc)
    return values


def _merge(settings: Settings, values: Mapping[str, Any], *, source: str) -> Settings:
    known = _field_types()
    accepted = {key: value for key, value in values.items() if key in known}
    ignored = sorted(set(values) - set(accepted))
    if ignored:
        LOGGER.debug("Ignoring unknown %s settings: %s", source, ignored)
    if not accepted:
        return settings
    LOGGER.debug("Applying %s settings: %s", source, sorted(accepted))
    return replace(settings, **accepted)
