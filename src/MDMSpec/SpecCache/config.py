# === NAVMAP v1 ===
# {
#   "module": "MDMSpec.SpecCache.config",
#   "purpose": "Resolver settings model and the layered configuration store",
#   "sections": [
#     {"id": "resolversettings", "name": "ResolverSettings", "anchor": "class-resolversettings", "kind": "class"},
#     {"id": "environmentoverrides", "name": "EnvironmentOverrides", "anchor": "class-environmentoverrides", "kind": "class"},
#     {"id": "configurationstore", "name": "ConfigurationStore", "anchor": "class-configurationstore", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""
Configuration store for the document resolver.

Responsibilities:
- Define the typed :class:`ResolverSettings` model and its defaults
- Layer overrides: defaults, persisted JSON file, ``MDMSPEC_*`` environment
  variables, then request-scoped (query-string style) overrides
- Validate every write, keeping the previous value when a write is invalid

Design Notes:
- The store never raises on bad input. Boolean keys always coerce; invalid
  numeric values surface as ``ConfigValidationError`` internally, are
  logged, and are discarded.
- The resolver reads :meth:`ConfigurationStore.snapshot` on every call, so
  changes made through :meth:`ConfigurationStore.set` apply immediately.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import parse_qsl

from platformdirs import user_config_dir
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigValidationError
from ..io import read_json, write_json_atomic

LOGGER = logging.getLogger(__name__)

__all__ = [
    "ResolverSettings",
    "EnvironmentOverrides",
    "ConfigurationStore",
    "CONFIG_KEYS",
    "KEY_ALIASES",
    "default_override_path",
]

_BOOL_KEYS = ("use_live_source", "cache_enabled", "debug_mode", "prefer_cache", "verify_checksums")
_INT_KEYS = ("request_timeout_ms", "retry_attempts", "retry_delay_ms", "cache_duration_ms")
_FALSE_STRINGS = frozenset({"", "false", "0", "no", "off", "n", "f", "none", "null"})


class ResolverSettings(BaseModel):
    """Validated snapshot of every resolver setting."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    use_live_source: bool = Field(
        default=True, description="Allow the network tier to contact the documentation source"
    )
    cache_enabled: bool = Field(default=True, description="Allow the persisted-file tier")
    debug_mode: bool = Field(default=False, description="Emit verbose diagnostics")
    prefer_cache: bool = Field(
        default=True,
        description="Try the persisted-file tier before the network tier",
    )
    request_timeout_ms: int = Field(default=30_000, gt=0, description="Per-attempt timeout")
    retry_attempts: int = Field(default=3, gt=0, description="Retries after the first attempt")
    retry_delay_ms: int = Field(default=1_000, gt=0, description="Base backoff delay")
    cache_duration_ms: int = Field(
        default=24 * 60 * 60 * 1000, gt=0, description="Maximum age of a local snapshot"
    )
    verify_checksums: bool = Field(
        default=False, description="Check persisted files against manifest checksums"
    )

    @field_validator(*_BOOL_KEYS, mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() not in _FALSE_STRINGS
        return bool(value)

    @field_validator(*_INT_KEYS, mode="before")
    @classmethod
    def _reject_booleans(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("expected a number, got a boolean")
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def request_timeout_s(self) -> float:
        return self.request_timeout_ms / 1000.0

    @property
    def retry_delay_s(self) -> float:
        return self.retry_delay_ms / 1000.0

    @property
    def cache_duration_s(self) -> float:
        return self.cache_duration_ms / 1000.0


CONFIG_KEYS = tuple(ResolverSettings.model_fields)

KEY_ALIASES: Dict[str, str] = {
    "use_live_api": "use_live_source",
    "debug": "debug_mode",
    "api_timeout": "request_timeout_ms",
    "retry_delay": "retry_delay_ms",
    "cache_duration": "cache_duration_ms",
}


class EnvironmentOverrides(BaseSettings):
    """Raw ``MDMSPEC_*`` environment values; validation happens in the store."""

    use_live_source: Optional[str] = None
    cache_enabled: Optional[str] = None
    debug_mode: Optional[str] = None
    prefer_cache: Optional[str] = None
    request_timeout_ms: Optional[str] = None
    retry_attempts: Optional[str] = None
    retry_delay_ms: Optional[str] = None
    cache_duration_ms: Optional[str] = None
    verify_checksums: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="MDMSPEC_", case_sensitive=False, extra="ignore")


def default_override_path() -> Path:
    """Location of the persisted override file for the current user."""

    return Path(user_config_dir("mdmspec", appauthor=False)) / "settings.json"


def _canonical_key(key: str) -> Optional[str]:
    text = key.strip().lower()
    text = KEY_ALIASES.get(text, text)
    return text if text in CONFIG_KEYS else None


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    return errors[0]["msg"] if errors else str(exc)


class ConfigurationStore:
    """Process-wide resolver settings with layered overrides.

    Args:
        override_path: Persisted override file. Defaults to a per-user config
            directory resolved with :mod:`platformdirs`.
        request_overrides: Query-string or mapping applied last, never persisted.
        use_environment: Read ``MDMSPEC_*`` variables during initialization.

    Examples:
        >>> store = ConfigurationStore(override_path=tmp / "settings.json")
        >>> store.set("retry_attempts", "5")
        True
        >>> store.get("retry_attempts")
        5
    """

    def __init__(
        self,
        *,
        override_path: Optional[Path] = None,
        request_overrides: Union[str, Mapping[str, Any], None] = None,
        use_environment: bool = True,
    ) -> None:
        self._override_path = override_path if override_path is not None else default_override_path()
        self._defaults: Dict[str, Any] = ResolverSettings().model_dump()
        self._values: Dict[str, Any] = dict(self._defaults)
        self._persisted: Dict[str, Any] = {}

        self._load_persisted()
        if use_environment:
            self._apply_environment()
        if request_overrides:
            self.apply_request_overrides(request_overrides)

    @property
    def override_path(self) -> Path:
        return self._override_path

    # ------------------------------------------------------------------ layers

    def _load_persisted(self) -> None:
        path = self._override_path
        if not path.exists():
            return
        try:
            payload = read_json(path)
        except (OSError, ValueError) as exc:
            LOGGER.warning(
                "ignoring unreadable override file %s: %s", path, exc, extra={"stage": "config"}
            )
            return
        if not isinstance(payload, Mapping):
            LOGGER.warning(
                "ignoring override file %s: expected a JSON object", path, extra={"stage": "config"}
            )
            return
        for key, value in payload.items():
            canonical = _canonical_key(str(key))
            if canonical is not None and self._assign(canonical, value, source="persisted"):
                self._persisted[canonical] = self._values[canonical]

    def _apply_environment(self) -> None:
        env = EnvironmentOverrides()
        for key, value in env.model_dump(exclude_none=True).items():
            if self._assign(key, value, source="environment"):
                LOGGER.info(
                    "Config overridden: %s=%s", key, self._values[key], extra={"stage": "config"}
                )

    def apply_request_overrides(self, overrides: Union[str, Mapping[str, Any]]) -> Dict[str, bool]:
        """Apply query-string style overrides such as ``"use_live_api=false&debug=1"``."""

        if isinstance(overrides, str):
            items = parse_qsl(overrides.lstrip("?"), keep_blank_values=True)
        else:
            items = list(overrides.items())
        results: Dict[str, bool] = {}
        for key, value in items:
            canonical = _canonical_key(str(key))
            if canonical is None:
                continue
            results[canonical] = self._assign(canonical, value, source="request")
        return results

    # ------------------------------------------------------------- validation

    def _validate(self, key: str, value: Any) -> Any:
        try:
            validated = ResolverSettings.model_validate({**self._values, key: value})
        except ValidationError as exc:
            raise ConfigValidationError(key, value, _first_error(exc)) from exc
        return getattr(validated, key)

    def _assign(self, key: str, value: Any, *, source: str) -> bool:
        try:
            coerced = self._validate(key, value)
        except ConfigValidationError as exc:
            LOGGER.warning(
                "%s; keeping %r (%s)",
                exc,
                self._values[key],
                source,
                extra={"stage": "config"},
            )
            return False
        self._values[key] = coerced
        return True

    # ------------------------------------------------------------- public API

    def get(self, key: str) -> Any:
        """Return the current value of ``key`` (aliases accepted), or ``None`` if unknown."""

        canonical = _canonical_key(key)
        if canonical is None:
            LOGGER.warning("unknown configuration key %r", key, extra={"stage": "config"})
            return None
        return self._values[canonical]

    def set(self, key: str, value: Any, persist: bool = False) -> bool:
        """Validate and store ``value``; return whether it was accepted.

        Rejected values leave the previous value in place. With ``persist``
        the accepted value is also written to the override file.
        """

        canonical = _canonical_key(key)
        if canonical is None:
            LOGGER.warning("ignoring unknown configuration key %r", key, extra={"stage": "config"})
            return False
        if not self._assign(canonical, value, source="set"):
            return False
        LOGGER.debug(
            "configuration updated: %s=%r", canonical, self._values[canonical],
            extra={"stage": "config"},
        )
        if persist:
            self._persisted[canonical] = self._values[canonical]
            self._write_persisted()
        return True

    def update(self, values: Mapping[str, Any], persist: bool = False) -> Dict[str, bool]:
        results = {key: self.set(key, value, persist=False) for key, value in values.items()}
        if persist and any(results.values()):
            for key, accepted in results.items():
                canonical = _canonical_key(key)
                if accepted and canonical is not None:
                    self._persisted[canonical] = self._values[canonical]
            self._write_persisted()
        return results

    def get_all(self) -> Dict[str, Any]:
        return dict(self._values)

    def snapshot(self) -> ResolverSettings:
        return ResolverSettings(**self._values)

    def export(self) -> Dict[str, Any]:
        """Return current values alongside the persisted and default layers."""

        return {
            "values": self.get_all(),
            "persisted": dict(self._persisted),
            "defaults": dict(self._defaults),
            "override_path": str(self._override_path),
        }

    def reset(self, persist: bool = True) -> None:
        """Restore built-in defaults, removing the persisted override file when ``persist``."""

        self._values = dict(self._defaults)
        if persist:
            self._persisted.clear()
            try:
                self._override_path.unlink(missing_ok=True)
            except OSError as exc:
                LOGGER.warning(
                    "could not remove override file %s: %s",
                    self._override_path,
                    exc,
                    extra={"stage": "config"},
                )
        LOGGER.info("configuration reset to defaults", extra={"stage": "config"})

    def _write_persisted(self) -> None:
        try:
            write_json_atomic(self._override_path, self._persisted)
        except OSError as exc:
            LOGGER.warning(
                "could not persist configuration to %s: %s",
                self._override_path,
                exc,
                extra={"stage": "config"},
            )
