"""Hierarchical settings manager with JSON persistence.

Precedence, lowest to highest:
    global settings < project settings < environment < CLI overrides

Tracks per-field modifications so saving never clobbers external edits.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from copy import deepcopy
from pathlib import Path
from typing import Any

from quill.core.sessions import CONFIG_DIR_NAME, default_data_dir
from quill.types import CompressionConfig

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "glm-4.7"


# --- Deep merge ---


def deep_merge_settings(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge overrides into base settings.

    For nested dicts, merge recursively. For primitives and arrays,
    override value wins completely. None values never override.
    """
    result = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge_settings(result[key], value)
        else:
            result[key] = value
    return result


# --- Environment ---


def env_settings(environ: Mapping[str, str]) -> dict[str, Any]:
    """Settings taken from environment variables."""
    settings: dict[str, Any] = {}

    model = environ.get("QUILL_MODEL") or environ.get("GLM_MODEL")
    if model:
        settings["defaultModel"] = model

    compression: dict[str, Any] = {}
    if "COMPRESSION_ENABLED" in environ:
        compression["enabled"] = environ["COMPRESSION_ENABLED"].lower() == "true"
    if "COMPRESSION_THRESHOLD" in environ:
        compression["threshold"] = int(environ["COMPRESSION_THRESHOLD"])
    if "COMPRESSION_STRATEGY" in environ:
        compression["strategy"] = environ["COMPRESSION_STRATEGY"]
    if "PRESERVE_TOOL_HISTORY" in environ:
        compression["preserveToolHistory"] = environ["PRESERVE_TOOL_HISTORY"].lower() != "false"
    if "PRESERVE_RECENT_MESSAGES" in environ:
        compression["preserveRecentMessages"] = int(environ["PRESERVE_RECENT_MESSAGES"])
    if "NOTIFY_BEFORE_COMPRESSION" in environ:
        compression["notifyBeforeCompression"] = environ["NOTIFY_BEFORE_COMPRESSION"].lower() != "false"
    if compression:
        settings["compression"] = compression

    return settings


# --- SettingsManager ---


class SettingsManager:
    """Manages layered settings with JSON file persistence.

    Use factory methods (create, in_memory) instead of calling constructor directly.
    """

    def __init__(
        self,
        *,
        settings_path: str | None,
        project_settings_path: str | None,
        initial_settings: dict[str, Any],
        environ: Mapping[str, str] | None = None,
        persist: bool = True,
        load_error: Exception | None = None,
    ) -> None:
        self._settings_path = settings_path
        self._project_settings_path = project_settings_path
        self._global_settings = dict(initial_settings)
        self._env_settings = env_settings(environ or {})
        self._overrides: dict[str, Any] = {}
        self._persist = persist
        self._load_error = load_error
        self._modified_fields: set[str] = set()
        self._modified_nested_fields: dict[str, set[str]] = {}

        self._settings = self._merge()

    # --- Factory methods ---

    @classmethod
    def create(cls, cwd: str, agent_dir: str | None = None, environ: Mapping[str, str] | None = None) -> SettingsManager:
        """Create a settings manager with file persistence."""
        adir = agent_dir or _default_agent_dir()
        settings_path = os.path.join(adir, "settings.json")
        project_settings_path = os.path.join(cwd, CONFIG_DIR_NAME, "settings.json")

        settings, error = _load_from_file(settings_path)
        return cls(
            settings_path=settings_path,
            project_settings_path=project_settings_path,
            initial_settings=settings,
            environ=os.environ if environ is None else environ,
            persist=True,
            load_error=error,
        )

    @classmethod
    def in_memory(cls, settings: dict[str, Any] | None = None, environ: Mapping[str, str] | None = None) -> SettingsManager:
        """Create an in-memory settings manager for testing."""
        return cls(
            settings_path=None,
            project_settings_path=None,
            initial_settings=settings or {},
            environ=environ,
            persist=False,
        )

    # --- Core operations ---

    def _merge(self) -> dict[str, Any]:
        project = self._load_project_settings() if self._project_settings_path else {}
        merged = deep_merge_settings(self._global_settings, project)
        merged = deep_merge_settings(merged, self._env_settings)
        return deep_merge_settings(merged, self._overrides)

    def reload(self) -> None:
        """Reload all settings from disk."""
        if self._settings_path:
            self._global_settings, self._load_error = _load_from_file(self._settings_path)
        self._modified_fields.clear()
        self._modified_nested_fields.clear()
        self._settings = self._merge()

    def apply_overrides(self, overrides: dict[str, Any]) -> None:
        """Apply CLI-level overrides on top of merged settings."""
        self._overrides = deep_merge_settings(self._overrides, overrides)
        self._settings = self._merge()

    def get_global_settings(self) -> dict[str, Any]:
        """Get a deep copy of the raw global settings."""
        return deepcopy(self._global_settings)

    @property
    def settings(self) -> dict[str, Any]:
        """Current merged settings (read-only view)."""
        return self._settings

    @property
    def load_error(self) -> Exception | None:
        return self._load_error

    # --- Modification tracking ---

    def _mark_modified(self, field_name: str, nested_key: str | None = None) -> None:
        self._modified_fields.add(field_name)
        if nested_key:
            self._modified_nested_fields.setdefault(field_name, set()).add(nested_key)

    # --- Persistence ---

    def _save(self) -> None:
        """Write only modified fields to global settings file, preserving external changes."""
        if self._persist and self._settings_path:
            # Don't overwrite corrupted files
            if self._load_error:
                logger.warning("Not saving settings: %s could not be read", self._settings_path)
            else:
                current_file, _ = _load_from_file(self._settings_path)
                merged: dict[str, Any] = dict(current_file)

                for field_name in self._modified_fields:
                    value = self._global_settings.get(field_name)
                    nested_keys = self._modified_nested_fields.get(field_name)

                    if nested_keys and isinstance(value, dict):
                        if not isinstance(merged.get(field_name), dict):
                            merged[field_name] = {}
                        for nk in nested_keys:
                            merged[field_name][nk] = value.get(nk)
                    else:
                        merged[field_name] = value

                merged = {k: v for k, v in merged.items() if v is not None}

                os.makedirs(os.path.dirname(self._settings_path), exist_ok=True)
                Path(self._settings_path).write_text(
                    json.dumps(merged, indent=2, ensure_ascii=False) + "\n",
                    encoding="utf-8",
                )

        self._settings = self._merge()

    def _load_project_settings(self) -> dict[str, Any]:
        if not self._project_settings_path:
            return {}
        settings, _ = _load_from_file(self._project_settings_path)
        return settings

    # --- Model ---

    def get_default_model(self) -> str:
        return self._settings.get("defaultModel") or DEFAULT_MODEL

    def set_default_model(self, model_id: str) -> None:
        self._global_settings["defaultModel"] = model_id
        self._mark_modified("defaultModel")
        self._save()

    # --- Storage ---

    def get_data_dir(self) -> str:
        return self._settings.get("dataDir") or default_data_dir()

    # --- Compression ---

    def get_compression_config(self) -> CompressionConfig | None:
        """Validated compression config, or None when compression is not configured.

        Raises pydantic.ValidationError for out-of-range values.
        """
        compression = self._settings.get("compression")
        if not isinstance(compression, dict) or compression.get("enabled") is None:
            return None
        values = {k: v for k, v in compression.items() if v is not None}
        return CompressionConfig.model_validate(values)

    def get_compression_enabled(self) -> bool:
        config = self.get_compression_config()
        return config is not None and config.enabled

    def _set_compression_field(self, key: str, value: Any) -> None:
        if not isinstance(self._global_settings.get("compression"), dict):
            self._global_settings["compression"] = {}
        self._global_settings["compression"][key] = value
        self._mark_modified("compression", key)
        self._save()

    def set_compression_enabled(self, enabled: bool) -> None:
        self._set_compression_field("enabled", enabled)

    def set_compression_threshold(self, threshold: int) -> None:
        self._set_compression_field("threshold", threshold)

    def set_compression_strategy(self, strategy: str) -> None:
        self._set_compression_field("strategy", strategy)

    def set_preserve_recent_messages(self, count: int) -> None:
        self._set_compression_field("preserveRecentMessages", count)

    def set_preserve_tool_history(self, preserve: bool) -> None:
        self._set_compression_field("preserveToolHistory", preserve)


# --- File I/O helpers ---


def _load_from_file(path: str) -> tuple[dict[str, Any], Exception | None]:
    """Load settings from a JSON file. Returns (settings, error)."""
    if not os.path.exists(path):
        return {}, None
    try:
        content = Path(path).read_text(encoding="utf-8")
        return json.loads(content), None
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read settings %s: %s", path, e)
        return {}, e


def _default_agent_dir() -> str:
    """Default agent data directory (~/.quill)."""
    return os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME)
