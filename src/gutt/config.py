"""Persisted key/value configuration and the policy built from it."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from gutt.file_io import atomic_write_text
from gutt.schemas import DEFAULT_CONFIRM_PHRASE, Policy

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "GUTT_CONFIG_DIR"
CONFIG_FILENAME = "config.yaml"

# Config key -> Policy field.  Missing keys fall back to these defaults.
DEFAULTS: dict[str, Any] = {
    "offer_backup_tag_before_danger": True,
    "confirm_phrase_forcepush": DEFAULT_CONFIRM_PHRASE,
    "default_pull_mode": "ff-only",
    "auto_fetch_before_push": True,
    "force_push_mode": "force-with-lease",
}
# Values for these keys are stored verbatim, never parsed as YAML scalars.
STRING_KEYS = frozenset(key for key, value in DEFAULTS.items() if isinstance(value, str))
_POLICY_FIELDS: dict[str, str] = {
    "offer_backup_tag_before_danger": "offer_backup_tag",
    "confirm_phrase_forcepush": "confirm_phrase",
    "default_pull_mode": "pull_mode",
    "auto_fetch_before_push": "auto_fetch_before_push",
    "force_push_mode": "force_push_mode",
}

_HEADER = """\
# gutt configuration
#
# default_pull_mode: ff-only | merge | rebase
# offer_backup_tag_before_danger: offer a local backup tag before destructive ops
# auto_fetch_before_push: run `git fetch --all --prune` before pushing
# confirm_phrase_forcepush: phrase to retype before force push / history rewrite
"""


def config_dir() -> Path:
    """Return the configuration directory (``$GUTT_CONFIG_DIR`` or ``~/.config/gutt``)."""
    override = os.getenv(CONFIG_DIR_ENV, "").strip()
    if override:
        return Path(os.path.expanduser(override))
    return Path.home() / ".config" / "gutt"


class ConfigStore:
    """YAML-backed key/value store.  Unknown or missing keys are never errors."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or (config_dir() / CONFIG_FILENAME)

    def load(self) -> dict[str, Any]:
        """Return stored values, or an empty dict when absent or unreadable."""
        if not self.path.is_file():
            return {}
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Failed to load %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Ignoring non-mapping config in %s", self.path)
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        data = self.load()
        if key in data and data[key] is not None:
            return data[key]
        return DEFAULTS.get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self.load()
        data[key] = value
        self._write(data)
        logger.info("Set %s in %s", key, self.path)

    def ensure_file(self) -> Path:
        """Create the config file with documented defaults when missing."""
        if not self.path.exists():
            self._write(dict(DEFAULTS))
        return self.path

    def _write(self, data: dict[str, Any]) -> None:
        body = yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
        atomic_write_text(self.path, _HEADER + body)

    def policy(self) -> Policy:
        """Build an immutable :class:`Policy`; invalid values fall back to defaults."""
        data = self.load()
        kwargs: dict[str, Any] = {}
        for key, field in _POLICY_FIELDS.items():
            if key in data and data[key] is not None:
                kwargs[field] = data[key]
        try:
            return Policy(**kwargs)
        except ValidationError as exc:
            bad_fields = {str(err["loc"][0]) for err in exc.errors() if err.get("loc")}
            logger.warning(
                "Invalid config values in %s (%s); using defaults for them",
                self.path,
                ", ".join(sorted(bad_fields)),
            )
            for field in bad_fields:
                kwargs.pop(field, None)
            return Policy(**kwargs)
