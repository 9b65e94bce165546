"""Settings management with YAML and JSON support."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_USER_AGENT = "SDLayoutUploader-Python"


@dataclass
class UploaderSettings:
    """Tunables of the encode/upload stages that are not part of a run's input."""

    jpeg_quality: int = 90
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    timeout_seconds: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    min_resolution: Optional[int] = None
    max_resolution: Optional[int] = None

    def __post_init__(self) -> None:
        if not 1 <= self.jpeg_quality <= 95:
            raise ValueError("jpeg_quality must be between 1 and 95")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must not be negative")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


class ConfigLoader:
    """Load uploader settings files in YAML or JSON format."""

    _INT_KEYS = ("jpeg_quality", "max_attempts", "min_resolution", "max_resolution")
    _FLOAT_KEYS = ("backoff_seconds", "timeout_seconds")

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = base_dir or Path.cwd()

    def load(self, path: Path | str) -> UploaderSettings:
        """Parse a settings file and return a populated dataclass."""

        settings_path = self._resolve_path(Path(path))
        payload = self._load_payload(settings_path)
        return self._build_settings(payload)

    def _resolve_path(self, path: Path) -> Path:
        if path.is_absolute():
            return path
        return (self._base_dir / path).resolve()

    def _load_payload(self, path: Path) -> Dict[str, Any]:
        suffix = path.suffix.lower()
        if suffix in {".yaml", ".yml"}:
            with path.open("r", encoding="utf-8") as handle:
                payload = yaml.safe_load(handle) or {}
        elif suffix == ".json":
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle) or {}
        else:
            raise ValueError(f"Unsupported configuration format: {suffix}")
        if not isinstance(payload, dict):
            raise ValueError("settings file must contain a mapping")
        return payload

    def _build_settings(self, payload: Dict[str, Any]) -> UploaderSettings:
        # Settings may live at the top level or under an ``uploader`` section.
        section = payload.get("uploader", payload)
        if not isinstance(section, dict):
            raise ValueError("uploader section must be a mapping")

        known = {item.name for item in fields(UploaderSettings)}
        unknown = sorted(set(section) - known)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")

        data = dict(section)
        for key in self._INT_KEYS:
            if key in data and data[key] is not None:
                data[key] = int(data[key])
        for key in self._FLOAT_KEYS:
            if key in data and data[key] is not None:
                data[key] = float(data[key])
        return UploaderSettings(**data)


def load_config(path: Path | str, *, base_dir: Optional[Path] = None) -> UploaderSettings:
    """Convenience wrapper around :class:`ConfigLoader`."""

    loader = ConfigLoader(base_dir=base_dir)
    return loader.load(path)
