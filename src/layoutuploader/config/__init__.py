"""Settings loading utilities for layoutuploader."""

from .loader import ConfigLoader, UploaderSettings, load_config

__all__ = ["ConfigLoader", "UploaderSettings", "load_config"]
