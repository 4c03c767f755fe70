"""Scan Config - Settings and hot-reloaded config files."""

import hashlib
import json
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from common.constants import (
    DEFAULT_PROBE_BATCH_SIZE,
    DEFAULT_SCAN_MODE,
    DEFAULT_SCAN_TIMEOUT,
    NO_SNIFF_CONTENT_TYPES,
    ScanMode,
)

logger = logging.getLogger(__name__)

MODE_ENV_VAR = "REFLECTSCAN_MODE"
_MODES = {ScanMode.STRICT, ScanMode.STRICT_SIGNALS, ScanMode.EXPLORATORY}


@dataclass
class ScanConfig:
    """Settings for one scanning session."""

    mode: str = DEFAULT_SCAN_MODE
    check_response_header_reflections: bool = True
    no_sniff_content_types: frozenset[str] = field(default_factory=lambda: NO_SNIFF_CONTENT_TYPES)
    log_unconfirmed_findings: bool = False
    probe_batch_size: int = DEFAULT_PROBE_BATCH_SIZE
    scan_timeout: float = DEFAULT_SCAN_TIMEOUT

    def __post_init__(self) -> None:
        if self.mode not in _MODES:
            logger.warning(f"Unknown scan mode {self.mode!r}, using {DEFAULT_SCAN_MODE}")
            self.mode = DEFAULT_SCAN_MODE
        self.no_sniff_content_types = frozenset(t.lower() for t in self.no_sniff_content_types)

    @property
    def exploratory(self) -> bool:
        return self.mode == ScanMode.EXPLORATORY

    @property
    def report_signals(self) -> bool:
        return self.mode != ScanMode.STRICT

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScanConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "no_sniff_content_types" in known:
            known["no_sniff_content_types"] = frozenset(known["no_sniff_content_types"])
        return cls(**known)

    @classmethod
    def from_env(cls, base: "ScanConfig | None" = None) -> "ScanConfig":
        """Apply environment overrides on top of a config."""
        config = base or cls()
        mode = os.environ.get(MODE_ENV_VAR)
        if mode:
            config.mode = mode.strip().lower()
            config.__post_init__()
        return config

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "check_response_header_reflections": self.check_response_header_reflections,
            "no_sniff_content_types": sorted(self.no_sniff_content_types),
            "log_unconfirmed_findings": self.log_unconfirmed_findings,
            "probe_batch_size": self.probe_batch_size,
            "scan_timeout": self.scan_timeout,
        }


class ConfigLoader:
    """Loads a JSON config file and reloads it when the file changes."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._md5: str | None = None
        self._config = ScanConfig()
        self._observer: Observer | None = None
        self._on_reload_callback: Callable[[ScanConfig], None] | None = None

    @property
    def config(self) -> ScanConfig:
        return self._config

    def set_reload_callback(self, callback: Callable[[ScanConfig], None]) -> None:
        """Set callback for config reload events."""
        self._on_reload_callback = callback

    def load(self) -> ScanConfig:
        """
        Load the config file, keeping the previous config on errors.

        Returns:
            The current configuration
        """
        if not self._path.exists():
            logger.debug(f"Config file {self._path} not found, using defaults")
            self._config = ScanConfig.from_env(ScanConfig())
            return self._config

        md5 = self._calculate_md5(self._path)
        if md5 == self._md5:
            return self._config

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load config {self._path}: {e}")
            return self._config
        if not isinstance(data, dict):
            logger.error(f"Config {self._path} must contain a JSON object")
            return self._config

        self._config = ScanConfig.from_env(ScanConfig.from_dict(data))
        self._md5 = md5
        logger.info(f"Loaded scan config from {self._path} (mode={self._config.mode})")
        return self._config

    def reload(self) -> bool:
        """Reload the file and notify the callback if it changed."""
        previous = self._md5
        self.load()
        if self._md5 == previous:
            return False
        if self._on_reload_callback:
            self._on_reload_callback(self._config)
        return True

    def _calculate_md5(self, path: Path) -> str:
        """Calculate MD5 hash of file."""
        hasher = hashlib.md5()
        with open(path, "rb") as f:
            hasher.update(f.read())
        return hasher.hexdigest()

    def start_watcher(self) -> None:
        """Start file system watcher for hot reload."""
        if self._observer:
            return

        self._observer = Observer()
        self._observer.schedule(_ConfigEventHandler(self), str(self._path.parent), recursive=False)
        self._observer.start()
        logger.info(f"Config watcher started for {self._path}")

    def stop_watcher(self) -> None:
        """Stop file system watcher."""
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info("Config watcher stopped")


class _ConfigEventHandler(FileSystemEventHandler):
    """Event handler for config file changes."""

    def __init__(self, loader: ConfigLoader) -> None:
        self.loader = loader

    def _handle(self, event: Any) -> None:
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.loader._path.resolve():
            logger.debug(f"Config modified: {event.src_path}")
            self.loader.reload()

    def on_modified(self, event: Any) -> None:
        self._handle(event)

    def on_created(self, event: Any) -> None:
        self._handle(event)
