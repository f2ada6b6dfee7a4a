"""QObject-based singleton store for configuration management."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from PyQt5 import QtCore

from racetimer.core.config_backend import ConfigBackend

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class ConfigModel:
    # Timing authority
    base_url: str = "http://192.168.4.1"
    timeout_ms: int = 2000

    # Timers
    poll_ms: int = 250
    clock_ms: int = 10
    discard_stale_results: bool = True

    # Status line / indicators
    idle_color: str = "#fff"
    racing_color: str = "#00ff41"
    stopped_color: str = "#ff0055"
    error_color: str = "#ff0055"
    connected_color: str = "#00ff41"
    disconnected_color: str = "#ff0055"
    active_card_color: str = "#00ff41"
    finished_card_color: str = "#ffd700"

    # Window
    font_family: str = "Arial"
    font_size: int = 11
    clock_font_size: int = 36


def _parse_int(raw: Optional[str], name: str, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _parse_bool(raw: Optional[str], name: str, default: bool) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


class ConfigStore(QtCore.QObject):
    config_changed = QtCore.pyqtSignal(object)

    MIN_POLL_MS = 20

    def __init__(self, backend: Optional[ConfigBackend] = None) -> None:
        super().__init__()
        self._backend = backend or ConfigBackend()
        self._config = ConfigModel()
        self.reload()

    @property
    def config(self) -> ConfigModel:
        return self._config

    @property
    def backend(self) -> ConfigBackend:
        return self._backend

    def reload(self) -> ConfigModel:
        data = self._backend.load()
        cfg = ConfigModel()

        self._apply_authority_settings(cfg, data)
        self._apply_timing_settings(cfg, data)
        self._apply_display_settings(cfg, data)

        self._config = cfg
        self.config_changed.emit(cfg)
        return cfg

    def override_base_url(self, base_url: str) -> ConfigModel:
        """Replace the authority URL for this run only (nothing is written back)."""
        self._config.base_url = self._validate_base_url(base_url)
        self.config_changed.emit(self._config)
        return self._config

    @staticmethod
    def _validate_base_url(raw: str) -> str:
        url = raw.strip().rstrip("/")
        if not url.lower().startswith(("http://", "https://")):
            raise ValueError(f"Authority base_url must start with http:// or https://, got {raw!r}")
        return url

    def _apply_authority_settings(self, cfg: ConfigModel, data: Mapping[str, Mapping[str, str]]) -> None:
        authority = data.get("authority", {})

        cfg.base_url = self._validate_base_url(authority.get("base_url", cfg.base_url))
        cfg.timeout_ms = _parse_int(authority.get("timeout_ms"), "Authority timeout_ms", cfg.timeout_ms)
        if cfg.timeout_ms <= 0:
            raise ValueError("Authority timeout_ms must be greater than zero")

    def _apply_timing_settings(self, cfg: ConfigModel, data: Mapping[str, Mapping[str, str]]) -> None:
        timing = data.get("timing", {})

        cfg.poll_ms = max(
            self.MIN_POLL_MS,
            _parse_int(timing.get("poll_ms"), "Timing poll_ms", cfg.poll_ms),
        )
        cfg.clock_ms = _parse_int(timing.get("clock_ms"), "Timing clock_ms", cfg.clock_ms)
        if cfg.clock_ms < 1:
            raise ValueError("Timing clock_ms must be at least 1")
        cfg.discard_stale_results = _parse_bool(
            timing.get("discard_stale_results"),
            "Timing discard_stale_results",
            cfg.discard_stale_results,
        )

    def _apply_display_settings(self, cfg: ConfigModel, data: Mapping[str, Mapping[str, str]]) -> None:
        colors = data.get("colors", {})
        window = data.get("window", {})

        cfg.idle_color = colors.get("idle", cfg.idle_color)
        cfg.racing_color = colors.get("racing", cfg.racing_color)
        cfg.stopped_color = colors.get("stopped", cfg.stopped_color)
        cfg.error_color = colors.get("error", cfg.error_color)
        cfg.connected_color = colors.get("connected", cfg.connected_color)
        cfg.disconnected_color = colors.get("disconnected", cfg.disconnected_color)
        cfg.active_card_color = colors.get("active_card", cfg.active_card_color)
        cfg.finished_card_color = colors.get("finished_card", cfg.finished_card_color)

        cfg.font_family = window.get("font_family", cfg.font_family)
        cfg.font_size = _parse_int(window.get("font_size"), "Window font_size", cfg.font_size)
        cfg.clock_font_size = _parse_int(
            window.get("clock_font_size"), "Window clock_font_size", cfg.clock_font_size
        )


_CONFIG_STORE: Optional[ConfigStore] = None


def get_config_store() -> ConfigStore:
    global _CONFIG_STORE
    if _CONFIG_STORE is None:
        _CONFIG_STORE = ConfigStore()
    return _CONFIG_STORE


def set_config_store(store: ConfigStore) -> None:
    global _CONFIG_STORE
    _CONFIG_STORE = store


__all__ = [
    "ConfigModel",
    "ConfigStore",
    "get_config_store",
    "set_config_store",
]
