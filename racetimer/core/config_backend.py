"""Low-level INI parsing helpers for configuration management."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional
import configparser
import os
import sys

SETTINGS_FILENAME = "settings.ini"


class ConfigBackend:
    """Encapsulates discovery and parsing of settings.ini."""

    def __init__(self, ini_path: Optional[str] = None) -> None:
        base_dir = os.path.dirname(sys.argv[0])
        self._path = Path(ini_path or (Path(base_dir) / SETTINGS_FILENAME))

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Dict[str, Dict[str, str]]:
        """Return ``{section: {option: raw string}}``; a missing file yields ``{}``."""
        # "#" starts colour values, so only ";" opens an inline comment
        parser = configparser.ConfigParser(inline_comment_prefixes=(";",))
        parser.read(self._path, encoding="utf-8")
        data: Dict[str, Dict[str, str]] = {}
        for section in parser.sections():
            data[section] = dict(parser.items(section))
        return data
