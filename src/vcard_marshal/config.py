from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .linecodec import CRLF
from .versions import VCardVersion

logger = logging.getLogger(__name__)

_NEWLINES = {"crlf": CRLF, "lf": "\n"}


@dataclass
class Settings:
    version: str = "4.0"
    fold_width: int = 75
    newline: str = "crlf"
    indent: str = " "
    add_prodid: bool = True
    caret_encoding: bool = False

    @property
    def target_version(self) -> VCardVersion:
        found = VCardVersion.find(self.version)
        if found is None:
            raise ValueError(f"Unknown vCard version {self.version!r}.")
        return found

    def writer_options(self, fmt: str = "text") -> dict[str, Any]:
        """Keyword arguments for the writer of ``fmt``.

        A fold width of 0 turns folding off.
        """
        if fmt == "html":
            return {}
        if fmt != "text":
            return {"add_prodid": self.add_prodid}
        return {
            "fold_width": self.fold_width or None,
            "indent": self.indent,
            "newline": _NEWLINES[self.newline],
            "caret_encoding": self.caret_encoding,
            "add_prodid": self.add_prodid,
        }


DEFAULT_CONF = """# vcard-marshal local config (TOML)
version = "4.0"
fold_width = 75
newline = "crlf"
indent = " "
add_prodid = true
caret_encoding = false
"""


def _apply(settings: Settings, data: dict[str, Any]) -> None:
    settings.version = str(data.get("version", settings.version))
    settings.fold_width = int(data.get("fold_width", settings.fold_width))
    settings.newline = str(data.get("newline", settings.newline)).lower()
    settings.indent = str(data.get("indent", settings.indent))
    settings.add_prodid = bool(data.get("add_prodid", settings.add_prodid))
    settings.caret_encoding = bool(data.get("caret_encoding", settings.caret_encoding))

    if VCardVersion.find(settings.version) is None:
        raise ValueError(f"Unknown vCard version {settings.version!r}.")
    if settings.newline not in _NEWLINES:
        raise ValueError(f"newline must be one of {', '.join(_NEWLINES)}.")
    if settings.fold_width < 0:
        raise ValueError("fold_width must not be negative.")


def load_settings(path: Path | None = None) -> Settings:
    """Settings from a TOML file; defaults when the file is missing or malformed."""
    settings = Settings()
    if path is None or not path.exists():
        return settings
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
        _apply(settings, data)
    except (tomllib.TOMLDecodeError, ValueError, TypeError) as e:
        logger.warning("Ignoring malformed config %s: %s", path, e)
        return Settings()
    return settings


def write_default_config(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_text(DEFAULT_CONF, encoding="utf-8")
