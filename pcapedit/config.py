# pcapedit/config.py
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from .compare import DEFAULT_LOOKAHEAD
from .errors import InvalidParameter, UnreadableFile

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class EditorConfig:
    log_level: str = "INFO"
    log_dir: Optional[str] = None   # None -> console only
    console: bool = True
    lookahead: int = DEFAULT_LOOKAHEAD
    show_details: bool = True
    max_details: Optional[int] = 1000  # None -> list every entry

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not isinstance(self.log_level, str) or self.log_level.upper() not in _LEVELS:
            raise InvalidParameter(f"log_level must be one of {sorted(_LEVELS)}, got {self.log_level!r}")
        self.log_level = self.log_level.upper()
        if self.log_dir is not None and not isinstance(self.log_dir, str):
            raise InvalidParameter(f"log_dir must be a path string, got {self.log_dir!r}")
        for name in ("console", "show_details"):
            if not isinstance(getattr(self, name), bool):
                raise InvalidParameter(f"{name} must be true/false, got {getattr(self, name)!r}")
        if isinstance(self.lookahead, bool) or not isinstance(self.lookahead, int) or self.lookahead < 1:
            raise InvalidParameter(f"lookahead must be an integer >= 1, got {self.lookahead!r}")
        if self.max_details is not None and (
            isinstance(self.max_details, bool) or not isinstance(self.max_details, int) or self.max_details < 0
        ):
            raise InvalidParameter(f"max_details must be a non-negative integer or null, got {self.max_details!r}")

    def merged(self, **overrides: Any) -> "EditorConfig":
        """Copy with every non-None override applied (CLI flags win over the file)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)


def _load_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f)
    except OSError as e:
        raise UnreadableFile(path, e.strerror or str(e)) from e
    except yaml.YAMLError as e:
        raise InvalidParameter(f"{path}: invalid YAML: {e}") from e
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise InvalidParameter(f"{path}: top level must be a mapping")
    return doc


def load_config(path: Optional[str] = None) -> EditorConfig:
    """
    Defaults, then the YAML file if given. Example:

        log_level: DEBUG
        log_dir: logs
        lookahead: 200
        max_details: 50
    """
    if path is None:
        return EditorConfig()
    doc = _load_yaml(path)
    known = {f.name for f in dataclasses.fields(EditorConfig)}
    unknown = sorted(set(doc) - known)
    if unknown:
        raise InvalidParameter(f"{path}: unknown config keys: {', '.join(unknown)}")
    return EditorConfig(**doc)
