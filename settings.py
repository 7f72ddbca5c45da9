import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from djvused import DEFAULT_DJVUSED


DEFAULT_EDITOR = "vi"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass
class Settings:
    """Runtime knobs; environment first, command-line flags on top."""

    djvused: str = DEFAULT_DJVUSED
    editor: str = DEFAULT_EDITOR
    log_file: Optional[Path] = None
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        log_file = env.get("DJVU_NAV_EDIT_LOG")
        return cls(
            djvused=env.get("DJVUSED") or DEFAULT_DJVUSED,
            editor=env.get("VISUAL") or env.get("EDITOR") or DEFAULT_EDITOR,
            log_file=Path(log_file).expanduser() if log_file else None,
            log_level=(env.get("DJVU_NAV_EDIT_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        )

    def with_overrides(
        self,
        *,
        djvused: Optional[str] = None,
        editor: Optional[str] = None,
        log_file: Optional[Path] = None,
        log_level: Optional[str] = None,
    ) -> "Settings":
        changes = {
            "djvused": djvused,
            "editor": editor,
            "log_file": Path(log_file).expanduser() if log_file else None,
            "log_level": log_level.upper() if log_level else None,
        }
        return replace(self, **{key: value for key, value in changes.items() if value is not None})
