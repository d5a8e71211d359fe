"""
Editor configuration.

Settings come from defaults overridden by `WORKFLOW_EDITOR_*` environment
variables, e.g. `WORKFLOW_EDITOR_MAX_HISTORY=100`.
"""

import os
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, Field

ENV_PREFIX = "WORKFLOW_EDITOR_"


class EditorSettings(BaseModel):
    """Tunable limits and server settings for one editor session."""

    max_history: int = Field(default=50, ge=1)
    paste_offset_x: float = 50
    paste_offset_y: float = 50
    layout_spacing_x: float = 280
    layout_spacing_y: float = 160

    host: str = "127.0.0.1"
    port: int = 8765
    cors_origins: list[str] = Field(default_factory=lambda: [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ])
    log_level: str = "INFO"

    @property
    def paste_offset(self) -> tuple[float, float]:
        return (self.paste_offset_x, self.paste_offset_y)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "EditorSettings":
        """Build settings from defaults plus any WORKFLOW_EDITOR_* overrides."""
        environ = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            if name == "cors_origins":
                overrides[name] = [o.strip() for o in raw.split(",") if o.strip()]
            else:
                overrides[name] = raw
        # pydantic coerces the string values to the declared field types
        return cls.model_validate(overrides)


@lru_cache(maxsize=1)
def get_settings() -> EditorSettings:
    return EditorSettings.from_env()
