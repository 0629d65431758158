"""Settings for the HTTP application.

The deployment environment comes from ``CELLARSYNC_ENV`` and the CORS
origins from the ``api`` section of ``config.json``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from cellarsync.infrastructure.db import load_section

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
)


@dataclass(frozen=True)
class ApiSettings:
    environment: str = "development"
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def load_api_settings(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ApiSettings:
    env = os.environ if environ is None else environ
    cfg = load_section("api", config_path)
    origins = cfg.get("cors_origins") or DEFAULT_CORS_ORIGINS
    return ApiSettings(
        environment=(env.get("CELLARSYNC_ENV") or cfg.get("environment") or "development").lower(),
        cors_origins=tuple(origins),
    )


__all__ = ["ApiSettings", "load_api_settings"]
