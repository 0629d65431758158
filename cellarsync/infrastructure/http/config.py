"""ERP connection settings loaded from ``config.json`` and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from cellarsync.infrastructure.db.config import load_section

DEFAULT_BASE_URL = (
    "https://3421015-sb1.suitetalk.api.netsuite.com/services/rest/record/v1"
)
DEFAULT_REALM = "3421015_SB1"
DEFAULT_SYNC_DATE = "20/12/2025"

_ENV_OVERRIDES = {
    "base_url": "NETSUITE_BASE_URL",
    "realm": "NETSUITE_REALM",
    "consumer_key": "NETSUITE_CONSUMER_KEY",
    "consumer_secret": "NETSUITE_CONSUMER_SECRET",
    "token": "NETSUITE_TOKEN",
    "token_secret": "NETSUITE_TOKEN_SECRET",
    "sync_date": "SYNC_DATE",
}


@dataclass(frozen=True)
class ErpSettings:
    """Credentials, endpoints and pacing for the upstream ERP API."""

    base_url: str = DEFAULT_BASE_URL
    realm: str = DEFAULT_REALM
    consumer_key: str = ""
    consumer_secret: str = ""
    token: str = ""
    token_secret: str = ""
    sync_date: str = DEFAULT_SYNC_DATE
    min_interval_seconds: float = 1.2
    max_concurrent: int = 1
    max_retries: int = 3
    backoff_base_seconds: float = 5.0
    timeout_seconds: float = 30.0
    probe_timeout_seconds: float = 10.0

    @property
    def record_url(self) -> str:
        return self.base_url.rstrip("/")

    @property
    def suiteql_url(self) -> str:
        """Analytical query endpoint derived from the record API base URL."""
        base = self.record_url
        if base.endswith("/record/v1"):
            base = base[: -len("/record/v1")]
        return f"{base}/query/v1/suiteql"

    @property
    def has_credentials(self) -> bool:
        return all(
            (self.consumer_key, self.consumer_secret, self.token, self.token_secret)
        )


def load_erp_settings(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ErpSettings:
    """Build :class:`ErpSettings` from the ``erp`` config section and env vars.

    Environment variables win over ``config.json`` values.
    """
    env = os.environ if environ is None else environ
    section = load_section("erp", config_path)
    known = {f.name for f in fields(ErpSettings)}
    values: dict[str, Any] = {
        key: value for key, value in section.items() if key in known
    }
    for field_name, env_name in _ENV_OVERRIDES.items():
        if env.get(env_name):
            values[field_name] = env[env_name]
    settings = ErpSettings(**values)
    return replace(
        settings,
        min_interval_seconds=float(settings.min_interval_seconds),
        max_concurrent=max(1, int(settings.max_concurrent)),
        max_retries=max(0, int(settings.max_retries)),
        backoff_base_seconds=float(settings.backoff_base_seconds),
        timeout_seconds=float(settings.timeout_seconds),
        probe_timeout_seconds=float(settings.probe_timeout_seconds),
    )
