"""HTTP adapters for the upstream ERP API."""

from .client import (
    AuthenticationError,
    ErpApiError,
    ErpClient,
    ErpRequest,
    RateLimiter,
    RateLimitExceededError,
    build_url,
    require_object,
)
from .config import ErpSettings, load_erp_settings
from .signing import OAuth1Signer, RequestSigner

__all__ = [
    "AuthenticationError",
    "ErpApiError",
    "ErpClient",
    "ErpRequest",
    "ErpSettings",
    "OAuth1Signer",
    "RateLimitExceededError",
    "RateLimiter",
    "RequestSigner",
    "build_url",
    "load_erp_settings",
    "require_object",
]
