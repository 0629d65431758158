"""Request signing for the ERP REST API (OAuth 1.0a, HMAC-SHA256)."""

from __future__ import annotations

from typing import Protocol

from oauthlib import oauth1

from .config import ErpSettings


class RequestSigner(Protocol):
    """Returns the auth headers for one outbound request."""

    def sign(self, method: str, url: str) -> dict[str, str]: ...


class OAuth1Signer:
    """Token-based OAuth 1.0a signer with the account realm in the header."""

    def __init__(
        self,
        *,
        consumer_key: str,
        consumer_secret: str,
        token: str,
        token_secret: str,
        realm: str,
    ) -> None:
        self._client = oauth1.Client(
            consumer_key,
            client_secret=consumer_secret,
            resource_owner_key=token,
            resource_owner_secret=token_secret,
            signature_method=oauth1.SIGNATURE_HMAC_SHA256,
            realm=realm,
        )

    @classmethod
    def from_settings(cls, settings: ErpSettings) -> "OAuth1Signer":
        return cls(
            consumer_key=settings.consumer_key,
            consumer_secret=settings.consumer_secret,
            token=settings.token,
            token_secret=settings.token_secret,
            realm=settings.realm,
        )

    def sign(self, method: str, url: str) -> dict[str, str]:
        # A fresh nonce and timestamp are generated on every call.
        _, headers, _ = self._client.sign(url, http_method=method.upper())
        return {"Authorization": headers["Authorization"]}
