"""Identity provider client (Supabase Auth / GoTrue).

Tokens are issued and refreshed by Supabase; this module only talks to its
REST API over httpx, or checks the HS256 signature locally when the project
JWT secret is configured.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from jose import JWTError, jwt

from storeflow.config import Settings, get_settings

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """The identity provider refused a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def already_registered(self) -> bool:
        return self.status_code in (400, 422) and "registered" in self.message.lower()


@dataclass(frozen=True, slots=True)
class VerifiedIdentity:
    """A user as reported by the identity provider."""

    id: str | None
    email: str | None = None
    user_metadata: dict[str, Any] = field(default_factory=dict)
    app_metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_user_payload(cls, payload: dict[str, Any]) -> "VerifiedIdentity":
        return cls(
            id=payload.get("id") or payload.get("sub"),
            email=payload.get("email"),
            user_metadata=payload.get("user_metadata") or {},
            app_metadata=payload.get("app_metadata") or {},
        )

    def claim(self, key: str) -> Any:
        """Look a claim up in user metadata first, then app metadata."""
        value = self.user_metadata.get(key)
        if value is None:
            value = self.app_metadata.get(key)
        return value


@dataclass(frozen=True, slots=True)
class AuthTokens:
    access_token: str
    refresh_token: str
    expires_in: int | None
    user: VerifiedIdentity


class IdentityVerifier(Protocol):
    async def get_user(self, token: str) -> VerifiedIdentity: ...


class JwtIdentityVerifier:
    """Verify Supabase access tokens offline with the project JWT secret."""

    def __init__(self, secret: str, algorithms: tuple[str, ...] = ("HS256",)):
        self._secret = secret
        self._algorithms = list(algorithms)

    async def get_user(self, token: str) -> VerifiedIdentity:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=self._algorithms,
                options={"verify_aud": False},
            )
        except JWTError as exc:
            raise IdentityError(f"Invalid token: {exc}", status_code=401) from exc
        return VerifiedIdentity.from_user_payload(payload)


class SupabaseAuthClient:
    """Thin async wrapper over the GoTrue REST endpoints we use."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0):
        self._base_url = base_url.rstrip("/") + "/auth/v1"
        self._api_key = api_key
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseAuthClient":
        return cls(settings.supabase_url, settings.supabase_anon_key, settings.http_timeout_seconds)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self._api_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {token or self._api_key}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        params: dict | None = None,
        json: dict | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(
                    method, url, headers=self._headers(token), params=params, json=json
                )
        except httpx.HTTPError as exc:
            logger.error("Identity provider unreachable (%s %s): %s", method, path, exc)
            raise IdentityError("Identity provider unavailable", status_code=503) from exc

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = (
                body.get("msg")
                or body.get("error_description")
                or body.get("message")
                or body.get("error")
                or response.text
            )
            logger.info("Identity provider rejected %s %s: %s", method, path, response.status_code)
            raise IdentityError(str(message), status_code=response.status_code)

        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _tokens(payload: dict[str, Any]) -> AuthTokens:
        return AuthTokens(
            access_token=payload.get("access_token", ""),
            refresh_token=payload.get("refresh_token", ""),
            expires_in=payload.get("expires_in"),
            user=VerifiedIdentity.from_user_payload(payload.get("user") or {}),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_user(self, token: str) -> VerifiedIdentity:
        payload = await self._request("GET", "/user", token=token)
        return VerifiedIdentity.from_user_payload(payload)

    async def sign_in_with_password(self, email: str, password: str) -> AuthTokens:
        payload = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._tokens(payload)

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> VerifiedIdentity:
        payload = await self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": metadata},
        )
        # With email confirmation enabled GoTrue returns the bare user.
        user = payload.get("user") or payload
        return VerifiedIdentity.from_user_payload(user)

    async def refresh_session(self, refresh_token: str) -> AuthTokens:
        payload = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return self._tokens(payload)

    async def sign_out(self, token: str) -> None:
        await self._request("POST", "/logout", token=token)


def build_identity_verifier(settings: Settings | None = None) -> IdentityVerifier:
    settings = settings or get_settings()
    if settings.supabase_jwt_secret:
        return JwtIdentityVerifier(settings.supabase_jwt_secret)
    return SupabaseAuthClient.from_settings(settings)
