"""OAuth2 password-grant token acquisition for the GLPI high-level API."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx
import jwt

from .errors import AuthenticationError
from .models import AccessToken, GlpiCredentials


logger = logging.getLogger(__name__)

TokenProvider = Callable[[GlpiCredentials], Awaitable[Union[str, AccessToken]]]


class TokenAcquirer:
    def __init__(
        self,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self.clock = clock

    def build_form(self, credentials: GlpiCredentials) -> Dict[str, str]:
        form = {
            "grant_type": "password",
            "username": credentials.username,
            "password": credentials.password,
            "scope": credentials.scope or "api",
        }
        # Public clients have no client credentials; omit rather than send blanks.
        if credentials.client_id:
            form["client_id"] = credentials.client_id
        if credentials.client_secret:
            form["client_secret"] = credentials.client_secret
        return form

    async def acquire(self, credentials: GlpiCredentials) -> AccessToken:
        url = credentials.token_url
        logger.info("Requesting GLPI access token: url=%s user=%s", url, credentials.username)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                verify=credentials.verify_ssl,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    url,
                    data=self.build_form(credentials),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"OAuth2 token request failed: {exc}") from exc

        payload = self._parse(response)
        if response.is_error:
            detail = payload.get("error_description") or payload.get("error") or response.text
            raise AuthenticationError(
                f"OAuth2 token request failed: HTTP {response.status_code} {detail}".rstrip()
            )

        access_token = payload.get("access_token")
        if not access_token:
            raise AuthenticationError("OAuth2 token response did not contain an access_token")

        issued_at = self.clock()
        return AccessToken(
            value=str(access_token),
            expires_at=self._expiry(payload, str(access_token), issued_at),
            token_type=payload.get("token_type") or "Bearer",
            issued_at=issued_at,
        )

    def _parse(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _expiry(
        self, payload: Dict[str, Any], access_token: str, issued_at: float
    ) -> Optional[float]:
        expires_at = payload.get("expires_at")
        if isinstance(expires_at, (int, float)) and not isinstance(expires_at, bool):
            return float(expires_at)
        expires_in = payload.get("expires_in")
        if isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool):
            return issued_at + float(expires_in)
        try:
            claims = jwt.decode(access_token, options={"verify_signature": False})
        except jwt.PyJWTError:
            return None
        exp = claims.get("exp")
        return float(exp) if isinstance(exp, (int, float)) else None


class TokenManager:
    """Holds one access token and re-acquires it only when absent or expired.

    Scope the manager to a batch for per-batch acquisition, or keep it alive
    to reuse the token across batches.
    """

    def __init__(
        self,
        credentials: GlpiCredentials,
        acquirer: Optional[TokenAcquirer] = None,
        provider: Optional[TokenProvider] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.credentials = credentials
        self.acquirer = acquirer or TokenAcquirer(clock=clock)
        self.provider = provider
        self.clock = clock
        self._token: Optional[AccessToken] = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> AccessToken:
        async with self._lock:
            if self._token and self._token.is_valid(now=self.clock()):
                return self._token
            self._token = await self._acquire()
            return self._token

    def invalidate(self) -> None:
        self._token = None

    async def _acquire(self) -> AccessToken:
        if self.provider is None:
            return await self.acquirer.acquire(self.credentials)
        try:
            supplied = await self.provider(self.credentials)
        except AuthenticationError:
            raise
        except Exception as exc:
            raise AuthenticationError(f"Token provider failed: {exc}") from exc
        if isinstance(supplied, AccessToken):
            token = supplied
        else:
            token = AccessToken(value=str(supplied or ""))
        if not token.value:
            raise AuthenticationError("Token provider returned no access token")
        if token.issued_at is None:
            token = replace(token, issued_at=self.clock())
        return token
