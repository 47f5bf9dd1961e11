"""NetSuite Authentication Provider.

Obtains the bearer token used for every order callout in a batch via the
OAuth2 client-credentials grant with a signed JWT client assertion.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import aiohttp
from typing_extensions import Protocol

from connectors.netsuite.ns_client import NetSuiteAuthenticationError
from core.config import IntegrationSettings


CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


class TokenProvider(Protocol):
    """Anything that can hand out a bearer token for a batch."""

    async def get_bearer_token(self) -> str:
        ...


@dataclass
class NetSuiteAuthConfig:
    """Configuration for NetSuite authentication.

    Attributes:
        token_url: OAuth2 token endpoint
        client_assertion: Signed JWT presented as the client assertion
        timeout_seconds: Timeout for the token request
    """
    token_url: str
    client_assertion: str
    timeout_seconds: int = 60

    @classmethod
    def from_settings(cls, settings: IntegrationSettings) -> "NetSuiteAuthConfig":
        return cls(
            token_url=settings.token_url,
            client_assertion=settings.client_assertion,
            timeout_seconds=settings.timeout_seconds,
        )


@dataclass
class NetSuiteToken:
    """OAuth2 access token as issued by NetSuite."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600
    obtained_at: datetime = field(default_factory=datetime.utcnow)


class NetSuiteAuthProvider:
    """Authentication provider for NetSuite.

    The token is requested once per batch and never refreshed mid-batch.

    Usage:
        auth = NetSuiteAuthProvider(NetSuiteAuthConfig.from_settings(settings), session)
        token = await auth.get_bearer_token()
    """

    def __init__(self, config: NetSuiteAuthConfig, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self._session = session
        self._token: Optional[NetSuiteToken] = None

    @property
    def token(self) -> Optional[NetSuiteToken]:
        return self._token

    async def get_bearer_token(self) -> str:
        """Request an access token.

        Raises:
            NetSuiteAuthenticationError: Non-200 response, missing token or transport failure
        """
        self._token = await self._fetch_token()
        return self._token.access_token

    async def _fetch_token(self) -> NetSuiteToken:
        data = {
            "grant_type": "client_credentials",
            "client_assertion_type": CLIENT_ASSERTION_TYPE,
            "client_assertion": self.config.client_assertion,
        }
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

        session = self._session
        owns_session = session is None
        if owns_session:
            session = aiohttp.ClientSession()

        try:
            async with session.post(
                self.config.token_url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=timeout,
            ) as response:
                body = await response.text()
                if response.status != 200:
                    raise NetSuiteAuthenticationError(
                        f"Token request failed: {response.status} - {body}",
                        response.status,
                        body,
                    )
                try:
                    token_data = json.loads(body)
                except ValueError:
                    token_data = None
        except asyncio.TimeoutError:
            raise NetSuiteAuthenticationError(
                f"Token request timed out after {self.config.timeout_seconds}s"
            )
        except aiohttp.ClientError as e:
            raise NetSuiteAuthenticationError(f"Token request failed: {type(e).__name__}: {e}")
        finally:
            if owns_session:
                await session.close()

        if not isinstance(token_data, dict) or not token_data.get("access_token"):
            raise NetSuiteAuthenticationError(
                "Token response did not contain an access_token", 200, body
            )

        return NetSuiteToken(
            access_token=token_data["access_token"],
            token_type=token_data.get("token_type", "Bearer"),
            expires_in=int(token_data.get("expires_in", 3600)),
        )
