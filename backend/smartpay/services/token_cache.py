"""
Access Token Cache

Tracks the bearer token gating authenticated processor calls.

State machine: Unset -> Valid (until expiry) -> Expired -> Valid (after refresh)

Refreshing is idempotent: two callers refreshing at once both end up with a
valid token, so the cache only needs atomic replacement of its single
immutable AccessToken, no lock.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..exceptions import SmartPayError, TokenRefreshError
from ..models.responses import AccessToken

logger = logging.getLogger(__name__)


TokenRefreshedCallback = Callable[[str, datetime], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccessTokenCache:
    """
    Bearer token with expiry, refreshed on demand.

    Args:
        fetch_token: Calls the processor token endpoint, returns AccessToken
        on_token_refreshed: Persists a refreshed token (token, valid_until)
        token: Previously persisted token, if any
        clock: Returns the current aware datetime
    """

    def __init__(
        self,
        fetch_token: Callable[[], AccessToken],
        on_token_refreshed: Optional[TokenRefreshedCallback] = None,
        token: Optional[AccessToken] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        self._fetch_token = fetch_token
        self._on_token_refreshed = on_token_refreshed
        self._token = token
        self._clock = clock

    @property
    def token(self) -> Optional[AccessToken]:
        return self._token

    def is_valid(self) -> bool:
        token = self._token
        return token is not None and token.is_valid(self._clock())

    def ensure_valid(self) -> str:
        """
        Return a valid bearer token, refreshing it when expired or unset.

        Returns:
            Access token string

        Raises:
            TokenRefreshError: If the token endpoint call fails. The previous
                token is kept; only expiry evicts it.
        """
        token = self._token

        if token is not None and token.is_valid(self._clock()):
            return token.token

        logger.info("Access token expired or unset, refreshing")

        try:
            fresh = self._fetch_token()
        except TokenRefreshError:
            raise
        except SmartPayError as e:
            raise TokenRefreshError(
                f"Could not refresh access token: {e.message}",
                e.details
            ) from e

        self._token = fresh

        logger.info(f"Access token refreshed, valid until {fresh.valid_until.isoformat()}")

        if self._on_token_refreshed is not None:
            self._on_token_refreshed(fresh.token, fresh.valid_until)

        return fresh.token
