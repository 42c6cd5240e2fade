# app/agents/alza/recovery.py
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from app.agents.alza.auth import TokenStore, refresh_token_with_cookies
from app.agents.alza.cookies import CookieSource
from app.agents.alza.errors import AlzaError, TokenRefreshError, is_token_expired_error

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def refresh_and_save(source: CookieSource, store: TokenStore) -> str:
    """One refresh cycle: browser cookies -> access token -> token file."""
    cookies = await source.load()
    token = await refresh_token_with_cookies(cookies.cookie_header)
    store.save(token)
    logger.info(f"Token refreshed from browser cookies ({cookies.cookie_count} cookies)")
    return token


class AuthRecovery:
    """
    Runs an operation against a freshly built client and recovers once from
    an expired token.

    ``build`` and ``operation`` are both covered: a client that fails token
    validation during construction triggers the same refresh as a call that
    comes back 401.
    """

    def __init__(
        self,
        refresh: Optional[Callable[[], Awaitable[str]]] = None,
        store: Optional[TokenStore] = None,
        source: Optional[CookieSource] = None,
    ):
        self.store = store or TokenStore()
        self.source = source or CookieSource()
        self._refresh = refresh

    async def refresh(self) -> str:
        if self._refresh is not None:
            return await self._refresh()
        return await refresh_and_save(self.source, self.store)

    async def run(self, build: Callable[[], Awaitable], operation: Callable[..., Awaitable[T]]) -> T:
        try:
            return await self._attempt(build, operation)
        except AlzaError as e:
            if not is_token_expired_error(e):
                raise
            original = e

        logger.info("Token expired, trying automatic refresh...")
        try:
            await self.refresh()
        except AlzaError as refresh_err:
            raise TokenRefreshError(f"{original}\n\nAuto-refresh failed: {refresh_err}") from refresh_err

        logger.info("Token refreshed, retrying...")
        return await self._attempt(build, operation)

    async def _attempt(self, build: Callable[[], Awaitable], operation: Callable[..., Awaitable[T]]) -> T:
        client = await build()
        try:
            return await operation(client)
        finally:
            await client.close()
