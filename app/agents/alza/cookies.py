# app/agents/alza/cookies.py
import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple

import browser_cookie3
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from app.agents.alza import endpoints
from app.agents.alza.config import Config
from app.agents.alza.errors import TokenRefreshError
from app.agents.alza.models import CookieResult

logger = logging.getLogger(__name__)

COOKIE_DOMAIN = 'alza.sk'


def format_cookie_header(pairs: Iterable[Tuple[str, str]]) -> str:
    return '; '.join(f"{name}={value}" for name, value in pairs if name)


class CookieSource:
    """
    Logged-in alza.sk cookies.

    A Playwright persistent profile is used when it exists (headless servers
    sign in through it once); otherwise the system Chrome cookie store is read.
    """

    def __init__(
        self,
        profile_dir: Optional[Path] = None,
        cookie_file: Optional[str] = None,
        timeout: float = Config.COOKIE_TIMEOUT,
    ):
        self.profile_dir = Path(profile_dir).expanduser() if profile_dir else Config.playwright_profile_dir()
        self.cookie_file = cookie_file
        self.timeout = timeout

    @property
    def uses_profile(self) -> bool:
        return self.cookie_file is None and self.profile_dir.is_dir()

    @property
    def description(self) -> str:
        if self.uses_profile:
            return str(self.profile_dir)
        return self.cookie_file or 'Chrome default profile'

    async def load(self) -> CookieResult:
        try:
            if self.uses_profile:
                pairs = await asyncio.wait_for(self._from_profile(), self.timeout)
            else:
                pairs = await asyncio.wait_for(asyncio.to_thread(self._from_chrome), self.timeout)
        except asyncio.TimeoutError:
            raise TokenRefreshError(f"cookie read timed out after {self.timeout:g}s")

        if not pairs:
            raise TokenRefreshError(f"no cookies found for {endpoints.BASE_URL} (are you logged in in Chrome?)")

        logger.debug(f"Loaded {len(pairs)} cookies from {self.description}")
        return CookieResult(cookie_header=format_cookie_header(pairs), cookie_count=len(pairs))

    async def _from_profile(self):
        logger.info(f"Reading cookies from Playwright profile {self.profile_dir}")
        launch_kwargs = {
            'user_data_dir': str(self.profile_dir),
            'headless': True,
        }
        if Config.CHROMIUM_PATH:
            launch_kwargs['executable_path'] = Config.CHROMIUM_PATH

        try:
            async with async_playwright() as p:
                context = await p.chromium.launch_persistent_context(**launch_kwargs)
                try:
                    cookies = await context.cookies(endpoints.BASE_URL + '/')
                finally:
                    await context.close()
        except PlaywrightError as e:
            raise TokenRefreshError(f"failed to read Playwright profile: {e}") from e

        return [(c['name'], c['value']) for c in cookies]

    def _from_chrome(self):
        logger.info("Reading cookies from the Chrome cookie store")
        try:
            jar = browser_cookie3.chrome(cookie_file=self.cookie_file, domain_name=COOKIE_DOMAIN)
        except browser_cookie3.BrowserCookieError as e:
            raise TokenRefreshError(f"No Cookies DB found: {e}") from e
        return [(cookie.name, cookie.value) for cookie in jar]
