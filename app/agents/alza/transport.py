# app/agents/alza/transport.py
import logging
import platform
from typing import Dict, Optional

from curl_cffi.requests import AsyncSession
from curl_cffi.requests.exceptions import RequestException

from app.agents.alza import endpoints
from app.agents.alza.config import Config
from app.agents.alza.errors import AlzaError, AuthHTTPError, HTTPError
from app.agents.alza.helpers import snippet

logger = logging.getLogger(__name__)

SEC_CH_UA = '"Chromium";v="120", "Not A(Brand";v="24"'
ACCEPT = "application/json, text/plain, */*"

USER_AGENTS = {
    'Linux': "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    'Windows': "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    'Darwin': "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
}

CH_PLATFORMS = {
    'Linux': '"Linux"',
    'Windows': '"Windows"',
    'Darwin': '"macOS"',
}


def user_agent() -> str:
    return USER_AGENTS.get(platform.system(), USER_AGENTS['Darwin'])


def base_headers() -> Dict[str, str]:
    """Browser-like header set shared by every call."""
    return {
        'User-Agent': user_agent(),
        'Accept': ACCEPT,
        'Accept-Language': 'sk-SK',
        'Referer': endpoints.BASE_URL + '/',
        'Origin': endpoints.BASE_URL,
        'Sec-Fetch-Dest': 'empty',
        'Sec-Fetch-Mode': 'cors',
        'Sec-Fetch-Site': 'same-origin',
        'Sec-Ch-Ua': SEC_CH_UA,
        'Sec-Ch-Ua-Mobile': '?0',
        'Sec-Ch-Ua-Platform': CH_PLATFORMS.get(platform.system(), '"macOS"'),
    }


class Transport:
    """
    Authenticated HTTP access to the Alza API.

    Uses a curl_cffi session impersonating Chrome so the TLS fingerprint
    matches a real browser. Returns raw response bytes; status >= 400 is
    raised as HTTPError (AuthHTTPError for 401/403).
    """

    def __init__(
        self,
        auth_token: str = '',
        timeout: Optional[int] = None,
        impersonate: Optional[str] = None,
        proxy: Optional[str] = None,
        session: Optional[AsyncSession] = None,
        ):
        self.auth_token = auth_token
        self.timeout = timeout or Config.TIMEOUT
        self.impersonate = impersonate or Config.IMPERSONATE
        self.proxy = proxy if proxy is not None else Config.PROXY
        self._session = session

    def _get_session(self) -> AsyncSession:
        if self._session is None:
            kwargs = {'impersonate': self.impersonate, 'timeout': self.timeout}
            if self.proxy:
                kwargs['proxy'] = self.proxy
            self._session = AsyncSession(**kwargs)
        return self._session

    def headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = base_headers()
        if self.auth_token:
            headers['Authorization'] = self.auth_token
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        body: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        ) -> bytes:
        url = endpoints.resolve_url(endpoint)
        extra = dict(headers or {})
        if body is not None:
            extra.setdefault('Content-Type', 'application/json')

        logger.debug(f"{method} {url}")
        if body:
            logger.debug(f"Body: {snippet(body, 500)}")

        try:
            response = await self._get_session().request(
                method,
                url,
                data=body,
                params=params,
                headers=self.headers(extra),
            )
        except RequestException as e:
            raise AlzaError(f"request failed: {e}") from e

        content = response.content or b''
        logger.debug(f"Response: {response.status_code} {snippet(content, 500)}")

        if response.status_code >= 400:
            error_cls = AuthHTTPError if response.status_code in (401, 403) else HTTPError
            raise error_cls(response.status_code, url, snippet(content, 500))

        return content

    async def get(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> bytes:
        return await self.request('GET', endpoint, params=params)

    async def post(self, endpoint: str, body: str) -> bytes:
        return await self.request('POST', endpoint, body=body)

    async def delete(self, endpoint: str) -> bytes:
        return await self.request('DELETE', endpoint)

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None
