# app/agents/alza/auth.py
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from curl_cffi.requests import AsyncSession
from curl_cffi.requests.exceptions import RequestException

from app.agents.alza import endpoints
from app.agents.alza.config import Config
from app.agents.alza.errors import AuthRequired, TokenRefreshError
from app.agents.alza.helpers import snippet
from app.agents.alza.transport import base_headers

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
MIN_BEARER_LENGTH = 40
DEFAULT_REMOTE_TOKEN_PATH = "~/.config/alza/auth_token.txt"

LOGIN_HINTS = (
    "no cookies db found",
    "no cookies found",
    "cookie header missing",
    "token endpoint returned html",
    "missing accesstoken",
    "session expired",
)


class TokenStore:
    """The bearer token persisted between runs."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else Config.token_path()

    def load(self) -> str:
        """
        Raises:
            AuthRequired: no token on disk yet
        """
        try:
            token = self.path.read_text(encoding='utf-8').strip()
        except FileNotFoundError:
            token = ''
        if not token:
            raise AuthRequired(
                f"auth token not found at {self.path}\n"
                "Run `alza token refresh` or `alza token pull --from <ssh-host>` first"
            )
        return token

    def save(self, token: str):
        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(token)
        os.chmod(self.path, 0o600)
        logger.debug(f"Token saved to {self.path}")


def looks_like_html(body: bytes, content_type: str = '') -> bool:
    if 'text/html' in (content_type or '').lower():
        return True
    low = body.decode('utf-8', errors='replace').strip().lower()
    return low.startswith('<!doctype') or low.startswith('<html') or '<html' in low


def _first(payload: Dict[str, Any], keys, kind):
    for key in keys:
        value = payload.get(key)
        if isinstance(value, kind):
            return value
    return None


async def refresh_token_with_cookies(
    cookie_header: str,
    endpoint: str = endpoints.ACCESS_TOKEN,
    session: Optional[AsyncSession] = None,
) -> str:
    """
    Exchange logged-in browser cookies for a bearer token.

    Returns:
        ``"Bearer <token>"``

    Raises:
        TokenRefreshError: transport failure, HTTP error or undecodable body
        AuthRequired: the browser session is not logged in
    """
    cookie_header = (cookie_header or '').strip()
    if not cookie_header:
        raise TokenRefreshError("cookie header missing (are you logged in in Chrome?)")

    url = endpoints.resolve_url(endpoint)
    headers = base_headers()
    headers['Cookie'] = cookie_header

    owned = session is None
    if owned:
        session = AsyncSession(impersonate=Config.IMPERSONATE, timeout=Config.TIMEOUT, proxy=Config.PROXY)

    logger.debug(f"GET {url}")
    try:
        response = await session.get(url, headers=headers)
    except RequestException as e:
        raise TokenRefreshError(f"token request failed: {e}") from e
    finally:
        if owned:
            await session.close()

    body = response.content or b''
    content_type = response.headers.get('Content-Type', '') if response.headers else ''
    logger.debug(f"Token response: {response.status_code} {content_type}")

    if response.status_code >= 400:
        raise TokenRefreshError(f"token endpoint failed: HTTP {response.status_code}: {snippet(body, 200)}")

    if looks_like_html(body, content_type):
        raise AuthRequired(f"token endpoint returned HTML (session missing or expired): {snippet(body, 200)}")

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise TokenRefreshError(f"failed to decode token response: {e} ({snippet(body, 200)})") from e
    if not isinstance(payload, dict):
        raise TokenRefreshError(f"failed to decode token response: {snippet(body, 200)}")

    access_token = _first(payload, ('accessToken', 'AccessToken'), str)
    log_out = _first(payload, ('logOut', 'LogOut'), bool)
    if not access_token:
        raise AuthRequired("token response missing accessToken (are you logged in in Chrome?)")
    if log_out:
        raise AuthRequired("token response returned logOut=true (session expired)")

    return BEARER_PREFIX + access_token


def extract_bearer_token(output: str) -> str:
    for line in output.splitlines():
        line = line.strip()
        if line.startswith(BEARER_PREFIX) and len(line) > MIN_BEARER_LENGTH:
            return line
    raise TokenRefreshError("no Bearer token found in SSH output")


async def pull_token(host: str, remote_path: str = DEFAULT_REMOTE_TOKEN_PATH, timeout: float = 15) -> str:
    """Read a token that another machine already refreshed, over ssh."""
    if not host:
        raise TokenRefreshError("missing --from (SSH host)")

    process = await asyncio.create_subprocess_exec(
        'ssh', host, 'cat', '--', remote_path,
        stdout=asyncio.subprocess.PIPE,
    )
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise TokenRefreshError(f"ssh timed out after {timeout:g}s")

    if process.returncode != 0:
        raise TokenRefreshError(f"ssh failed: exit status {process.returncode}")

    return extract_bearer_token(stdout.decode('utf-8', errors='replace'))


def needs_login_guidance(message: str) -> bool:
    low = message.lower()
    return any(hint in low for hint in LOGIN_HINTS)


def with_login_guidance(err: Exception, profile: str = '', cookie_file: str = '') -> Exception:
    """Wrap refresh errors that mean "log in first" with instructions."""
    message = str(err)
    if not needs_login_guidance(message):
        return err

    lines = [
        "Login required to refresh token.",
        "",
        "Local (desktop):",
        "1) Open Chrome/Chromium and sign in to https://www.alza.sk/",
        "2) Run: alza token refresh",
        "",
        "Headless server:",
        "1) Sign in once through a persistent Playwright profile",
        "2) Run: alza token refresh --profile ~/.config/alza/pw-profile",
    ]
    if profile:
        lines += ["", "Profile:", profile]
    if cookie_file:
        lines += ["", "Explicit cookie path:", cookie_file]
    lines += ["", "Original error:", message]

    error_cls = AuthRequired if isinstance(err, AuthRequired) else TokenRefreshError
    return error_cls("\n".join(lines))
