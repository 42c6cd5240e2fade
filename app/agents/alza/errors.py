"""Exception types raised by the Alza client."""

from typing import List, Optional


TOKEN_EXPIRED_MARKER = "token expired"


class AlzaError(Exception):
    """Base class for every error raised by the client."""


class AuthRequired(AlzaError):
    """The request needs a (fresh) auth token."""

    def __init__(self, message: str = "auth required"):
        super().__init__(message)


class TokenExpired(AuthRequired):
    """The stored token no longer identifies a logged-in user."""

    def __init__(self, message: str = "auth token expired or invalid"):
        super().__init__(message)


class HTTPError(AlzaError):
    """Remote API answered with status >= 400."""

    def __init__(self, status: int, url: str, body: str = ""):
        self.status = status
        self.url = url
        self.body = body
        super().__init__(str(self))

    def __str__(self) -> str:
        if not self.body:
            return f"HTTP {self.status}"
        return f"HTTP {self.status}: {self.body}"


class AuthHTTPError(HTTPError, AuthRequired):
    """401/403 response. Both an HTTP error and an auth failure."""


class ParseError(AlzaError):
    """Response body could not be decoded into the expected shape."""


class ConfigError(AlzaError):
    """Invalid value in a config or env file."""


class ValidationError(AlzaError):
    """Quickbuy config is missing required fields."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"quickbuy config missing: {', '.join(self.missing)}")


class CouponRequired(AlzaError):
    """A purchase was requested without a promo code or an explicit waiver."""


class ProductNotInCart(AlzaError):
    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"product {product_id} not found in cart")


class MissingBasketLink(AlzaError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(f"no basket preview action in response ({count} items in basket)")


class MalformedBasketLink(AlzaError):
    def __init__(self, href: str):
        self.href = href
        super().__init__(f"could not extract basket ID from: {href}")


class ListNotFound(AlzaError):
    """Commodity list lookup came back empty."""


class TokenRefreshError(AlzaError):
    """Cookie extraction or the token exchange failed."""


class OperationFailed(AlzaError):
    """A remote step reported an error message in its response body."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"{step} error: {message}")


def is_token_expired_error(err: Optional[BaseException]) -> bool:
    """True for errors an auth refresh can fix."""
    if err is None:
        return False
    if isinstance(err, AuthRequired):
        return True
    return TOKEN_EXPIRED_MARKER in str(err).lower()
