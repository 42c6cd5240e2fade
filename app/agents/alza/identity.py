# app/agents/alza/identity.py
import logging
from typing import Tuple

from app.agents.alza import endpoints
from app.agents.alza.errors import (
    AlzaError,
    MalformedBasketLink,
    MissingBasketLink,
    TokenExpired,
)
from app.agents.alza.helpers import as_int, as_str, decode_object, dig
from app.agents.alza.models import Session, UserStatus
from app.agents.alza.transport import Transport

logger = logging.getLogger(__name__)

BASKET_MARKER = 'basket'

TOKEN_EXPIRED_HELP = """token expired

🔑 TOKEN EXPIRED
=================
Refresh locally from browser cookies:
  $ alza token refresh

Or pull it from a remote host:
  $ alza token pull --from <ssh-host>
  (run `alza token refresh` on that host first)"""


def extract_basket_id(href: str) -> str:
    """
    Basket ID from a preview link like ``https://host/api/basket/1538710316/preview``.

    Raises:
        MalformedBasketLink: the ``basket`` segment is absent or has nothing after it
    """
    parts = href.split('/')
    for index, part in enumerate(parts):
        if part == BASKET_MARKER and index + 1 < len(parts) and parts[index + 1]:
            return parts[index + 1]
    raise MalformedBasketLink(href)


def basket_from_summary(summary: dict) -> str:
    """
    Basket ID from a status summary document.

    An empty basket has no preview link at all; that is only legal when the
    summary also reports zero products.
    """
    href = as_str(dig(summary, ('basketPreviewAction', 'href'), ''))
    count = as_int(summary.get('basketProductsCount'))
    if not href:
        if count == 0:
            return ''
        raise MissingBasketLink(count)
    return extract_basket_id(href)


class IdentityResolver:
    """Lazily resolves user and basket IDs for a session."""

    def __init__(self, transport: Transport):
        self.transport = transport

    async def _fetch_lists_identity(self) -> Tuple[int, str, int]:
        data = await self.transport.get(endpoints.COMMODITY_LISTS)
        doc = decode_object(data, 'response')
        return as_int(doc.get('user_id')), as_str(doc.get('user_name')), as_int(doc.get('basket_cnt'))

    async def _fetch_summary(self, session: Session) -> dict:
        data = await self.transport.get(endpoints.USER_STATUS_SUMMARY.format(user_id=session.user_id))
        return decode_object(data, 'status')

    async def resolve_identity(self, session: Session) -> str:
        """
        Return the user ID, fetching it once per session.

        Raises:
            TokenExpired: the token does not identify a logged-in user
        """
        if session.user_id:
            return session.user_id

        user_id, _, _ = await self._fetch_lists_identity()
        if user_id <= 0:
            raise TokenExpired(TOKEN_EXPIRED_HELP)

        session.user_id = str(user_id)
        logger.debug(f"User ID: {session.user_id}")
        return session.user_id

    async def resolve_basket(self, session: Session) -> str:
        """Return the basket ID; '' means the cart is empty."""
        if session.basket_id:
            return session.basket_id

        await self.resolve_identity(session)
        summary = await self._fetch_summary(session)
        session.basket_id = basket_from_summary(summary)
        if session.basket_id:
            logger.debug(f"Basket ID: {session.basket_id}")
        return session.basket_id

    async def get_user_status(self, session: Session) -> UserStatus:
        """
        Whoami summary.

        Basic fields come from the commodity lists endpoint. The status summary
        adds basket, orders and membership info; when it fails the basic info
        is returned on its own.
        """
        user_id, user_name, basket_cnt = await self._fetch_lists_identity()
        if user_id <= 0:
            return UserStatus(user_id=user_id, user_name=user_name)

        session.user_id = str(user_id)
        basic = UserStatus(user_id=user_id, user_name=user_name, basket_count=basket_cnt)

        try:
            summary = await self._fetch_summary(session)
        except AlzaError as e:
            logger.debug(f"statusSummary unavailable, using basic info: {e}")
            return basic

        try:
            basket_id = basket_from_summary(summary)
        except (MissingBasketLink, MalformedBasketLink) as e:
            logger.debug(f"Could not resolve basket from summary: {e}")
            basket_id = ''
        session.basket_id = basket_id

        orders = summary.get('ordersStatusInfo') or {}
        return UserStatus(
            user_id=user_id,
            user_name=user_name,
            basket_id=basket_id,
            basket_count=as_int(summary.get('basketProductsCount')),
            orders_count=as_int(orders.get('activeOrdersCount')) + as_int(orders.get('overdueOrdersCount')),
            is_premium=bool(summary.get('isAlzaPlus')),
        )

    async def validate_token(self, session: Session) -> UserStatus:
        """
        Check the token by asking who we are.

        Raises:
            TokenExpired: user ID is not positive
        """
        status = await self.get_user_status(session)
        if status.user_id <= 0:
            raise TokenExpired(TOKEN_EXPIRED_HELP)
        return status
