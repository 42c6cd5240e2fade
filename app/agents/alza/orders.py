# app/agents/alza/orders.py
import logging
from typing import List, Tuple

from app.agents.alza import endpoints
from app.agents.alza.helpers import as_int, as_str, decode_object, format_order_date
from app.agents.alza.identity import IdentityResolver
from app.agents.alza.models import Order, Session
from app.agents.alza.transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


class OrderHistory:
    """Union of the active and archived order listings."""

    def __init__(self, transport: Transport, identity: IdentityResolver):
        self.transport = transport
        self.identity = identity

    async def get_orders(self, session: Session, limit: int = DEFAULT_LIMIT) -> Tuple[List[Order], int]:
        """
        Most recent orders first.

        Returns:
            (orders capped at ``limit``, total number of orders on the account)
        """
        user_id = await self.identity.resolve_identity(session)
        if limit <= 0:
            limit = DEFAULT_LIMIT

        active = await self._active_orders(user_id)
        remaining = max(limit - len(active), 0)

        # Queried even when full: paging.size carries the archive total
        archive, archive_total = await self._archive_orders(user_id, max(remaining, 1))

        orders = list(active)
        if remaining > 0:
            orders.extend(archive)
        orders.sort(key=lambda order: order.date, reverse=True)

        return orders[:limit], archive_total + len(active)

    async def _archive_orders(self, user_id: str, limit: int) -> Tuple[List[Order], int]:
        data = await self.transport.get(endpoints.ORDERS_ARCHIVE.format(user_id=user_id, limit=limit))
        doc = decode_object(data, 'orders')

        orders = [
            Order(
                id=as_str(raw.get('orderId')),
                date=format_order_date(as_str(raw.get('created'))),
                status=as_str(raw.get('state')),
                total_price=as_str(raw.get('totalPrice')),
            )
            for raw in doc.get('value') or []
        ]
        return orders, as_int((doc.get('paging') or {}).get('size'))

    async def _active_orders(self, user_id: str) -> List[Order]:
        data = await self.transport.get(endpoints.ORDERS_ACTIVE.format(user_id=user_id))
        doc = decode_object(data, 'active orders')

        orders = []
        for group in doc.get('groups') or []:
            for raw in group.get('orders') or []:
                parts = raw.get('parts') or []
                first = parts[0] if parts else {}
                orders.append(Order(
                    id=as_str(raw.get('orderId')),
                    date=format_order_date(as_str(raw.get('created'))),
                    status=as_str(first.get('status')),
                    total_price=as_str(first.get('totalPrice')),
                ))
        return orders
