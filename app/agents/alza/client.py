# app/agents/alza/client.py
import logging
from typing import List, Optional, Tuple

from app.agents.alza.auth import TokenStore
from app.agents.alza.cart import CartReconciler
from app.agents.alza.identity import IdentityResolver
from app.agents.alza.lists import ListManager
from app.agents.alza.models import (
    Cart,
    CommodityList,
    ListItem,
    Order,
    ProductDetail,
    QuickBuyResult,
    SearchResult,
    Session,
    UserStatus,
)
from app.agents.alza.orders import OrderHistory
from app.agents.alza.product import ProductCatalog
from app.agents.alza.quickbuy import PurchaseOrchestrator, QuickBuyConfig
from app.agents.alza.search import SearchAggregator
from app.agents.alza.transport import Transport

logger = logging.getLogger(__name__)


class AlzaClient:
    """Authenticated Alza.sk client: one transport, one session, all components."""

    def __init__(self, session: Session, transport: Transport):
        self.session = session
        self.transport = transport

        self.identity = IdentityResolver(transport)
        self.cart = CartReconciler(transport, self.identity)
        self.searcher = SearchAggregator(transport)
        self.order_history = OrderHistory(transport, self.identity)
        self.lists = ListManager(transport, self.identity)
        self.catalog = ProductCatalog(transport, self.identity)
        self.purchases = PurchaseOrchestrator(transport)

    @classmethod
    async def create(
        cls,
        token: Optional[str] = None,
        store: Optional[TokenStore] = None,
        transport: Optional[Transport] = None,
        validate: bool = True,
    ) -> 'AlzaClient':
        """
        Build a client from ``token`` or the stored token file.

        Raises:
            AuthRequired: no stored token
            TokenExpired: ``validate`` is set and the token is not logged in
        """
        if token is None:
            token = (store or TokenStore()).load()
        if transport is None:
            transport = Transport(auth_token=token)
        else:
            transport.auth_token = token

        client = cls(Session(auth_token=token), transport)
        if validate:
            try:
                await client.identity.validate_token(client.session)
            except Exception:
                await client.close()
                raise
        return client

    async def close(self):
        await self.transport.close()

    async def __aenter__(self) -> 'AlzaClient':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # --- identity ---

    async def whoami(self) -> UserStatus:
        return await self.identity.get_user_status(self.session)

    # --- catalog ---

    async def search(self, term: str, limit: int = 10) -> List[SearchResult]:
        return await self.searcher.search(self.session, term, limit)

    async def get_product(self, product_id: int) -> ProductDetail:
        return await self.catalog.get_product(self.session, product_id)

    # --- cart ---

    async def get_cart(self) -> Cart:
        return await self.cart.get_cart(self.session)

    async def add_to_cart(self, product_id: int, quantity: int = 1):
        await self.cart.add_to_cart(product_id, quantity)

    async def remove_from_cart(self, product_id: int):
        await self.cart.remove_from_cart(self.session, product_id)

    async def clear_cart(self):
        await self.cart.clear_cart(self.session)

    # --- orders ---

    async def get_orders(self, limit: int = 10) -> Tuple[List[Order], int]:
        return await self.order_history.get_orders(self.session, limit)

    async def quick_buy(self, product_id: int, quantity: int, config: QuickBuyConfig) -> QuickBuyResult:
        return await self.purchases.quick_buy(product_id, quantity, config)

    # --- lists and favorites ---

    async def get_lists(self) -> List[CommodityList]:
        return await self.lists.get_lists(self.session)

    async def get_list_items(self, list_id: int) -> List[ListItem]:
        return await self.lists.get_list_items(list_id)

    async def create_list(self, name: str) -> CommodityList:
        return await self.lists.create_list(name)

    async def add_to_list(self, list_id: int, product_id: int):
        await self.lists.add_to_list(list_id, product_id)

    async def get_favorites(self) -> Tuple[CommodityList, List[ListItem]]:
        favorites = await self.lists.resolve_favorites(self.session)
        return favorites, await self.lists.get_list_items(favorites.id)

    async def add_to_favorites(self, product_id: int) -> CommodityList:
        favorites = await self.lists.resolve_favorites(self.session)
        await self.lists.add_to_list(favorites.id, product_id)
        return favorites

    async def mark_favorite(self, product_id: int):
        """Heart a product in the site's built-in favorites list."""
        await self.lists.add_to_favorites(self.session, product_id)

    async def remove_from_favorites(self, product_id: int) -> CommodityList:
        favorites = await self.lists.resolve_favorites(self.session)
        await self.lists.remove_from_list(favorites.id, product_id)
        return favorites
