# app/agents/alza/cart.py
import json
import logging
from typing import Dict, List

from app.agents.alza import endpoints
from app.agents.alza.errors import AlzaError, ProductNotInCart
from app.agents.alza.helpers import as_int, as_str, decode_object, dig, extract_product_id
from app.agents.alza.identity import IdentityResolver
from app.agents.alza.models import Cart, CartItem, Session
from app.agents.alza.transport import Transport

logger = logging.getLogger(__name__)

# OrderUpdate "source" value the web checkout sends for cart edits
CART_UPDATE_SOURCE = 4


def parse_cart_lines(doc: dict) -> List[CartItem]:
    items = []
    for raw in doc.get('items') or []:
        items.append(CartItem(
            product_id=as_int(raw.get('productId')),
            count=as_int(raw.get('count')),
            basket_item_id=as_int(raw.get('basketItemId')),
        ))
    return items


def reconcile(lines: List[CartItem], preview: dict) -> List[CartItem]:
    """
    Merge preview entries (names, prices, links) with cart lines (removal keys).

    The two listings share no key; the product ID is recovered from each
    preview entry's web link and used to look up the line's basket item ID.
    Entries without a matching line keep basket_item_id 0.
    """
    removal_keys: Dict[int, int] = {line.product_id: line.basket_item_id for line in lines}

    merged = []
    for raw in preview.get('items') or []:
        url = as_str(dig(raw, ('detailAction', 'webLink'), ''))
        product_id = extract_product_id(url)
        merged.append(CartItem(
            product_id=product_id,
            count=as_int(raw.get('count')),
            basket_item_id=removal_keys.get(product_id, 0),
            name=as_str(raw.get('name')),
            price=as_str(raw.get('price')),
            image_url=as_str(raw.get('imageUrl')),
            url=url,
        ))
    return merged


class CartReconciler:
    """Cart listing and mutations."""

    def __init__(self, transport: Transport, identity: IdentityResolver):
        self.transport = transport
        self.identity = identity

    async def get_cart(self, session: Session) -> Cart:
        basket_id = await self.identity.resolve_basket(session)
        if not basket_id:
            return Cart(items=[], preview_loaded=True)

        data = await self.transport.get(endpoints.CART_ITEMS.format(basket_id=basket_id))
        lines = parse_cart_lines(decode_object(data, 'cart items'))

        try:
            preview_data = await self.transport.get(endpoints.CART_PREVIEW.format(basket_id=basket_id))
            preview = decode_object(preview_data, 'cart preview')
        except AlzaError as e:
            logger.debug(f"Cart preview unavailable, returning basic items: {e}")
            return Cart(items=lines, preview_loaded=False)

        return Cart(items=reconcile(lines, preview), preview_loaded=True)

    async def add_to_cart(self, product_id: int, quantity: int = 1):
        body = json.dumps({'id': product_id, 'count': quantity})
        await self.transport.post(endpoints.ORDER_COMMODITY, body)

    async def remove_from_cart(self, session: Session, product_id: int):
        """
        Remove a product by setting its line quantity to zero.

        Raises:
            ProductNotInCart: no removable line matches ``product_id``
        """
        cart = await self.get_cart(session)
        item = cart.find(product_id)
        if item is None or not item.removable:
            raise ProductNotInCart(product_id)

        body = json.dumps({
            'id': str(item.basket_item_id),
            'count': 0,
            'addHook': None,
            'source': CART_UPDATE_SOURCE,
            'accessoryvariant': None,
        })
        await self.transport.post(endpoints.ORDER_UPDATE, body)

    async def clear_cart(self, session: Session):
        basket_id = await self.identity.resolve_basket(session)
        if not basket_id:
            logger.info("Cart already empty")
            return
        await self.transport.delete(endpoints.CART_ITEMS.format(basket_id=basket_id))
