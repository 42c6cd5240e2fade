import pytest

from app.agents.alza import endpoints
from app.agents.alza.cart import CartReconciler, reconcile
from app.agents.alza.errors import HTTPError, ProductNotInCart
from app.agents.alza.identity import IdentityResolver
from app.agents.alza.models import CartItem, Session, to_json

SUMMARY = endpoints.USER_STATUS_SUMMARY.format(user_id='42')
ITEMS = endpoints.CART_ITEMS.format(basket_id='777')
PREVIEW = endpoints.CART_PREVIEW.format(basket_id='777')

LINES = {'items': [
    {'productId': 100, 'count': 1, 'basketItemId': 5001},
    {'productId': 200, 'count': 2, 'basketItemId': 5002},
]}
PREVIEW_DOC = {'items': [
    {'count': 1, 'name': 'Cable', 'price': '9,90 €', 'imageUrl': 'img1',
     'detailAction': {'webLink': 'https://www.alza.sk/cable-d100.htm'}},
    {'count': 2, 'name': 'Mouse', 'price': '19,90 €', 'imageUrl': 'img2',
     'detailAction': {'webLink': 'https://www.alza.sk/mouse-d200.htm'}},
    {'count': 1, 'name': 'Gift', 'price': '0 €',
     'detailAction': {'webLink': 'https://www.alza.sk/gift-d300.htm'}},
]}


def build_routes(overrides=None):
    routes = {
        endpoints.COMMODITY_LISTS: {'user_id': 42},
        SUMMARY: {'basketPreviewAction': {'href': '/api/basket/777/preview'}, 'basketProductsCount': 3},
        ('GET', ITEMS): LINES,
        PREVIEW: PREVIEW_DOC,
    }
    routes.update(overrides or {})
    return routes


def make_cart(transport):
    return CartReconciler(transport, IdentityResolver(transport))


def test_reconcile_joins_by_product_id_from_link():
    lines = [CartItem(product_id=100, count=1, basket_item_id=5001)]
    merged = reconcile(lines, PREVIEW_DOC)

    assert [item.product_id for item in merged] == [100, 200, 300]
    assert merged[0].basket_item_id == 5001
    assert merged[0].name == 'Cable'
    assert merged[1].basket_item_id == 0
    assert not merged[1].removable


@pytest.mark.asyncio
async def test_get_cart_full(fake_transport):
    transport = fake_transport(build_routes())
    cart = await make_cart(transport).get_cart(Session(auth_token='Bearer t'))

    assert cart.preview_loaded is True
    assert len(cart) == 3
    assert cart.find(200).basket_item_id == 5002
    assert cart.find(200).price == '19,90 €'


@pytest.mark.asyncio
async def test_get_cart_empty_basket_makes_no_item_calls(fake_transport):
    transport = fake_transport({
        endpoints.COMMODITY_LISTS: {'user_id': 42},
        SUMMARY: {'basketProductsCount': 0},
    })
    cart = await make_cart(transport).get_cart(Session(auth_token='Bearer t'))

    assert len(cart) == 0
    assert cart.preview_loaded is True
    assert not transport.called('GET', ITEMS)


@pytest.mark.asyncio
async def test_get_cart_preview_failure_returns_basic_items(fake_transport):
    transport = fake_transport(build_routes({PREVIEW: HTTPError(502, PREVIEW, 'bad gateway')}))
    cart = await make_cart(transport).get_cart(Session(auth_token='Bearer t'))

    assert cart.preview_loaded is False
    assert [(item.product_id, item.count) for item in cart] == [(100, 1), (200, 2)]
    assert to_json(cart)['previewLoaded'] is False


@pytest.mark.asyncio
async def test_remove_from_cart_posts_zero_count(fake_transport):
    transport = fake_transport(build_routes({endpoints.ORDER_UPDATE: {'d': {}}}))
    await make_cart(transport).remove_from_cart(Session(auth_token='Bearer t'), 200)

    body = transport.posted_json(endpoints.ORDER_UPDATE)[0]
    assert body == {'id': '5002', 'count': 0, 'addHook': None, 'source': 4, 'accessoryvariant': None}


@pytest.mark.asyncio
async def test_remove_from_cart_unknown_product(fake_transport):
    transport = fake_transport(build_routes())
    with pytest.raises(ProductNotInCart):
        await make_cart(transport).remove_from_cart(Session(auth_token='Bearer t'), 999)


@pytest.mark.asyncio
async def test_remove_from_cart_entry_without_removal_key(fake_transport):
    transport = fake_transport(build_routes())
    with pytest.raises(ProductNotInCart):
        await make_cart(transport).remove_from_cart(Session(auth_token='Bearer t'), 300)
    assert not transport.called('POST', endpoints.ORDER_UPDATE)


@pytest.mark.asyncio
async def test_add_to_cart(fake_transport):
    transport = fake_transport({endpoints.ORDER_COMMODITY: {'d': {}}})
    await make_cart(transport).add_to_cart(100, 3)
    assert transport.posted_json(endpoints.ORDER_COMMODITY) == [{'id': 100, 'count': 3}]


@pytest.mark.asyncio
async def test_clear_cart(fake_transport):
    transport = fake_transport(build_routes({('DELETE', ITEMS): ''}))
    await make_cart(transport).clear_cart(Session(auth_token='Bearer t'))
    assert len(transport.called('DELETE', ITEMS)) == 1


@pytest.mark.asyncio
async def test_clear_cart_noop_when_empty(fake_transport):
    transport = fake_transport({
        endpoints.COMMODITY_LISTS: {'user_id': 42},
        SUMMARY: {'basketProductsCount': 0},
    })
    await make_cart(transport).clear_cart(Session(auth_token='Bearer t'))
    assert not transport.called('DELETE', ITEMS)
