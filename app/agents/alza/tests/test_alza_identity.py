import pytest

from app.agents.alza import endpoints
from app.agents.alza.errors import HTTPError, MalformedBasketLink, MissingBasketLink, TokenExpired
from app.agents.alza.identity import IdentityResolver, basket_from_summary, extract_basket_id
from app.agents.alza.models import Session

SUMMARY = endpoints.USER_STATUS_SUMMARY.format(user_id='42')


def test_extract_basket_id():
    assert extract_basket_id('https://www.alza.sk/api/basket/1538710316/preview') == '1538710316'
    with pytest.raises(MalformedBasketLink):
        extract_basket_id('https://www.alza.sk/api/cart/1/preview')
    with pytest.raises(MalformedBasketLink):
        extract_basket_id('https://www.alza.sk/api/basket/')


def test_basket_from_summary_empty_cart_is_not_an_error():
    assert basket_from_summary({'basketPreviewAction': {'href': ''}, 'basketProductsCount': 0}) == ''
    assert basket_from_summary({}) == ''


def test_basket_from_summary_missing_link_with_items():
    with pytest.raises(MissingBasketLink) as exc:
        basket_from_summary({'basketProductsCount': 3})
    assert exc.value.count == 3


@pytest.mark.asyncio
async def test_resolve_identity_caches_user_id(fake_transport):
    transport = fake_transport({endpoints.COMMODITY_LISTS: {'user_id': 42, 'user_name': 'Jana'}})
    resolver = IdentityResolver(transport)
    session = Session(auth_token='Bearer t')

    assert await resolver.resolve_identity(session) == '42'
    assert await resolver.resolve_identity(session) == '42'
    assert session.user_id == '42'
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_resolve_identity_non_positive_user_is_expired(fake_transport):
    transport = fake_transport({endpoints.COMMODITY_LISTS: {'user_id': 0}})
    resolver = IdentityResolver(transport)

    with pytest.raises(TokenExpired, match='token expired'):
        await resolver.resolve_identity(Session(auth_token='Bearer t'))


@pytest.mark.asyncio
async def test_resolve_basket(fake_transport):
    transport = fake_transport({
        endpoints.COMMODITY_LISTS: {'user_id': 42},
        SUMMARY: {'basketPreviewAction': {'href': 'https://www.alza.sk/api/basket/777/preview'}, 'basketProductsCount': 1},
    })
    resolver = IdentityResolver(transport)
    session = Session(auth_token='Bearer t')

    assert await resolver.resolve_basket(session) == '777'
    assert session.basket_id == '777'
    assert await resolver.resolve_basket(session) == '777'
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_get_user_status_merges_summary(fake_transport):
    transport = fake_transport({
        endpoints.COMMODITY_LISTS: {'user_id': 42, 'user_name': 'Jana', 'basket_cnt': 1},
        SUMMARY: {
            'basketPreviewAction': {'href': '/api/basket/9/preview'},
            'basketProductsCount': 2,
            'ordersStatusInfo': {'activeOrdersCount': 1, 'overdueOrdersCount': 2},
            'isAlzaPlus': True,
        },
    })
    status = await IdentityResolver(transport).get_user_status(Session(auth_token='Bearer t'))

    assert status.user_id == 42
    assert status.user_name == 'Jana'
    assert status.basket_id == '9'
    assert status.basket_count == 2
    assert status.orders_count == 3
    assert status.is_premium is True


@pytest.mark.asyncio
async def test_get_user_status_falls_back_when_summary_fails(fake_transport):
    transport = fake_transport({
        endpoints.COMMODITY_LISTS: {'user_id': 42, 'user_name': 'Jana', 'basket_cnt': 4},
        SUMMARY: HTTPError(500, SUMMARY, 'down'),
    })
    status = await IdentityResolver(transport).get_user_status(Session(auth_token='Bearer t'))

    assert status.user_id == 42
    assert status.basket_count == 4
    assert status.basket_id == ''
    assert status.orders_count == 0


@pytest.mark.asyncio
async def test_validate_token_rejects_anonymous(fake_transport):
    transport = fake_transport({endpoints.COMMODITY_LISTS: {'user_id': -1}})
    with pytest.raises(TokenExpired):
        await IdentityResolver(transport).validate_token(Session(auth_token='Bearer t'))
