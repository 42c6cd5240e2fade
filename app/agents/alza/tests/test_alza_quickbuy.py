import json

import pytest

from app.agents.alza import endpoints
from app.agents.alza.errors import ConfigError, CouponRequired, HTTPError, OperationFailed, ValidationError
from app.agents.alza.models import PaymentStatus, QuickBuyResult, to_json
from app.agents.alza.quickbuy import (
    DRY_RUN_ORDER_ID,
    QUOTE_ONLY_ORDER_ID,
    PurchaseOrchestrator,
    QuickBuyConfig,
    build_order_options,
    require_coupon,
)

FULL = QuickBuyConfig(
    alzabox_id=1001,
    delivery_id=2002,
    payment_id='216',
    card_id='card-1',
    visitor_id='visitor-1',
    promo_codes=('SAVE10',),
)

SAVE_OK = {'d': {'TotalPrice': 0, 'AfterOrderPaymentId': 0,
                 'Data': {'TotalPriceDec': 49.9, 'AfterOrderPaymentId': 314}}}
SEND_OK = {'d': {'Code': '', 'OrderId': 'ORD-1', 'AfterOrderPaymentId': 0}}


# --- config ---

def test_dry_run_always_validates():
    QuickBuyConfig(dry_run=True).validate()


def test_quote_only_does_not_need_card_or_visitor():
    QuickBuyConfig(alzabox_id=1, delivery_id=2, payment_id='216', quote_only=True).validate()


def test_missing_card_is_reported_alone():
    config = QuickBuyConfig(alzabox_id=1, delivery_id=2, payment_id='216', visitor_id='v')
    with pytest.raises(ValidationError) as exc:
        config.validate()
    assert exc.value.missing == ['ALZA_QUICKBUY_CARD_ID']


def test_all_missing_fields_reported_together():
    with pytest.raises(ValidationError) as exc:
        QuickBuyConfig().validate()
    assert exc.value.missing == [
        'ALZA_QUICKBUY_ALZABOX_ID',
        'ALZA_QUICKBUY_DELIVERY_ID',
        'ALZA_QUICKBUY_PAYMENT_ID',
        'ALZA_QUICKBUY_CARD_ID',
        'ALZA_QUICKBUY_VISITOR_ID',
    ]


def test_with_defaults_explicit_wins_and_unset_inherits():
    explicit = QuickBuyConfig(alzabox_id=5, promo_codes=('A,B', 'A'))
    merged = explicit.with_defaults(FULL)

    assert merged.alzabox_id == 5
    assert merged.delivery_id == 2002
    assert merged.card_id == 'card-1'
    assert merged.promo_codes == ('A', 'B')


def test_with_defaults_inherits_and_normalizes_promo_codes():
    merged = QuickBuyConfig().with_defaults(QuickBuyConfig(promo_codes=(' X , Y ',)))
    assert merged.promo_codes == ('X', 'Y')


def test_from_env_file(tmp_path):
    env_file = tmp_path / 'quickbuy.env'
    env_file.write_text(
        "# stored defaults\n"
        "ALZA_QUICKBUY_ALZABOX_ID=1234\n"
        "ALZA_QUICKBUY_DELIVERY_ID=5678\n"
        "ALZA_QUICKBUY_PAYMENT_ID=216\n"
        "ALZA_QUICKBUY_CARD_ID=card-x\n"
        "ALZA_QUICKBUY_VISITOR_ID=visitor-x\n"
        "ALZA_QUICKBUY_ALZAPLUS=yes\n"
        "ALZA_QUICKBUY_COUPON=ONE, TWO\n"
    )
    config = QuickBuyConfig.from_env_file(env_file)

    assert config.alzabox_id == 1234
    assert config.delivery_id == 5678
    assert config.payment_id == '216'
    assert config.card_id == 'card-x'
    assert config.visitor_id == 'visitor-x'
    assert config.is_alza_plus is True
    assert config.promo_codes == ('ONE', 'TWO')


def test_from_env_file_missing_file_is_empty(tmp_path):
    assert QuickBuyConfig.from_env_file(tmp_path / 'absent.env') == QuickBuyConfig()


def test_from_env_file_invalid_int(tmp_path):
    env_file = tmp_path / 'quickbuy.env'
    env_file.write_text("ALZA_QUICKBUY_ALZABOX_ID=abc\n")
    with pytest.raises(ConfigError, match='invalid ALZA_QUICKBUY_ALZABOX_ID'):
        QuickBuyConfig.from_env_file(env_file)


def test_resolve_precedence_flags_env_file(tmp_path):
    env_file = tmp_path / 'quickbuy.env'
    env_file.write_text("ALZA_QUICKBUY_ALZABOX_ID=1\nALZA_QUICKBUY_DELIVERY_ID=2\nALZA_QUICKBUY_PAYMENT_ID=file\n")
    environ = {'ALZA_QUICKBUY_DELIVERY_ID': '20', 'ALZA_QUICKBUY_PAYMENT_ID': 'env'}

    config = QuickBuyConfig.resolve(QuickBuyConfig(payment_id='flag'), environ=environ, env_file=env_file)

    assert config.payment_id == 'flag'
    assert config.delivery_id == 20
    assert config.alzabox_id == 1


def test_require_coupon():
    with pytest.raises(CouponRequired):
        require_coupon(QuickBuyConfig(), no_coupon=False)
    require_coupon(QuickBuyConfig(), no_coupon=True)
    require_coupon(QuickBuyConfig(dry_run=True), no_coupon=False)
    require_coupon(QuickBuyConfig(promo_codes=('X',)), no_coupon=False)


def test_order_options_shape():
    options = build_order_options(555, 2, FULL)

    assert options['Items'] == [{'CommodityId': 555, 'Count': 2}]
    assert options['AlzaBoxId'] == 1001
    assert options['PrefferedCard'] == 'card-1'
    assert options['PromoCodes'] == ['SAVE10']
    assert options['IsLoggedIn'] is True
    assert options['DeliveryAddressId'] == -1
    assert options['TotalPriceDec'] == 0

    no_card = build_order_options(555, 1, QuickBuyConfig(alzabox_id=1))
    assert 'PrefferedCard' not in no_card


# --- orchestrator ---

@pytest.mark.asyncio
async def test_dry_run_makes_no_calls(fake_transport):
    transport = fake_transport({})
    result = await PurchaseOrchestrator(transport).quick_buy(1, 1, QuickBuyConfig(dry_run=True))

    assert result.order_id == DRY_RUN_ORDER_ID
    assert result.total_price == 0
    assert result.success is True
    assert result.payment_status == PaymentStatus.NOT_ATTEMPTED
    assert transport.calls == []


@pytest.mark.asyncio
async def test_quote_only_stops_after_save(fake_transport):
    transport = fake_transport({endpoints.FAST_ORDER_SAVE: {'d': {'TotalPrice': 19.9}}})
    config = QuickBuyConfig(alzabox_id=1, delivery_id=2, payment_id='216', quote_only=True)
    result = await PurchaseOrchestrator(transport).quick_buy(10, 1, config)

    assert result.order_id == QUOTE_ONLY_ORDER_ID
    assert result.total_price == 19.9
    assert not transport.called('POST', endpoints.FAST_ORDER_SEND)


@pytest.mark.asyncio
async def test_full_purchase_carries_values_between_steps(fake_transport):
    transport = fake_transport({
        endpoints.FAST_ORDER_SAVE: SAVE_OK,
        endpoints.FAST_ORDER_SEND: SEND_OK,
        endpoints.PAYMENT_REPEAT: {'status': 'ok'},
    })
    result = await PurchaseOrchestrator(transport).quick_buy(10, 1, FULL)

    assert result.order_id == 'ORD-1'
    assert result.total_price == 49.9
    assert result.success is True
    assert result.payment_status == PaymentStatus.CONFIRMED

    send_options = transport.posted_json(endpoints.FAST_ORDER_SEND)[0]['options']
    assert send_options['TotalPriceDec'] == 49.9
    assert send_options['IsAddressRequired'] is True

    payment = transport.posted_json(endpoints.PAYMENT_REPEAT)[0]
    assert payment['orderId'] == 'ORD-1'
    assert payment['afterOrderPaymentId'] == 314
    assert payment['cardId'] == 'card-1'
    assert payment['deviceFingerprint'] == 'visitor-1'
    assert payment['browser']['language'] == 'sk-SK'
    assert payment['fastOrder'] is True

    order = [call[1] for call in transport.calls]
    assert order == [endpoints.FAST_ORDER_SAVE, endpoints.FAST_ORDER_SEND, endpoints.PAYMENT_REPEAT]


@pytest.mark.asyncio
async def test_send_code_and_payment_id_take_priority(fake_transport):
    transport = fake_transport({
        endpoints.FAST_ORDER_SAVE: {'d': {'TotalPrice': 10, 'AfterOrderPaymentId': 1}},
        endpoints.FAST_ORDER_SEND: {'d': {'Code': 'CODE-9', 'OrderId': 'ORD-9', 'AfterOrderPaymentId': 2}},
        endpoints.PAYMENT_REPEAT: {},
    })
    result = await PurchaseOrchestrator(transport).quick_buy(10, 1, FULL)

    assert result.order_id == 'CODE-9'
    assert transport.posted_json(endpoints.PAYMENT_REPEAT)[0]['afterOrderPaymentId'] == 2


@pytest.mark.asyncio
async def test_payment_failure_still_reports_success(fake_transport):
    transport = fake_transport({
        endpoints.FAST_ORDER_SAVE: SAVE_OK,
        endpoints.FAST_ORDER_SEND: SEND_OK,
        endpoints.PAYMENT_REPEAT: HTTPError(500, endpoints.PAYMENT_REPEAT, 'gateway error'),
    })
    result = await PurchaseOrchestrator(transport).quick_buy(10, 1, FULL)

    assert result.success is True
    assert result.order_id == 'ORD-1'
    assert result.payment_status == PaymentStatus.UNCERTAIN
    assert to_json(result)['paymentStatus'] == 'uncertain'


@pytest.mark.asyncio
async def test_save_error_message_fails_fast(fake_transport):
    transport = fake_transport({endpoints.FAST_ORDER_SAVE: {'d': {'ErrorMessage': 'Invalid coupon'}}})
    with pytest.raises(OperationFailed, match='FastOrderSave error: Invalid coupon'):
        await PurchaseOrchestrator(transport).quick_buy(10, 1, FULL)
    assert not transport.called('POST', endpoints.FAST_ORDER_SEND)


@pytest.mark.asyncio
async def test_send_error_message_fails(fake_transport):
    transport = fake_transport({
        endpoints.FAST_ORDER_SAVE: SAVE_OK,
        endpoints.FAST_ORDER_SEND: {'d': {'ErrorMessage': 'Out of stock'}},
    })
    with pytest.raises(OperationFailed, match='FastOrderSend error: Out of stock'):
        await PurchaseOrchestrator(transport).quick_buy(10, 1, FULL)
    assert not transport.called('POST', endpoints.PAYMENT_REPEAT)


@pytest.mark.asyncio
async def test_invalid_config_makes_no_calls(fake_transport):
    transport = fake_transport({})
    with pytest.raises(ValidationError):
        await PurchaseOrchestrator(transport).quick_buy(10, 1, QuickBuyConfig(alzabox_id=1))
    assert transport.calls == []


def test_result_is_json_serializable():
    result = QuickBuyResult(order_id='X', total_price=1.5, success=True, message='ok')
    assert json.loads(json.dumps(to_json(result))) == {
        'orderId': 'X',
        'totalPrice': 1.5,
        'success': True,
        'message': 'ok',
        'paymentStatus': 'not_attempted',
    }
