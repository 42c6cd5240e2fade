# app/agents/alza/quickbuy.py
import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from app.agents.alza import endpoints
from app.agents.alza.config import Config, env_bool, read_env_file
from app.agents.alza.errors import AlzaError, ConfigError, CouponRequired, OperationFailed, ValidationError
from app.agents.alza.helpers import as_float, as_int, as_str, decode_object, dig, normalize_promo_codes
from app.agents.alza.models import PaymentStatus, QuickBuyResult
from app.agents.alza.transport import Transport, user_agent

logger = logging.getLogger(__name__)

DRY_RUN_ORDER_ID = "DRY-RUN-000000"
QUOTE_ONLY_ORDER_ID = "QUOTE-ONLY"

ENV_ALZABOX_ID = 'ALZA_QUICKBUY_ALZABOX_ID'
ENV_DELIVERY_ID = 'ALZA_QUICKBUY_DELIVERY_ID'
ENV_PAYMENT_ID = 'ALZA_QUICKBUY_PAYMENT_ID'
ENV_CARD_ID = 'ALZA_QUICKBUY_CARD_ID'
ENV_VISITOR_ID = 'ALZA_QUICKBUY_VISITOR_ID'
ENV_ALZAPLUS = 'ALZA_QUICKBUY_ALZAPLUS'
ENV_COUPON = 'ALZA_QUICKBUY_COUPON'

REQUIRED_ENV_HELP = (
    "Set required flags or env vars: "
    f"{ENV_ALZABOX_ID}, {ENV_DELIVERY_ID}, {ENV_PAYMENT_ID}, {ENV_CARD_ID}, {ENV_VISITOR_ID}"
)


@dataclass(frozen=True)
class QuickBuyConfig:
    """
    Delivery and payment selection for a fast order.

    Zero and empty values mean "unset"; ``with_defaults`` fills them from a
    stored config.
    """
    alzabox_id: int = 0
    delivery_id: int = 0
    payment_id: str = ''       # e.g. "216" = card online
    card_id: str = ''          # saved card reference
    visitor_id: str = ''       # device fingerprint
    is_alza_plus: bool = False
    dry_run: bool = False
    quote_only: bool = False   # FastOrderSave only, report the price
    promo_codes: Tuple[str, ...] = ()

    def missing_fields(self):
        if self.dry_run:
            return []
        missing = []
        if self.alzabox_id == 0:
            missing.append(ENV_ALZABOX_ID)
        if self.delivery_id == 0:
            missing.append(ENV_DELIVERY_ID)
        if not self.payment_id:
            missing.append(ENV_PAYMENT_ID)
        if not self.quote_only:
            if not self.card_id:
                missing.append(ENV_CARD_ID)
            if not self.visitor_id:
                missing.append(ENV_VISITOR_ID)
        return missing

    def validate(self):
        """
        Raises:
            ValidationError: listing every missing field at once
        """
        missing = self.missing_fields()
        if missing:
            raise ValidationError(missing)

    def with_defaults(self, defaults: 'QuickBuyConfig') -> 'QuickBuyConfig':
        """Explicit values win; unset ones inherit ``defaults``. Promo codes end normalized."""
        return replace(
            self,
            alzabox_id=self.alzabox_id or defaults.alzabox_id,
            delivery_id=self.delivery_id or defaults.delivery_id,
            payment_id=self.payment_id or defaults.payment_id,
            card_id=self.card_id or defaults.card_id,
            visitor_id=self.visitor_id or defaults.visitor_id,
            is_alza_plus=self.is_alza_plus or defaults.is_alza_plus,
            promo_codes=tuple(normalize_promo_codes(self.promo_codes or defaults.promo_codes)),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, str], source: str = 'environment') -> 'QuickBuyConfig':
        """
        Build a config from ``ALZA_QUICKBUY_*`` keys. Absent keys stay unset.

        Raises:
            ConfigError: a numeric ID is not an integer
        """
        def parse_int(key: str) -> int:
            value = (data.get(key) or '').strip()
            if not value:
                return 0
            try:
                return int(value)
            except ValueError:
                raise ConfigError(f"invalid {key} in {source}")

        coupon = data.get(ENV_COUPON) or ''
        return cls(
            alzabox_id=parse_int(ENV_ALZABOX_ID),
            delivery_id=parse_int(ENV_DELIVERY_ID),
            payment_id=(data.get(ENV_PAYMENT_ID) or '').strip(),
            card_id=(data.get(ENV_CARD_ID) or '').strip(),
            visitor_id=(data.get(ENV_VISITOR_ID) or '').strip(),
            is_alza_plus=env_bool(data.get(ENV_ALZAPLUS)),
            promo_codes=tuple(normalize_promo_codes([coupon])),
        )

    @classmethod
    def from_env_file(cls, path: Optional[Path] = None) -> 'QuickBuyConfig':
        """Stored defaults from quickbuy.env. A missing file yields an empty config."""
        path = path or Config.quickbuy_env_path()
        return cls.from_mapping(read_env_file(path), source=str(path))

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> 'QuickBuyConfig':
        return cls.from_mapping(os.environ if environ is None else environ)

    @classmethod
    def resolve(
        cls,
        explicit: 'QuickBuyConfig',
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[Path] = None,
    ) -> 'QuickBuyConfig':
        """Flags, then process environment, then quickbuy.env."""
        return (
            explicit
            .with_defaults(cls.from_environment(environ))
            .with_defaults(cls.from_env_file(env_file))
        )


def build_order_options(product_id: int, quantity: int, config: QuickBuyConfig) -> Dict:
    """Options object shared by FastOrderSave and FastOrderSend."""
    options = {
        'Items': [{'CommodityId': product_id, 'Count': quantity}],
        'AlzaBoxId': config.alzabox_id,
        'DeliveryId': config.delivery_id,
        'PaymentId': config.payment_id,
        'IsAlzaPlus': config.is_alza_plus,
        'IsLoggedIn': True,
        'Source': 'Unknown',
        'IsDelayedPayment': False,
        'wasDeliveryPaymentChanged': True,
        'ShowAlert': False,
        'DeliveryAddressId': -1,
        'IsAddressRequired': False,
        'IsTretinka': False,
        'IsVirtual': False,
        'NeedAddress': False,
        'ShowPaymentCards': True,
        'IsBusinessCardSelected': False,
        'AddressId': -1,
        'PromoCodes': list(config.promo_codes) or None,
        'selectedPayment': None,
        'Step': None,
        'IsDialogVisible': False,
        'SendCallback': None,
        'Note': None,
        'SelectedPayment': None,
        'AlzaPremium': False,
        'TotalPriceDec': 0,
    }
    # Field name is misspelled on the wire
    if config.card_id:
        options['PrefferedCard'] = config.card_id
    return options


def build_payment_body(order_id: str, after_order_payment_id: int, config: QuickBuyConfig) -> Dict:
    return {
        'browser': {
            'screenWidth': 1800,
            'screenHeight': 1169,
            'colorDepth': 30,
            'userAgent': user_agent(),
            'timeZoneOffset': -60,
            'language': 'sk-SK',
            'javaEnabled': False,
            'deviceFingerprint': config.visitor_id,
        },
        'cardId': config.card_id,
        'fastOrder': True,
        'orderId': order_id,
        'afterOrderPaymentId': after_order_payment_id,
        'deviceFingerprint': config.visitor_id,
    }


class PurchaseOrchestrator:
    """
    Fast checkout of a single product: save (quote), send (commit), pay.

    Only the payment step absorbs errors. By then the order exists, so the
    result reports success with ``payment_status=UNCERTAIN`` and the caller
    should confirm through the order history.
    """

    def __init__(self, transport: Transport):
        self.transport = transport

    async def quick_buy(self, product_id: int, quantity: int, config: QuickBuyConfig) -> QuickBuyResult:
        config.validate()

        if config.dry_run:
            return QuickBuyResult(
                order_id=DRY_RUN_ORDER_ID,
                total_price=0.0,
                success=True,
                message="DRY RUN - no order was created",
            )

        options = build_order_options(product_id, quantity, config)

        logger.debug("Step 1: FastOrderSave")
        total_price, after_order_payment_id = await self._save(options)

        if config.quote_only:
            return QuickBuyResult(
                order_id=QUOTE_ONLY_ORDER_ID,
                total_price=total_price,
                success=True,
                message="QUOTE ONLY - FastOrderSend not executed",
            )

        options = dict(options, TotalPriceDec=total_price, IsAddressRequired=True)

        logger.debug("Step 2: FastOrderSend")
        order_id, send_payment_id = await self._send(options)
        after_order_payment_id = send_payment_id or after_order_payment_id

        logger.debug("Step 3: payment")
        payment_status = await self._pay(order_id, after_order_payment_id, config)

        return QuickBuyResult(
            order_id=order_id,
            total_price=total_price,
            success=True,
            message=f"Order #{order_id} created",
            payment_status=payment_status,
        )

    async def _save(self, options: Dict) -> Tuple[float, int]:
        data = await self.transport.post(endpoints.FAST_ORDER_SAVE, json.dumps({'options': options}))
        d = decode_object(data, 'FastOrderSave response').get('d') or {}

        error_message = as_str(d.get('ErrorMessage'))
        if error_message:
            raise OperationFailed('FastOrderSave', error_message)

        total_price = as_float(d.get('TotalPrice'))
        if total_price == 0:
            total_price = as_float(dig(d, ('Data', 'TotalPriceDec')))

        after_order_payment_id = as_int(d.get('AfterOrderPaymentId'))
        if after_order_payment_id == 0:
            after_order_payment_id = as_int(dig(d, ('Data', 'AfterOrderPaymentId')))

        return total_price, after_order_payment_id

    async def _send(self, options: Dict) -> Tuple[str, int]:
        data = await self.transport.post(endpoints.FAST_ORDER_SEND, json.dumps({'options': options}))
        d = decode_object(data, 'FastOrderSend response').get('d') or {}

        error_message = as_str(d.get('ErrorMessage'))
        if error_message:
            raise OperationFailed('FastOrderSend', error_message)

        # Order number lives in "Code"
        order_id = as_str(d.get('Code')) or as_str(d.get('OrderId'))
        return order_id, as_int(d.get('AfterOrderPaymentId'))

    async def _pay(self, order_id: str, after_order_payment_id: int, config: QuickBuyConfig) -> PaymentStatus:
        body = build_payment_body(order_id, after_order_payment_id, config)
        try:
            await self.transport.post(endpoints.PAYMENT_REPEAT, json.dumps(body))
        except AlzaError as e:
            logger.debug(f"Payment request returned error (may still succeed): {e}")
            return PaymentStatus.UNCERTAIN
        return PaymentStatus.CONFIRMED


def require_coupon(config: QuickBuyConfig, no_coupon: bool):
    """A real purchase or quote needs a promo code unless explicitly waived."""
    if not config.promo_codes and not no_coupon and not config.dry_run:
        raise CouponRequired("coupon is required\nUse --coupon <CODE> or --no-coupon to proceed without discount")
