# app/agents/alza/product.py
import logging
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from app.agents.alza import endpoints
from app.agents.alza.errors import AlzaError
from app.agents.alza.helpers import as_float, as_int, as_str, decode_object, first_value
from app.agents.alza.identity import IdentityResolver
from app.agents.alza.models import (
    ProductDetail,
    ProductParameter,
    ProductParameterGroup,
    ProductPromoPrice,
    ProductVariant,
    Session,
)
from app.agents.alza.transport import Transport

logger = logging.getLogger(__name__)

DESCRIPTION_TAGS = ['h1', 'h2', 'h3', 'p', 'li']
SKIPPED_TAGS = ['script', 'style', 'noscript']


def _non_empty(value: Any) -> bool:
    return value != ''


def _positive(value: Any) -> bool:
    return as_float(value) > 0


def pick_price(data: Dict) -> str:
    return as_str(first_value(data, [
        ('priceInfoV3', 'mainPriceTag', 'primaryPrice'),
        ('priceInfoV2', 'priceWithVat'),
        ('price',),
    ], accept=_non_empty, default=''))


def pick_price_without_vat(data: Dict) -> str:
    return as_str(first_value(data, [
        ('priceInfoV3', 'mainPriceTag', 'secondaryPrice'),
        ('priceInfoV2', 'priceWithoutVat'),
    ], accept=_non_empty, default=''))


def pick_price_no_currency(data: Dict) -> float:
    return as_float(first_value(data, [
        ('priceInfoV3', 'mainPriceTag', 'primaryPriceNoCurrency'),
        ('priceInfoV2', 'priceNoCurrency'),
        ('gaPrice',),
    ], accept=_positive, default=0.0))


def pick_promo_prices(data: Dict) -> List[ProductPromoPrice]:
    raw_promos = first_value(data, [
        ('priceInfoV3', 'promoPrices'),
        ('priceInfoV2', 'promoPrices'),
    ], default=[])

    promos = []
    for raw in raw_promos:
        promos.append(ProductPromoPrice(
            name=as_str(raw.get('name')),
            price=as_str(raw.get('primaryPrice')) or as_str(raw.get('formattedPrice')),
            code=as_str(raw.get('discountCouponCode')),
            unformatted_price=max(as_float(raw.get('unformattedPrice')), 0.0),
        ))
    return promos


def map_parameters(groups: Optional[List[Dict]]) -> List[ProductParameterGroup]:
    out = []
    for raw_group in groups or []:
        name = as_str(raw_group.get('name'))
        if not name:
            continue
        group = ProductParameterGroup(name=name)
        for raw_param in raw_group.get('params') or []:
            param_name = as_str(raw_param.get('name'))
            if not param_name:
                continue
            values = [as_str(v.get('desc')) for v in raw_param.get('values') or [] if v.get('desc')]
            if values:
                group.parameters.append(ProductParameter(name=param_name, values=values))
        if group.parameters:
            out.append(group)
    return out


def map_variants(info: Optional[Dict]) -> List[ProductVariant]:
    """Variants arrive as either ``Type/ProductVariants`` or ``type/productVariants``."""
    if not info:
        return []
    raw_variants = first_value(info, [('ProductVariants',), ('productVariants',)], default=[])
    return [
        ProductVariant(
            id=as_int(first_value(raw, [('Id',), ('id',)], accept=lambda v: True, default=0)),
            name=as_str(first_value(raw, [('Name',), ('name',)], default='')),
            image_url=as_str(first_value(raw, [('ImageUrl',), ('imageUrl',)], default='')),
            is_selected=bool(first_value(raw, [('IsSelected',), ('isSelected',)], accept=lambda v: True, default=False)),
        )
        for raw in raw_variants
    ]


def looks_like_cookie_notice(text: str) -> bool:
    return 'cookie' in text.lower()


def extract_description(html: str) -> str:
    """Readable text of a description page: headings, paragraphs and list items."""
    if not html:
        return ''
    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup(SKIPPED_TAGS):
        tag.decompose()

    parts = []
    for element in soup.find_all(DESCRIPTION_TAGS):
        # Nested matches (p inside li) are covered by the outer element
        if element.find_parent(DESCRIPTION_TAGS):
            continue
        text = ' '.join(element.get_text(' ').split())
        if text and not looks_like_cookie_notice(text):
            parts.append(text)
    return '\n'.join(parts)


def normalize_external_url(value: str) -> str:
    value = value.strip()
    if value.startswith('//'):
        return 'https:' + value
    return value


class ProductCatalog:
    """Product detail lookups."""

    def __init__(self, transport: Transport, identity: IdentityResolver):
        self.transport = transport
        self.identity = identity

    async def get_product(self, session: Session, product_id: int) -> ProductDetail:
        data = await self.transport.get(endpoints.PRODUCT_DETAIL.format(product_id=product_id))
        doc = decode_object(data, 'product')
        raw = doc.get('data') or {}

        sale = raw.get('salePercentage')
        detail = ProductDetail(
            id=product_id,
            name=as_str(raw.get('name')),
            price=pick_price(raw),
            price_without_vat=pick_price_without_vat(raw),
            price_no_currency=pick_price_no_currency(raw),
            discount_percent=as_int(sale) if sale is not None else None,
            cash_back_price_label=as_str(raw.get('cashBackPriceLabel')),
            cash_back_price=as_str(raw.get('cashBackPrice')),
            discount_description=as_str(raw.get('descriptionBeforeDiscount')),
            parameters=map_parameters(raw.get('parameterGroups')),
            variants=map_variants(raw.get('productVariantsInfo')),
            promo_prices=pick_promo_prices(raw),
        )

        desc_url = as_str(raw.get('descPageUrl'))
        if desc_url:
            try:
                html = await self.transport.get(normalize_external_url(desc_url))
                detail.description = extract_description(html.decode('utf-8', errors='replace'))
            except AlzaError as e:
                logger.debug(f"Description fetch failed: {e}")

        try:
            availability = await self._availability(session, product_id)
        except AlzaError as e:
            logger.debug(f"Availability fetch failed: {e}")
        else:
            detail.availability = as_str(availability.get('title'))
            detail.availability_detail = as_str(availability.get('description'))
            detail.expected_stock_date = as_str(availability.get('expectedStockDate'))

        return detail

    async def _availability(self, session: Session, product_id: int) -> Dict:
        if not session.user_id:
            try:
                await self.identity.resolve_identity(session)
            except AlzaError as e:
                logger.debug(f"Anonymous availability lookup: {e}")

        if session.user_id:
            endpoint = endpoints.PRODUCT_AVAILABILITY_USER.format(user_id=session.user_id, product_id=product_id)
        else:
            endpoint = endpoints.PRODUCT_AVAILABILITY_ANON.format(product_id=product_id)

        data = await self.transport.get(endpoint)
        return decode_object(data, 'availability')
