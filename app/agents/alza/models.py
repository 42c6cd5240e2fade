"""Domain records returned by the Alza client."""

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Iterator, List, Optional


@dataclass
class Session:
    """
    Per-run identity state.

    ``user_id`` and ``basket_id`` start empty and are filled in lazily by the
    identity and cart resolvers. An empty ``basket_id`` after resolution means
    the cart is empty.
    """
    auth_token: str
    user_id: str = ''
    basket_id: str = ''


@dataclass
class UserStatus:
    user_id: int
    user_name: str = ''
    basket_id: str = ''
    basket_count: int = 0
    orders_count: int = 0
    is_premium: bool = False

    JSON_KEYS = {'basket_count': 'basketItemsCount', 'is_premium': 'isAlzaPlus'}


@dataclass
class CartItem:
    product_id: int
    count: int
    basket_item_id: int = 0
    name: str = ''
    price: str = ''
    image_url: str = ''
    url: str = ''

    @property
    def removable(self) -> bool:
        return self.basket_item_id != 0


@dataclass
class Cart:
    """Reconciled cart. ``preview_loaded`` is False when only basic fields are known."""
    items: List[CartItem] = field(default_factory=list)
    preview_loaded: bool = True

    def __iter__(self) -> Iterator[CartItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def find(self, product_id: int) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None


@dataclass
class SearchResult:
    id: int
    name: str = ''
    code: str = ''
    price: float = 0.0
    price_text: str = ''
    availability: str = ''
    image_url: str = ''
    url: str = ''

    JSON_KEYS = {'price_text': 'priceStr'}


@dataclass
class Order:
    id: str
    date: str = ''
    status: str = ''
    total_price: str = ''

    JSON_KEYS = {'id': 'orderId', 'date': 'orderDate'}


@dataclass
class CommodityList:
    id: int
    name: str = ''
    item_count: int = 0
    type: int = 0
    can_modify: bool = False

    TYPE_NAMES = {
        0: 'custom',
        1: 'favorites',
        9: 'frequent',
        14: 'buy-later',
        15: 'pc-config',
    }

    @property
    def type_name(self) -> str:
        return self.TYPE_NAMES.get(self.type, f"type-{self.type}")


@dataclass
class ListItem:
    navigation_url: str
    count: int = 0
    price: str = ''


@dataclass
class ProductParameter:
    name: str
    values: List[str] = field(default_factory=list)


@dataclass
class ProductParameterGroup:
    name: str
    parameters: List[ProductParameter] = field(default_factory=list)


@dataclass
class ProductVariant:
    id: int
    name: str = ''
    image_url: str = ''
    is_selected: bool = False


@dataclass
class ProductPromoPrice:
    name: str
    price: str = ''
    code: str = ''
    unformatted_price: float = 0.0


@dataclass
class ProductDetail:
    id: int
    name: str = ''
    price: str = ''
    price_without_vat: str = ''
    price_no_currency: float = 0.0
    discount_percent: Optional[int] = None
    cash_back_price_label: str = ''
    cash_back_price: str = ''
    discount_description: str = ''
    availability: str = ''
    availability_detail: str = ''
    expected_stock_date: str = ''
    description: str = ''
    parameters: List[ProductParameterGroup] = field(default_factory=list)
    variants: List[ProductVariant] = field(default_factory=list)
    promo_prices: List[ProductPromoPrice] = field(default_factory=list)


class PaymentStatus(str, Enum):
    """Outcome of the final payment call of a quickbuy."""
    NOT_ATTEMPTED = "not_attempted"
    CONFIRMED = "confirmed"
    UNCERTAIN = "uncertain"


@dataclass
class QuickBuyResult:
    order_id: str
    total_price: float
    success: bool
    message: str
    payment_status: PaymentStatus = PaymentStatus.NOT_ATTEMPTED


@dataclass
class CookieResult:
    cookie_header: str
    cookie_count: int


def camel_case(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


def to_json(value: Any) -> Any:
    """
    JSON-ready form of a record, shared by the CLI and the HTTP facade.

    Dataclass fields become camelCase keys. A record can rename fields
    through a ``JSON_KEYS`` class attribute; enums become their values.
    """
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        renames = getattr(value, 'JSON_KEYS', {})
        return {
            renames.get(f.name, camel_case(f.name)): to_json(getattr(value, f.name))
            for f in fields(value)
        }
    if isinstance(value, dict):
        return {key: to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    return value
