# Alza.sk private API endpoints. Relative paths are resolved against BASE_URL.

BASE_URL = "https://www.alza.sk"
WEBAPI_URL = "https://webapi.alza.cz"

ACCESS_TOKEN = "/api/identity/v1/accesstoken"

COMMODITY_LISTS = "/services/restservice.svc/v1/getCommodityLists"
COMMODITY_LIST_ITEMS = "/services/restservice.svc/v1/getCommodityLists/{list_id}"
COMMODITY_LIST_CREATE = "/services/restservice.svc/v1/createCommodityList"
COMMODITY_LIST_DELETE = "/services/restservice.svc/v1/deleteCommodityFromList"
COMMODITY_LIST_ADD_ITEM = "/Services/EShopService.svc/AddCommodityToShoppingList"
USER_COMMODITY_LIST_ITEMS = "/api/v1/users/{user_id}/commodityList/items"

USER_STATUS_SUMMARY = "/api/users/{user_id}/statusSummary"

CART_ITEMS = "/api/v1/anonymous/baskets/{basket_id}/checkout/cart/items?country=SK"
CART_PREVIEW = "/api/basket/{basket_id}/preview"

ORDER_COMMODITY = "/Services/EShopService.svc/OrderCommodity"
ORDER_UPDATE = "/Services/EShopService.svc/OrderUpdate?country=SK"

SEARCH_SERVICE = "/Services/RestService.svc/v5/search"
WHISPER_ANON = WEBAPI_URL + "/api/anonymous/search/whisperer/v1/whisper"
WHISPER_USER = WEBAPI_URL + "/api/users/{user_id}/search/whisperer/v1/whisper"

ORDERS_ARCHIVE = "/api/users/{user_id}/v1/orders/archive?offset=0&limit={limit}&hideCancelledOrders=false"
ORDERS_ACTIVE = "/api/users/{user_id}/v1/orders/active"

PRODUCT_DETAIL = "/api/router/legacy/catalog/product/{product_id}?country=SK&electronicContentOnly=False"
PRODUCT_AVAILABILITY_USER = "/api/productAvailability/v1/users/{user_id}/products/{product_id}?country=SK"
PRODUCT_AVAILABILITY_ANON = "/api/productAvailability/v1/anonymous/products/{product_id}?country=SK"

FAST_ORDER_SAVE = "/Services/EShopService.svc/FastOrderSave"
FAST_ORDER_SEND = "/Services/EShopService.svc/FastOrderSend"
PAYMENT_REPEAT = "/api/payment/v3/recurrent"


def resolve_url(endpoint: str) -> str:
    """Return an absolute URL for an endpoint path."""
    if endpoint.startswith("http://") or endpoint.startswith("https://"):
        return endpoint
    return BASE_URL + endpoint
