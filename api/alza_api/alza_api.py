from typing import Awaitable, Callable, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.agents.alza.client import AlzaClient
from app.agents.alza.errors import (
    AlzaError,
    AuthRequired,
    ConfigError,
    CouponRequired,
    HTTPError,
    ListNotFound,
    ProductNotInCart,
    ValidationError,
)
from app.agents.alza.models import to_json
from app.agents.alza.quickbuy import QuickBuyConfig, require_coupon
from app.agents.alza.recovery import AuthRecovery
from app.agents.alza.utills.logger import setup_logger

logger = setup_logger('api.alza_api')
router = APIRouter()

Runner = Callable[[Callable[[AlzaClient], Awaitable]], Awaitable]


# ===== Models =====
class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    limit: int = Field(default=10, ge=1, le=50)


class CartAddRequest(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(default=1, ge=1)


class CartRemoveRequest(BaseModel):
    product_id: int = Field(..., gt=0)


class QuickBuyRequest(BaseModel):
    """A real order can only be placed from the CLI, behind its countdown."""
    product_id: int = Field(..., gt=0)
    quantity: int = Field(default=1, ge=1)
    mode: Literal['dry_run', 'quote'] = 'quote'
    alzabox_id: Optional[int] = None
    delivery_id: Optional[int] = None
    payment_id: Optional[str] = None
    is_alza_plus: bool = False
    coupons: List[str] = Field(default_factory=list)
    no_coupon: bool = False


# ===== Dependencies =====
async def run_with_recovery(operation):
    return await AuthRecovery().run(AlzaClient.create, operation)


def get_runner() -> Runner:
    return run_with_recovery


def to_http_exception(err: AlzaError) -> HTTPException:
    if isinstance(err, AuthRequired):
        return HTTPException(status_code=401, detail=str(err))
    if isinstance(err, (ValidationError, CouponRequired, ConfigError)):
        return HTTPException(status_code=422, detail=str(err))
    if isinstance(err, (ProductNotInCart, ListNotFound)):
        return HTTPException(status_code=404, detail=str(err))
    if isinstance(err, HTTPError):
        return HTTPException(status_code=502, detail=str(err))
    return HTTPException(status_code=500, detail=str(err))


async def call(runner: Runner, operation):
    try:
        return await runner(operation)
    except AlzaError as e:
        logger.error(f"Alza request failed: {e}")
        raise to_http_exception(e)


# ===== Endpoints =====

@router.get("/whoami")
async def whoami(runner: Runner = Depends(get_runner)):
    status = await call(runner, lambda client: client.whoami())
    return {"status": "success", "user": to_json(status)}


@router.post("/search")
async def search(request: SearchRequest, runner: Runner = Depends(get_runner)):
    results = await call(runner, lambda client: client.search(request.query, request.limit))
    return {"status": "success", "count": len(results), "results": to_json(results)}


@router.get("/product/{product_id}")
async def product(product_id: int, runner: Runner = Depends(get_runner)):
    detail = await call(runner, lambda client: client.get_product(product_id))
    return {"status": "success", "product": to_json(detail)}


@router.get("/cart")
async def get_cart(runner: Runner = Depends(get_runner)):
    cart = await call(runner, lambda client: client.get_cart())
    return {"status": "success", **to_json(cart)}


@router.post("/cart/add")
async def add_to_cart(request: CartAddRequest, runner: Runner = Depends(get_runner)):
    await call(runner, lambda client: client.add_to_cart(request.product_id, request.quantity))
    return {"status": "success", "message": f"Added product {request.product_id} to cart (qty: {request.quantity})"}


@router.post("/cart/remove")
async def remove_from_cart(request: CartRemoveRequest, runner: Runner = Depends(get_runner)):
    await call(runner, lambda client: client.remove_from_cart(request.product_id))
    return {"status": "success", "message": f"Removed product {request.product_id} from cart"}


@router.delete("/cart")
async def clear_cart(runner: Runner = Depends(get_runner)):
    await call(runner, lambda client: client.clear_cart())
    return {"status": "success", "message": "Cart cleared"}


@router.get("/orders")
async def orders(limit: int = 10, runner: Runner = Depends(get_runner)):
    found, total = await call(runner, lambda client: client.get_orders(limit))
    return {"status": "success", "total": total, "orders": to_json(found)}


@router.post("/quickbuy")
async def quickbuy(request: QuickBuyRequest, runner: Runner = Depends(get_runner)):
    explicit = QuickBuyConfig(
        alzabox_id=request.alzabox_id or 0,
        delivery_id=request.delivery_id or 0,
        payment_id=request.payment_id or '',
        is_alza_plus=request.is_alza_plus,
        dry_run=request.mode == 'dry_run',
        quote_only=request.mode == 'quote',
        promo_codes=tuple(request.coupons),
    )
    try:
        config = QuickBuyConfig.resolve(explicit)
        require_coupon(config, request.no_coupon)
        config.validate()
    except AlzaError as e:
        raise to_http_exception(e)

    result = await call(runner, lambda client: client.quick_buy(request.product_id, request.quantity, config))
    return {"status": "success", "result": to_json(result)}
