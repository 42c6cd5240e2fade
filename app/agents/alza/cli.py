"""Command-line interface for the Alza.sk client."""

import argparse
import asyncio
import json
import logging
import sys
import unicodedata
from typing import Any

from app.agents.alza.auth import (
    DEFAULT_REMOTE_TOKEN_PATH,
    TokenStore,
    pull_token,
    refresh_token_with_cookies,
    with_login_guidance,
)
from app.agents.alza.client import AlzaClient
from app.agents.alza.config import Config
from app.agents.alza.cookies import CookieSource
from app.agents.alza.countdown import confirm_countdown
from app.agents.alza.errors import AlzaError, ValidationError
from app.agents.alza.models import PaymentStatus, to_json
from app.agents.alza.quickbuy import REQUIRED_ENV_HELP, QuickBuyConfig, require_coupon
from app.agents.alza.recovery import AuthRecovery
from app.agents.alza.utills.logger import setup_logger

logger = logging.getLogger(__name__)

BOX_WIDTH = 59
EMOJI_PRESENTATION = '\ufe0f'


def output_json(value: Any):
    print(json.dumps(to_json(value), indent=2, ensure_ascii=False))


def wants_json(args) -> bool:
    return args.format == 'json'


def display_width(text: str) -> int:
    """Terminal columns taken by ``text``; emoji and CJK take two."""
    width = 0
    previous = 0
    for char in text:
        if char == EMOJI_PRESENTATION:
            # Turns a narrow symbol such as ⚠ into a two-column emoji
            width += 1 if previous == 1 else 0
            previous = 2
            continue
        if unicodedata.combining(char):
            continue
        previous = 2 if unicodedata.east_asian_width(char) in ('W', 'F') else 1
        width += previous
    return width


def box(lines):
    """Frame ``lines`` in a double-line box."""
    out = ['╔' + '═' * BOX_WIDTH + '╗']
    for line in lines:
        if line is None:
            out.append('╠' + '═' * BOX_WIDTH + '╣')
        else:
            padding = max(0, BOX_WIDTH - 2 - display_width(line))
            out.append('║  ' + line + ' ' * padding + '║')
    out.append('╚' + '═' * BOX_WIDTH + '╝')
    return '\n'.join(out)


async def run_with_client(operation):
    """Build an authenticated client and run ``operation`` with auth recovery."""
    recovery = AuthRecovery()
    return await recovery.run(AlzaClient.create, operation)


# === WHOAMI ===

async def cmd_whoami(args):
    status = await run_with_client(lambda client: client.whoami())

    if wants_json(args):
        output_json(status)
        return

    print(f"User: {status.user_name} (ID: {status.user_id})")
    print(f"Basket ID: {status.basket_id or '-'}")
    print(f"Cart items: {status.basket_count}")
    print(f"Orders: {status.orders_count}")
    if status.is_premium:
        print("Status: AlzaPlus+ member ✓")


# === SEARCH / PRODUCT ===

async def cmd_search(args):
    results = await run_with_client(lambda client: client.search(args.query, args.limit))

    if wants_json(args):
        output_json(results)
        return

    if not results:
        print("No results found")
        return

    for i, result in enumerate(results, 1):
        print(f"{i}. [{result.id}] {result.name}")
        print(f"   Price: {result.price_text} | {result.availability}")
        print(f"   {result.url}\n")


def print_product(product):
    print(f"[{product.id}] {product.name}")

    if product.price:
        line = f"Price: {product.price}"
        if product.price_without_vat:
            line += f" (excl. VAT {product.price_without_vat})"
        if product.discount_percent is not None:
            line += f" | Discount: {product.discount_percent}%"
        print(line)

    for promo in product.promo_prices:
        line = f"Promo: {promo.name}"
        if promo.price:
            line += f" ({promo.price})"
        if promo.code:
            line += f" [code: {promo.code}]"
        print(line)

    if product.cash_back_price_label or product.cash_back_price:
        line = "Promo"
        if product.cash_back_price_label:
            line += f": {product.cash_back_price_label}"
        if product.cash_back_price:
            line += f" ({product.cash_back_price})"
        print(line)

    if product.availability:
        print(f"Availability: {product.availability}")
    for extra in (product.availability_detail, product.expected_stock_date):
        if extra:
            print(f"  {extra}")

    if product.description:
        print("\nDescription:")
        for line in product.description.splitlines():
            if line.strip():
                print(f"  {line}")

    if product.parameters:
        print("\nParameters:")
        for group in product.parameters:
            print(f"  {group.name}:")
            for param in group.parameters:
                print(f"    - {param.name}: {', '.join(param.values)}")

    if product.variants:
        print("\nVariants:")
        for variant in product.variants:
            marker = '*' if variant.is_selected else '-'
            print(f"  {marker} [{variant.id}] {variant.name}")


async def cmd_product(args):
    product = await run_with_client(lambda client: client.get_product(args.product_id))

    if wants_json(args):
        output_json(product)
        return
    print_product(product)


# === CART ===

async def cmd_cart(args):
    action = args.cart_action or 'show'

    if action == 'add':
        await run_with_client(lambda client: client.add_to_cart(args.product_id, args.quantity))
        print(f"✓ Added product {args.product_id} to cart (qty: {args.quantity})")
        return

    if action == 'remove':
        await run_with_client(lambda client: client.remove_from_cart(args.product_id))
        print(f"✓ Removed product {args.product_id} from cart")
        return

    if action == 'clear':
        await run_with_client(lambda client: client.clear_cart())
        print("✓ Cart cleared")
        return

    cart = await run_with_client(lambda client: client.get_cart())

    if wants_json(args):
        output_json(cart)
        return

    if not len(cart):
        print("Cart is empty")
        return

    print(f"Cart ({len(cart)} items):\n")
    for i, item in enumerate(cart, 1):
        if cart.preview_loaded:
            print(f"{i}. [{item.product_id}] {item.name}")
            print(f"   Price: {item.price} | Qty: {item.count}")
            if item.url:
                print(f"   {item.url}")
            print()
        else:
            print(f"{i}. Product ID: {item.product_id} (qty: {item.count})")
    if not cart.preview_loaded:
        print("\n(cart preview unavailable, showing basic items)")


# === FAVORITES / LISTS ===

def print_list_items(items):
    for i, item in enumerate(items, 1):
        print(f"{i}. {item.navigation_url}")
        if item.price:
            print(f"   Price: {item.price}")


async def cmd_favorites(args):
    action = args.favorites_action or 'show'

    if action == 'add':
        favorites = await run_with_client(lambda client: client.add_to_favorites(args.product_id))
        print(f"✓ Added product {args.product_id} to list '{favorites.name}'")
        return

    if action == 'remove':
        favorites = await run_with_client(lambda client: client.remove_from_favorites(args.product_id))
        print(f"✓ Removed product {args.product_id} from list '{favorites.name}'")
        return

    favorites, items = await run_with_client(lambda client: client.get_favorites())

    if wants_json(args):
        output_json(items)
        return

    if not items:
        print(f"List '{favorites.name}' is empty")
        return

    print(f"List '{favorites.name}' ({len(items)} items):\n")
    print_list_items(items)


async def cmd_lists(args):
    action = args.lists_action or 'show'

    if action == 'items':
        items = await run_with_client(lambda client: client.get_list_items(args.list_id))
        if wants_json(args):
            output_json(items)
        elif not items:
            print("List is empty")
        else:
            print(f"List items ({len(items)}):\n")
            print_list_items(items)
        return

    if action == 'create':
        created = await run_with_client(lambda client: client.create_list(args.name))
        if wants_json(args):
            output_json(created)
        else:
            print(f"✓ List '{created.name}' created (ID: {created.id})")
        return

    if action == 'add':
        await run_with_client(lambda client: client.add_to_list(args.list_id, args.product_id))
        print(f"✓ Product {args.product_id} added to list {args.list_id}")
        return

    lists = await run_with_client(lambda client: client.get_lists())

    if wants_json(args):
        output_json(lists)
        return

    print(f"Commodity Lists ({len(lists)}):\n")
    for commodity_list in lists:
        print(f"  [{commodity_list.id}] {commodity_list.name} ({commodity_list.item_count} items) - {commodity_list.type_name}")


# === ORDERS ===

async def cmd_orders(args):
    orders, total = await run_with_client(lambda client: client.get_orders(args.limit))

    if wants_json(args):
        output_json({'orders': orders, 'total': total, 'showing': len(orders)})
        return

    print(f"Orders (showing {len(orders)} of {total}):\n")
    for order in orders:
        print(f"  #{order.id} | {order.date} | {order.status} | {order.total_price}")


# === QUICKBUY ===

def quickbuy_config_from_args(args) -> QuickBuyConfig:
    """Flags first, then the process environment, then quickbuy.env."""
    explicit = QuickBuyConfig(
        alzabox_id=args.alzabox_id or 0,
        delivery_id=args.delivery_id or 0,
        payment_id=args.payment_id or '',
        card_id=args.card_id or '',
        visitor_id=args.visitor_id or '',
        is_alza_plus=args.alza_plus,
        dry_run=args.dry_run,
        quote_only=args.quote,
        promo_codes=tuple(args.coupon or ()),
    )
    return QuickBuyConfig.resolve(explicit)


def print_order_summary(args, config: QuickBuyConfig):
    if config.dry_run:
        title = "🧪 DRY RUN - SIMULATION"
    elif config.quote_only:
        title = "🧾 QUOTE ONLY - PRICE QUOTE"
    else:
        title = "🛒 QUICKBUY - FAST ORDER"

    coupon = ', '.join(config.promo_codes) if config.promo_codes else "(none - --no-coupon)"
    print()
    print(box([
        title,
        None,
        f"Product ID:  {args.product_id}",
        f"Quantity:    {args.quantity}",
        f"AlzaBox ID:  {config.alzabox_id}",
        f"Delivery ID: {config.delivery_id}",
        f"Payment ID:  {config.payment_id}",
        f"Coupon:      {coupon}",
    ]))
    print()


def print_quickbuy_result(config: QuickBuyConfig, result):
    lines = []
    if config.quote_only:
        lines += ["✅ PRICE QUOTE CREATED", None, f"Quote ID:     {result.order_id}"]
    else:
        lines += ["✅ ORDER CREATED", None, f"Order number: {result.order_id}"]
    lines.append(f"Total price:  {result.total_price:.2f} €")
    if result.payment_status == PaymentStatus.UNCERTAIN:
        lines += ["", "⚠️  Payment not confirmed.", "Check `alza orders` before retrying."]
    print()
    print(box(lines))


async def cmd_quickbuy(args):
    config = quickbuy_config_from_args(args)
    require_coupon(config, args.no_coupon)
    config.validate()
    confirmed = False

    async def buy(client):
        nonlocal confirmed
        # An auth retry re-runs buy; the user confirms only once
        if not confirmed:
            print_order_summary(args, config)

            if not config.dry_run and not config.quote_only and not args.yes:
                print(box([
                    "💳 YOUR CARD WILL BE CHARGED!",
                    "",
                    "Press Enter to CANCEL",
                ]))
                print()
                if not await confirm_countdown(args.timeout):
                    return None
            confirmed = True

        print("⏳ Creating price quote..." if config.quote_only else "⏳ Creating order...")
        return await client.quick_buy(args.product_id, args.quantity, config)

    result = await run_with_client(buy)
    if result is None:
        return

    if wants_json(args):
        output_json(result)
        return
    print_quickbuy_result(config, result)


# === TOKEN ===

async def cmd_token(args):
    store = TokenStore()

    if args.token_action == 'pull':
        token = await pull_token(args.from_host, args.remote_path, args.timeout)
        store.save(token)
        print(f"✓ Token pulled and saved to {store.path}")
        return

    source = CookieSource(profile_dir=args.profile, cookie_file=args.cookie_file, timeout=args.timeout)
    try:
        cookies = await source.load()
        token = await refresh_token_with_cookies(cookies.cookie_header)
    except AlzaError as e:
        raise with_login_guidance(e, source.description, args.cookie_file or '') from e

    store.save(token)
    print(f"✓ Token refreshed from browser cookies ({cookies.cookie_count} cookies)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='alza',
        description='CLI for Alza.sk - search products, manage cart and favorites',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:
  alza search "usb-c cable" -n 5
  alza cart add 12345 -q 2
  alza quickbuy 12345 --quote --coupon SAVE10
  alza token refresh
        """
    )

    # Global arguments
    parser.add_argument('--format', choices=['text', 'json'], default='text', help='Output format')
    parser.add_argument('-d', '--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--log-level', default=Config.LOG_LEVEL, help='Logging level')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    whoami_parser = subparsers.add_parser('whoami', help='Show logged in user info')
    whoami_parser.set_defaults(func=cmd_whoami)

    search_parser = subparsers.add_parser('search', help='Search for products')
    search_parser.add_argument('query', help='Search query')
    search_parser.add_argument('-n', '--limit', type=int, default=10, help='Max results to show')
    search_parser.set_defaults(func=cmd_search)

    product_parser = subparsers.add_parser('product', help='Show product detail')
    product_parser.add_argument('product_id', type=int, help='Product ID')
    product_parser.set_defaults(func=cmd_product)

    # Cart
    cart_parser = subparsers.add_parser('cart', help='Manage shopping cart')
    cart_parser.set_defaults(func=cmd_cart)
    cart_actions = cart_parser.add_subparsers(dest='cart_action')
    cart_actions.add_parser('show', help='Show cart contents')
    cart_add = cart_actions.add_parser('add', help='Add product to cart')
    cart_add.add_argument('product_id', type=int, help='Product ID to add')
    cart_add.add_argument('-q', '--quantity', type=int, default=1, help='Quantity')
    cart_remove = cart_actions.add_parser('remove', help='Remove product from cart')
    cart_remove.add_argument('product_id', type=int, help='Product ID to remove')
    cart_actions.add_parser('clear', help='Clear entire cart')

    # Favorites
    favorites_parser = subparsers.add_parser('favorites', help='Manage favorites list')
    favorites_parser.set_defaults(func=cmd_favorites)
    favorites_actions = favorites_parser.add_subparsers(dest='favorites_action')
    favorites_actions.add_parser('show', help='Show favorites')
    favorites_add = favorites_actions.add_parser('add', help='Add product to favorites')
    favorites_add.add_argument('product_id', type=int, help='Product ID to add')
    favorites_remove = favorites_actions.add_parser('remove', help='Remove product from favorites')
    favorites_remove.add_argument('product_id', type=int, help='Product ID to remove')

    # Lists
    lists_parser = subparsers.add_parser('lists', help='Manage commodity lists')
    lists_parser.set_defaults(func=cmd_lists)
    lists_actions = lists_parser.add_subparsers(dest='lists_action')
    lists_actions.add_parser('show', help='Show all commodity lists')
    lists_items = lists_actions.add_parser('items', help='Show items in a specific list')
    lists_items.add_argument('list_id', type=int, help='List ID')
    lists_create = lists_actions.add_parser('create', help='Create a new list')
    lists_create.add_argument('name', help='Name for the new list')
    lists_add = lists_actions.add_parser('add', help='Add product to a list')
    lists_add.add_argument('list_id', type=int, help='List ID')
    lists_add.add_argument('product_id', type=int, help='Product ID to add')

    orders_parser = subparsers.add_parser('orders', help='View order history')
    orders_parser.add_argument('-n', '--limit', type=int, default=10, help='Max orders to show')
    orders_parser.set_defaults(func=cmd_orders)

    # Quickbuy
    quickbuy_parser = subparsers.add_parser('quickbuy', help='Quick order to AlzaBox (WILL CHARGE YOUR CARD!)')
    quickbuy_parser.add_argument('product_id', type=int, help='Product ID to order')
    quickbuy_parser.add_argument('-q', '--quantity', type=int, default=1, help='Quantity')
    quickbuy_parser.add_argument('-y', '--yes', action='store_true', help='Skip countdown (DANGEROUS!)')
    quickbuy_parser.add_argument('--dry-run', action='store_true', help="Simulate only, don't actually order")
    quickbuy_parser.add_argument('--quote', action='store_true', help='Get price quote only (no order)')
    quickbuy_parser.add_argument('-t', '--timeout', type=int, default=10, help='Countdown seconds before ordering')
    quickbuy_parser.add_argument('--alzabox-id', type=int, help='AlzaBox location ID')
    quickbuy_parser.add_argument('--delivery-id', type=int, help='Delivery type ID')
    quickbuy_parser.add_argument('--payment-id', help='Payment method ID')
    quickbuy_parser.add_argument('--card-id', help='Saved card ID')
    quickbuy_parser.add_argument('--visitor-id', help='Device fingerprint/visitor ID')
    quickbuy_parser.add_argument('--alza-plus', action='store_true', help='Use AlzaPlus+ pricing')
    quickbuy_parser.add_argument('--coupon', action='append', help='Promo code(s), comma-separated or repeated')
    quickbuy_parser.add_argument('--no-coupon', action='store_true', help='Explicitly proceed without coupon')
    quickbuy_parser.set_defaults(func=cmd_quickbuy)

    # Token
    token_parser = subparsers.add_parser('token', help='Manage auth token')
    token_parser.set_defaults(func=cmd_token)
    token_actions = token_parser.add_subparsers(dest='token_action', required=True)
    token_refresh = token_actions.add_parser('refresh', help='Refresh auth token from browser cookies')
    token_refresh.add_argument('--profile', help='Playwright profile directory (default ~/.config/alza/pw-profile)')
    token_refresh.add_argument('--cookie-file', help='Explicit path to Chrome Cookies DB')
    token_refresh.add_argument('--timeout', type=float, default=Config.COOKIE_TIMEOUT, help='Timeout for cookie read (seconds)')
    token_pull = token_actions.add_parser('pull', help='Pull auth token from a remote host via SSH')
    token_pull.add_argument('--from', dest='from_host', required=True, help='SSH host (from ~/.ssh/config or user@host)')
    token_pull.add_argument('--remote-path', default=DEFAULT_REMOTE_TOKEN_PATH, help='Remote auth_token.txt path')
    token_pull.add_argument('--timeout', type=float, default=15, help='SSH timeout (seconds)')

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logger(level='DEBUG' if args.debug else args.log_level, log_file=Config.LOG_FILE)

    if not args.command:
        parser.print_help()
        return

    try:
        asyncio.run(args.func(args))
    except KeyboardInterrupt:
        print("\n\n⏹️  Interrupted by user")
    except AlzaError as e:
        print(f"Error: {e}", file=sys.stderr)
        if isinstance(e, ValidationError):
            print(REQUIRED_ENV_HELP, file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
