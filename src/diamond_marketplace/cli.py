"""Command-line interface for diamond-marketplace."""

import argparse
import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

from .catalog import default_restaurants
from .config import MarketplaceSettings
from .delivery import HeuristicEtaPredictor, LLMEtaPredictor, SimulatedTrafficFeed
from .errors import MarketplaceError
from .orders import CartItem
from .session import MarketplaceSession
from .shared.models import Notification, OrderStatus
from .store import InMemoryRecordStore, connect_to_sqlite_store
from .utils import load_restaurants_from_yaml, setup_logging

logger = logging.getLogger(__name__)

DEMO_ADDRESS = "12 Gem Street, Diamond District"


def _prepare(args) -> MarketplaceSettings:
    setup_logging(args.log_level.upper())

    did_load_env = load_dotenv(args.env_file)
    if did_load_env:
        logger.info(f"Loaded environment variables from env file at path: {args.env_file}")
    else:
        logger.debug(f"No environment variables loaded from env file at path: {args.env_file}")

    settings = MarketplaceSettings()
    if getattr(args, "db_path", None):
        settings = settings.model_copy(update={"db_path": args.db_path})
    return settings


def run_seed_command(args):
    """Handle the seed subcommand."""
    settings = _prepare(args)

    if args.restaurants_dir:
        restaurants = load_restaurants_from_yaml(Path(args.restaurants_dir))
    else:
        restaurants = default_restaurants()

    async def seed():
        async with connect_to_sqlite_store(settings.db_path) as store:
            if not args.force and await store.get_restaurants():
                return False
            await store.save_restaurants(restaurants)
            if args.force:
                await store.save_orders([])
                await store.save_favorites([])
            return True

    if not asyncio.run(seed()):
        logger.error(f"{settings.db_path} already has restaurants; use --force to overwrite")
        sys.exit(1)
    logger.info(f"Seeded {len(restaurants)} restaurants into {settings.db_path}")


def run_orders_command(args):
    """Handle the orders subcommand."""
    settings = _prepare(args)

    async def list_orders():
        async with connect_to_sqlite_store(settings.db_path) as store:
            return await store.get_orders()

    orders = asyncio.run(list_orders())
    if args.status:
        orders = [o for o in orders if o.status == OrderStatus(args.status)]

    if not orders:
        print("No orders found.")
        return

    print(f"{'ORDER':<16} {'RESTAURANT':<10} {'STATUS':<18} {'TOTAL':>9}  COURIER")
    for order in orders:
        print(
            f"{order.id:<16} {order.restaurant_id:<10} {order.status.value:<18} "
            f"{order.total:>9.2f}  {order.courier_id or '-'}"
        )


async def simulate_lifecycle(
    session: MarketplaceSession,
    restaurant_id: str = "r1",
    step_delay: float = 0.5,
    max_delivery_seconds: float = 30.0,
):
    """Walk one order through every role from checkout to delivery."""
    restaurant = session.snapshot.get_restaurant(restaurant_id)
    if restaurant is None:
        raise MarketplaceError(f"Restaurant {restaurant_id} is not in the catalog")

    cart = [CartItem(menu_item=item) for item in restaurant.available_items[:2]]
    order = await session.checkout(restaurant_id, cart, DEMO_ADDRESS)
    logger.info(
        f"Customer placed {order.id} for {order.total:.2f} "
        f"(wallet {session.wallet.balance:.2f}, +{order.loyalty_points_earned} points)"
    )

    for status in (OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.READY):
        await asyncio.sleep(step_delay)
        await session.update_status(order.id, status)

    await asyncio.sleep(step_delay)
    await session.accept_job(order.id)
    await session.update_status(order.id, OrderStatus.OUT_FOR_DELIVERY)

    waited = 0.0
    while not session.telemetry.arrived and waited < max_delivery_seconds:
        await asyncio.sleep(step_delay)
        waited += step_delay
        position = session.telemetry.position
        estimate = session.tracker.eta_estimate
        logger.info(
            f"Courier at ({position.x:.1f}, {position.y:.1f}), "
            f"{session.telemetry.distance_to_destination():.1f} units away"
            + (f", ETA {estimate.estimated_minutes} min" if estimate else "")
        )

    return await session.update_status(order.id, OrderStatus.DELIVERED)


def run_simulate_command(args):
    """Handle the simulate subcommand."""
    settings = _prepare(args)
    settings = settings.model_copy(
        update={
            "sync_interval": args.sync_interval,
            "telemetry_interval": args.telemetry_interval,
            "eta_interval": args.eta_interval,
            "telemetry_step_fraction": args.step_fraction,
        }
    )

    predictor = LLMEtaPredictor() if args.llm else HeuristicEtaPredictor()

    def announce(notification: Notification):
        print(f"[{notification.icon}] {notification.title}: {notification.body}")

    async def simulate():
        if args.in_memory:
            store_context = _in_memory_store()
        else:
            store_context = connect_to_sqlite_store(settings.db_path)

        async with store_context as store:
            async with MarketplaceSession(
                store,
                settings,
                predictor=predictor,
                traffic=SimulatedTrafficFeed(),
            ) as session:
                session.notifier.add_listener(announce)
                order = await simulate_lifecycle(
                    session, args.restaurant, step_delay=args.step_delay
                )
                stats = session.platform_stats()
                print(
                    f"Order {order.id} {order.status.value}. Platform: "
                    f"{stats.order_count} orders, {stats.gross_volume:.2f} gross volume"
                )

    try:
        asyncio.run(simulate())
    except MarketplaceError as e:
        logger.error(f"Simulation failed: {e}")
        sys.exit(1)


@asynccontextmanager
async def _in_memory_store() -> AsyncIterator[InMemoryRecordStore]:
    store = InMemoryRecordStore()
    try:
        yield store
    finally:
        await store.close()


def _add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--env-file",
        default=".env",
        help=".env file with environment variables to load.",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="SQLite database path (default: DIAMOND_DB_PATH env var or diamond.db)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: INFO)",
    )


def main():
    """Run main CLI."""
    parser = argparse.ArgumentParser(
        prog="diamond-marketplace",
        description="Diamond Marketplace - role-based food ordering engine with live delivery tracking",
    )

    subparsers = parser.add_subparsers(
        dest="command", help="Available commands", required=True
    )

    # seed subcommand
    seed_parser = subparsers.add_parser(
        "seed", help="Write a restaurant catalog into the SQLite store"
    )
    seed_parser.set_defaults(func=run_seed_command)
    _add_common_arguments(seed_parser)
    seed_parser.add_argument(
        "--restaurants-dir",
        default=None,
        help="Directory of restaurant YAML files (default: built-in catalog)",
    )
    seed_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing restaurants and clear orders and favorites",
    )

    # orders subcommand
    orders_parser = subparsers.add_parser("orders", help="List stored orders")
    orders_parser.set_defaults(func=run_orders_command)
    _add_common_arguments(orders_parser)
    orders_parser.add_argument(
        "--status",
        choices=[status.value for status in OrderStatus],
        default=None,
        help="Only show orders with this status",
    )

    # simulate subcommand
    simulate_parser = subparsers.add_parser(
        "simulate", help="Run one order through its full lifecycle"
    )
    simulate_parser.set_defaults(func=run_simulate_command)
    _add_common_arguments(simulate_parser)
    simulate_parser.add_argument(
        "--restaurant", default="r1", help="Restaurant to order from (default: r1)"
    )
    simulate_parser.add_argument(
        "--in-memory",
        action="store_true",
        help="Use an in-memory store instead of SQLite",
    )
    simulate_parser.add_argument(
        "--llm",
        action="store_true",
        help="Ask the configured LLM provider for ETAs instead of the local heuristic",
    )
    simulate_parser.add_argument(
        "--step-delay",
        type=float,
        default=0.5,
        help="Seconds between lifecycle steps (default: 0.5)",
    )
    simulate_parser.add_argument("--sync-interval", type=float, default=1.0)
    simulate_parser.add_argument("--telemetry-interval", type=float, default=0.2)
    simulate_parser.add_argument("--eta-interval", type=float, default=2.0)
    simulate_parser.add_argument("--step-fraction", type=float, default=0.3)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
