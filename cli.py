#!/usr/bin/env python3
"""
StockLeague CLI
Operational entry point for contest housekeeping
"""

import asyncio
import logging
import os
import sys

from app.core.config import settings
from app.services.container import build_services
from app.storage.factory import build_storage

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_help():
    """Print help information"""
    print("""
StockLeague CLI

Usage:
  python cli.py <command>

Commands:
  market-status        Show whether the market is open and the next open
  settle               Distribute prizes for every finished contest
  generate-contests    Create today's and the next trading day's contests
  seed                 Seed demo contests, users and portfolios
  serve                Start the FastAPI application
  db migrate           Apply database migrations (alembic upgrade head)
  db downgrade         Roll back the last migration
  help                 Show this help message
""")


async def market_status(services) -> bool:
    now = services.now()
    print(f"Exchange:  {settings.market_exchange}")
    print(f"Open:      {services.clock.is_open(now)}")
    print(f"Next open: {services.clock.next_open(now).isoformat()}")
    return True


async def settle(services) -> bool:
    results = await services.distributor.distribute_prizes()
    for result in results:
        print(result)
    print(f"Settled {len(results)} contests")
    return all(r.get("success") for r in results)


async def generate_contests(services) -> bool:
    created = await services.generator.initialize()
    for contest in created:
        print(f"Created {contest.name} ({contest.id})")
    print(f"Created {len(created)} contests")
    return True


async def seed_demo(services) -> bool:
    from app.scripts.seed_contests import seed

    summary = await seed(services.storage, services.price_source, services.clock)
    print(f"Seeded {summary}")
    return True


COMMANDS = {
    "market-status": market_status,
    "settle": settle,
    "generate-contests": generate_contests,
    "seed": seed_demo,
}


async def main() -> bool:
    """Main CLI function"""
    if len(sys.argv) < 2 or sys.argv[1].lower() in ("help", "-h", "--help"):
        print_help()
        return len(sys.argv) >= 2

    command = sys.argv[1].lower()

    if command == "serve":
        logger.info("Starting FastAPI application...")
        os.system("uvicorn app.main:app --host 0.0.0.0 --port 8000")
        return True

    if command == "db":
        subcommand = sys.argv[2].lower() if len(sys.argv) > 2 else ""
        if subcommand in ("migrate", "upgrade"):
            logger.info("Running database migrations...")
            return os.system("alembic upgrade head") == 0
        if subcommand == "downgrade":
            logger.info("Downgrading database...")
            return os.system("alembic downgrade -1") == 0
        print("Database subcommand required. Use: migrate, upgrade, downgrade")
        return False

    handler = COMMANDS.get(command)
    if handler is None:
        print(f"Unknown command: {command}")
        print_help()
        return False

    storage = await build_storage(settings)
    services = build_services(settings, storage)
    try:
        return await handler(services)
    finally:
        await services.shutdown()


if __name__ == "__main__":
    success = asyncio.run(main())
    sys.exit(0 if success else 1)
