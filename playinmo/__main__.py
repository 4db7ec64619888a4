"""
playinmo.__main__ — Entry point for ``python -m playinmo``
===========================================================

Wiring:
1. Load .env (secrets, DATABASE_URL).
2. Load config.yaml (site identity, API port).
3. Create the SQLAlchemy engine and ensure tables and default settings exist.
4. Optionally seed the demo catalog (``--seed``).
5. Serve the FastAPI app with Uvicorn (blocking).

Run with::

    python -m playinmo --seed
"""

from __future__ import annotations

import argparse
import logging

import uvicorn
from dotenv import load_dotenv

from playinmo.config import load_config
from playinmo.database.engine import create_db_engine, init_db
from playinmo.database.seed import seed_demo_data

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("playinmo")


def main(argv: list[str] | None = None) -> None:
    """Bootstrap the database and run the portal API."""
    parser = argparse.ArgumentParser(prog="playinmo", description="PlayinMO game portal API")
    parser.add_argument("--config", default="config.yaml", help="path to config.yaml")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=None, help="overrides api_port")
    parser.add_argument("--seed", action="store_true", help="seed demo data into an empty database")
    parser.add_argument(
        "--seed-only", action="store_true", help="seed demo data and exit without serving",
    )
    args = parser.parse_args(argv)

    load_dotenv()

    cfg = load_config(args.config)
    logger.info("Config loaded for %s", cfg.site_name)

    engine = create_db_engine()
    init_db(engine)

    if args.seed or args.seed_only:
        if seed_demo_data(engine):
            logger.info("Demo data seeded")
        else:
            logger.info("Database already has users; demo seed skipped")
        if args.seed_only:
            return

    port = args.port or cfg.api_port
    logger.info("Starting PlayinMO API on %s:%d…", args.host, port)
    uvicorn.run("playinmo.api.main:app", host=args.host, port=port)


if __name__ == "__main__":
    main()
