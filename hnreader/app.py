"""
Application lifecycle for the cache.

The terminal UI wraps its event loop in lifespan(): logging, the store (schema
migrations run here and abort startup on failure), the network client and the
background refresher are set up on entry and torn down on exit.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from .client import HNClient
from .config import AppState, config, state
from .database import Database
from .log import init_logging
from .staleness import Clock
from .tasks import FeedRefresher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(
    db_path: Path | None = None,
    client: HNClient | None = None,
    clock: Clock | None = None,
    log_path: Path | None = None,
) -> AsyncIterator[AppState]:
    """Initialize and clean up application resources."""
    state.log_handler = init_logging(
        log_path or config.LOG_PATH, verbose=config.VERBOSE, level=config.LOG_LEVEL
    )

    try:
        # A SchemaError here propagates: the store is unusable
        state.db = Database(db_path or config.DB_PATH, clock=clock)
        state.client = client or HNClient()
        state.refresher = FeedRefresher(state.db, state.client)
        await state.refresher.start()
        logger.info(f"Cache opened at {db_path or config.DB_PATH}")

        yield state
    finally:
        if state.refresher:
            await state.refresher.stop()
        if state.client:
            await state.client.close()
        state.refresher = None
        state.client = None
        state.db = None
        logger.info("Cache closed")
        if state.log_handler:
            logging.getLogger("hnreader").removeHandler(state.log_handler)
            state.log_handler.close()
            state.log_handler = None
