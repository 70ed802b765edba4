"""Main entry point for shaken.

Initializes logging in two phases (defaults then config-driven), loads
the configured modules, connects to Twitch, and runs either the
synchronous Bot loop or the WorkerPool until the connection closes or
SIGTERM/SIGINT arrives.

Key functions:
    main: Async entry point.
    run: Synchronous wrapper for the ``shaken`` console script.
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import structlog

from . import __version__
from .logging_config import setup_logging


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="shaken", description="Modular Twitch chat bot")
    parser.add_argument(
        "--config-dir", type=Path, default=None,
        help="directory holding settings.yaml and .env",
    )
    parser.add_argument(
        "--workers", action="store_true",
        help="run every module on its own worker (overrides dispatch.mode)",
    )
    return parser.parse_args(argv)


async def main(argv=None):
    """Main async entry point."""
    args = _parse_args(argv)

    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = structlog.get_logger("shaken")
    logger.info("shaken_starting", version=__version__)

    from . import database
    from .bot import Bot
    from .config import get_config
    from .irc import Conn
    from .module_loader import ModuleLoader
    from .registry import Registry
    from .workers import WorkerPool

    config = get_config(args.config_dir)
    config.validate()

    # Phase 2: reconfigure with real config
    setup_logging(config)

    database.configure(config.database_path)
    database.get_connection()

    registry = Registry()
    loader = ModuleLoader(registry, config.module_settings)
    modules = loader.load_all(config.modules)

    conn = await asyncio.to_thread(Conn, config.twitch_host, config.twitch_port)
    bot = Bot(conn, registry=registry)
    for module in modules:
        bot.add(module)
    bot.register(config.twitch_nick, config.twitch_password)
    for channel in config.channels:
        bot.join(channel)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: fall back to signal.signal for SIGINT (Ctrl+C).
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    mode = "workers" if args.workers else config.dispatch_mode
    if mode == "workers":
        pool = WorkerPool(
            conn,
            modules,
            tick_interval=config.tick_interval,
            queue_size=config.dispatch_queue_size,
        )
        bot_task = asyncio.create_task(pool.run())
    else:
        bot_task = asyncio.create_task(asyncio.to_thread(bot.run))
    logger.info("dispatch_mode", mode=mode, modules=len(modules))

    stop_task = asyncio.create_task(shutdown_event.wait())
    try:
        await asyncio.wait({bot_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
    except Exception as e:
        logger.error("bot_error", error=str(e))
        raise
    finally:
        stop_task.cancel()
        # closing the socket makes the blocking read return None
        conn.close()
        try:
            await bot_task
        except Exception as e:
            logger.error("bot_error", error=str(e), error_type=type(e).__name__)
        database.close_connection()
        logger.info("shaken_stopped")


def run():
    """Synchronous entry point for the ``shaken`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except SystemExit as e:
        sys.exit(e.code)


if __name__ == "__main__":
    run()
