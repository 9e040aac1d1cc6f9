"""Main entry point for the booru upload bot."""

import asyncio
import logging
import signal
import sys

import discord

from booru_bot.bot.client import create_bot, load_cogs
from booru_bot.cache import ensure_directories
from booru_bot.config import Config
from booru_bot.pipeline import PublicationPipeline
from booru_bot.utils import ConfigError, DirectoryCreationError, TransferError, setup_logging


logger = logging.getLogger("booru_bot.main")


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows: fall back to KeyboardInterrupt
            pass


async def serve(config: Config) -> None:
    """Run the bot until a shutdown signal arrives or the gateway closes."""
    pipeline = PublicationPipeline.from_config(config)
    try:
        await pipeline.transfer.connect()
    except TransferError as exc:
        logger.warning("FTP unavailable at startup, will connect on first publication: %s", exc)

    bot = create_bot(config, pipeline)
    stop = asyncio.Event()
    _install_signal_handlers(stop)

    async with bot:
        await load_cogs(bot)
        bot_task = asyncio.create_task(bot.start(config.discord_bot_token))
        stop_task = asyncio.create_task(stop.wait())
        done, _ = await asyncio.wait(
            {bot_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

        logger.info("Shutting down.")
        await pipeline.shutdown()
        await bot.close()
        stop_task.cancel()
        if bot_task not in done:
            await bot_task
        bot_task.result()
        logger.info("Shut down.")


def run_bot() -> None:
    """Run the Discord bot."""
    print("🚀 Starting booru upload bot...")
    try:
        config = Config.get_instance()
    except ConfigError as exc:
        print(f"❌ {exc}")
        sys.exit(1)

    setup_logging(production=config.production)
    try:
        ensure_directories(config.cache_dirs)
    except DirectoryCreationError as exc:
        print(f"❌ {exc}")
        sys.exit(1)

    try:
        asyncio.run(serve(config))
    except discord.LoginFailure:
        print("❌ Discord rejected the bot token. Run `python main.py setup`.")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n🛑 Bot stopped by user.")


def run_setup() -> None:
    """Run the interactive configuration wizard."""
    from booru_bot.setup_wizard import run_setup as _run_setup

    try:
        _run_setup()
    except ConfigError as exc:
        print(f"❌ {exc}")
        sys.exit(1)


def main():
    """Main entry point."""
    if len(sys.argv) > 1:
        command = sys.argv[1].lower()
        if command == "setup":
            run_setup()
        elif command == "bot":
            run_bot()
        else:
            print(f"Unknown command: {command}")
            print("Usage: python main.py [bot|setup]")
            sys.exit(1)
    else:
        # Default to bot
        run_bot()


if __name__ == "__main__":
    main()
