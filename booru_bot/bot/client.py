"""Bot setup and event listeners."""

import logging
from datetime import datetime

import discord
from discord.ext import commands

from ..config import Config
from ..pipeline import PublicationPipeline


logger = logging.getLogger(__name__)

STATUS_TEXT = "Uploading images. Hopefully."

EXTENSIONS = (
    "booru_bot.bot.cogs.publish",
    "booru_bot.bot.cogs.help",
)


def create_bot(config: Config, pipeline: PublicationPipeline) -> commands.Bot:
    """Create and configure the Discord bot."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.reactions = True

    bot = commands.Bot(command_prefix="!", intents=intents, owner_id=config.owner_id)
    bot.remove_command("help")
    bot.booru_config = config
    bot.pipeline = pipeline

    @bot.event
    async def on_ready():
        """Called when the bot is ready."""
        logger.info(
            "🟢 Bot online as %s (ID: %s) at %s",
            bot.user.name, bot.user.id, datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        )
        await bot.change_presence(
            status=discord.Status.online,
            activity=discord.Game(name=STATUS_TEXT),
        )
        logger.info("🤖 Ready; react with %s to publish.", config.trigger_emoji)

    @bot.event
    async def on_command_error(ctx, error):
        """Handle command errors."""
        if isinstance(error, commands.CommandNotFound):
            logger.debug("Unknown command: %s", ctx.message.content)
            return
        if isinstance(error, commands.CheckFailure):
            logger.info("%s is not allowed to run %s", ctx.author, ctx.command)
            return
        logger.error("Command error: %s", error)
        await ctx.send(f"⚠️ {error}")

    return bot


async def load_cogs(bot: commands.Bot) -> None:
    for extension in EXTENSIONS:
        await bot.load_extension(extension)
