"""Help command cog."""

from discord.ext import commands


class HelpCog(commands.Cog):
    """Cog for help command."""

    def __init__(self, bot, config):
        self.bot = bot
        self.config = config

    @commands.command(name="help")
    async def help_command(self, ctx):
        """Show help message."""
        await ctx.send(self._build_help_text())

    def _build_help_text(self):
        """Build help text."""
        return (
            "## Booru Upload Bot Help\n"
            "\n"
            "**Publishing**\n"
            f"- React with {self.config.trigger_emoji} to a message with an image attachment.\n"
            "- Only the bot owner's reactions count; the first attachment is published.\n"
            "- The image and a compressed preview are uploaded to the gallery, "
            f"then `{self.config.manifest_filename}` is updated.\n"
            "- Supported formats: `.png`, `.jpg`, `.jpeg`.\n"
            "\n"
            "**Commands**\n"
            "- `!status` - Show the running and last publication (owner).\n"
            "- `!help` - Show this help message.\n"
        )


async def setup(bot):
    """Setup function for loading the cog."""
    await bot.add_cog(HelpCog(bot, bot.booru_config))
