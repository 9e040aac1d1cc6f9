"""Reaction-triggered publishing cog."""

import logging
from typing import Optional

import discord
from discord.ext import commands

from ...pipeline import PublicationPipeline, PublicationResult


logger = logging.getLogger(__name__)

SUCCESS_EMOJI = "✅"
FAILURE_EMOJI = "❌"


class PublishCog(commands.Cog):
    """Publishes a message's image when the owner reacts with the trigger emoji."""

    def __init__(
        self,
        bot,
        pipeline: PublicationPipeline,
        owner_id: int,
        trigger_emoji: str,
        chat_feedback: bool = True,
    ):
        self.bot = bot
        self.pipeline = pipeline
        self.owner_id = owner_id
        self.trigger_emoji = trigger_emoji
        self.chat_feedback = chat_feedback

    def is_trigger(self, payload) -> bool:
        return payload.user_id == self.owner_id and payload.emoji.name == self.trigger_emoji

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload):
        """Start a publication for qualifying reactions."""
        if not self.is_trigger(payload):
            return

        message = await self._fetch_message(payload)
        if message is None:
            return
        if not message.attachments:
            logger.info("Message %s has no attachments; nothing to publish.", message.id)
            return

        attachment = message.attachments[0]
        logger.info("📥 Owner requested upload of %s", attachment.filename)
        result = await self.pipeline.publish(attachment.url, attachment.filename)
        await self._acknowledge(message, result)

    async def _fetch_message(self, payload) -> Optional[discord.Message]:
        try:
            channel = self.bot.get_channel(payload.channel_id)
            if channel is None:
                channel = await self.bot.fetch_channel(payload.channel_id)
            return await channel.fetch_message(payload.message_id)
        except discord.HTTPException as exc:
            logger.warning("Could not fetch message %s: %s", payload.message_id, exc)
            return None

    async def _acknowledge(self, message: discord.Message, result: PublicationResult) -> None:
        if not self.chat_feedback:
            return
        try:
            await message.add_reaction(SUCCESS_EMOJI if result.ok else FAILURE_EMOJI)
            if not result.ok:
                await message.reply(f"⚠️ {result.summary()}", mention_author=False)
        except discord.HTTPException as exc:
            logger.warning("Could not acknowledge message %s: %s", message.id, exc)

    @commands.command()
    @commands.is_owner()
    async def status(self, ctx):
        """Show the current and last publication."""
        if self.pipeline.busy:
            current = f"⏳ Publishing `{self.pipeline.in_flight}`"
        else:
            current = "💤 Idle"
        last = self.pipeline.last_result
        last_text = last.summary() if last else "none yet"
        await ctx.send(
            "📊 **Bot Status**\n"
            f"{current}\n"
            f"🗂️ Last publication: {last_text}"
        )


async def setup(bot):
    """Setup function for loading the cog."""
    config = bot.booru_config
    await bot.add_cog(PublishCog(
        bot,
        bot.pipeline,
        owner_id=config.owner_id,
        trigger_emoji=config.trigger_emoji,
        chat_feedback=config.chat_feedback,
    ))
