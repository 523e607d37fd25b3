"""
Discord Bot fronting the dispatch & safety gateway.
Thin adapter: turns Discord messages into MessageEvents and Discord actions into PlatformActions.
"""

import logging
import os
from typing import Optional

import discord
from dotenv import load_dotenv

from gateway import Gateway, GatewayConfig, Language, MessageEvent, SenderRole, build_provider_specs
from gateway.config import parse_provider_chain, DEFAULT_PROVIDER_CHAIN
from gateway.brand import PRESENCE_STATUSES
from gateway.models import DispatchOutcome, ModerationAction
from gateway.platform import JsonFileCatalog

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)
logging.getLogger("discord").setLevel(logging.ERROR)

load_dotenv()

# Configuration
BOT_TOKEN = os.getenv("BOT_TOKEN")
config = GatewayConfig.from_env()

RULE_NAMES = ["enabled", "anti_caps", "anti_repeated", "anti_links", "auto_kick"]


class DiscordPlatform:
    """PlatformActions over the Discord API. Conversation ids are channel ids."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def _channel(self, conversation_id: str):
        channel = self.client.get_channel(int(conversation_id))
        if channel is None:
            channel = await self.client.fetch_channel(int(conversation_id))
        return channel

    async def delete_message(self, conversation_id: str, message_id: Optional[str]) -> None:
        if message_id is None:
            return
        channel = await self._channel(conversation_id)
        message = await channel.fetch_message(int(message_id))
        await message.delete()

    async def remove_actor(self, conversation_id: str, actor_id: str) -> None:
        channel = await self._channel(conversation_id)
        guild = getattr(channel, "guild", None)
        if guild is None:
            raise RuntimeError("Cannot remove members outside a server")
        member = guild.get_member(int(actor_id)) or await guild.fetch_member(int(actor_id))
        await member.kick(reason="Exceeded warning limit")

    async def send_reply(self, conversation_id: str, text: str, reply_to: Optional[str] = None) -> None:
        channel = await self._channel(conversation_id)
        reference = None
        if reply_to is not None:
            reference = discord.MessageReference(
                message_id=int(reply_to), channel_id=int(conversation_id), fail_if_not_exists=False
            )
        await channel.send(text, reference=reference)


class GatewayBot(discord.Bot):
    """Closes the gateway (final state flush, provider sessions) before disconnecting."""

    async def close(self):
        await gateway.close()
        await super().close()


def sender_role(message: discord.Message) -> SenderRole:
    """Map Discord ownership/permissions onto gateway roles"""
    guild = message.guild
    if guild is None:
        return SenderRole.MEMBER
    if message.author.id == guild.owner_id:
        return SenderRole.OWNER
    permissions = getattr(message.author, "guild_permissions", None)
    if permissions is not None and permissions.administrator:
        return SenderRole.ADMINISTRATOR
    return SenderRole.MEMBER


def member_role(member: discord.Member) -> SenderRole:
    if member.id == member.guild.owner_id:
        return SenderRole.OWNER
    if member.guild_permissions.administrator:
        return SenderRole.ADMINISTRATOR
    return SenderRole.MEMBER


# Bot setup
intents = discord.Intents.default()
intents.messages = True
intents.message_content = True
intents.members = True
bot = GatewayBot(intents=intents)

platform = DiscordPlatform(bot)
gateway = Gateway(
    config,
    platform,
    build_provider_specs(config.providers),
    catalog=JsonFileCatalog(config.catalog_file) if config.catalog_file else None,
)
_started = False


@bot.event
async def on_ready():
    global _started
    print(f"🤖 Bot logged in as {bot.user}")
    print(f"📊 Pipeline has {len(gateway.pipeline.processors)} active gates")

    # on_ready fires again after reconnects
    if not _started:
        await gateway.start()
        _started = True

    print("⚡ Waiting for messages...")


@bot.event
async def on_message(message: discord.Message):
    """Hand every human message to the gateway"""
    if message.author.bot:
        return

    event = MessageEvent(
        conversation_id=str(message.channel.id),
        actor_id=str(message.author.id),
        content=message.content or "",
        message_id=str(message.id),
        sender_role=sender_role(message),
        timestamp=message.created_at.timestamp(),
        multi_party=message.guild is not None,
    )
    # Mentions arrive as <@id>; the gateway addresses by name
    if bot.user is not None and bot.user.mentioned_in(message):
        for mention in (f"<@{bot.user.id}>", f"<@!{bot.user.id}>"):
            event.content = event.content.replace(mention, f"@{config.bot_name}")

    result = await gateway.handle(event)
    if result.outcome != DispatchOutcome.SUPPRESSED:
        logger.info(f"✅ {result.outcome.value} message {message.id} ({result.reason or result.intent})")


@bot.slash_command(name="mute", description="Mute a member in this channel")
@discord.default_permissions(moderate_members=True)
async def mute_command(
    ctx,
    member: discord.Option(discord.Member, "Member to mute"),
    minutes: discord.Option(int, "Duration in minutes", required=False, default=None),
    reason: discord.Option(str, "Reason", required=False, default="Muted by admin"),
):
    mute = await gateway.mute(str(ctx.channel_id), str(member.id), minutes, reason)
    duration = (mute.unmute_at - mute.muted_at) / 60
    await ctx.respond(f"🔇 {member.mention} muted for {duration:.0f} minutes. Reason: {reason}")


@bot.slash_command(name="unmute", description="Unmute a member in this channel")
@discord.default_permissions(moderate_members=True)
async def unmute_command(ctx, member: discord.Option(discord.Member, "Member to unmute")):
    if await gateway.unmute(str(ctx.channel_id), str(member.id)):
        await ctx.respond(f"🔊 {member.mention} unmuted.")
    else:
        await ctx.respond(f"{member.mention} was not muted.", ephemeral=True)


@bot.slash_command(name="reset_warnings", description="Clear a member's warnings in this channel")
@discord.default_permissions(moderate_members=True)
async def reset_warnings_command(ctx, member: discord.Option(discord.Member, "Member")):
    previous = await gateway.reset_warnings(str(ctx.channel_id), str(member.id))
    await ctx.respond(f"✅ Cleared {previous} warnings for {member.mention}.")


@bot.slash_command(name="remove", description="Remove a member from the server")
@discord.default_permissions(kick_members=True)
async def remove_command(ctx, member: discord.Option(discord.Member, "Member to remove")):
    action = await gateway.remove_actor(str(ctx.channel_id), str(member.id), member_role(member))
    if action is None:
        await ctx.respond(f"{member.mention} was already removed.", ephemeral=True)
    else:
        await ctx.respond(f"{'🚫 Removed' if action == ModerationAction.REMOVED else '🛡️ Refused to remove'} {member.mention}.")


@bot.slash_command(name="standing", description="Show a member's moderation standing in this channel")
async def standing_command(ctx, member: discord.Option(discord.Member, "Member")):
    standing = gateway.standing(str(ctx.channel_id), str(member.id))
    line = f"**{member.display_name}**: {standing.state.value}"
    if standing.warnings:
        line += f" ({standing.warnings} warnings)"
    if standing.unmute_at:
        line += f", muted until <t:{int(standing.unmute_at)}:T>"
    await ctx.respond(line, ephemeral=True)


@bot.slash_command(name="rules", description="Toggle a moderation rule for this channel")
@discord.default_permissions(manage_messages=True)
async def rules_command(
    ctx,
    rule: discord.Option(str, "Rule", choices=RULE_NAMES),
    enabled: discord.Option(bool, "On or off"),
):
    rules = await gateway.set_rules(str(ctx.channel_id), **{rule: enabled})
    await ctx.respond(f"⚙️ {rule} is now {'on' if getattr(rules, rule) else 'off'}.")


@bot.slash_command(name="banned_words", description="Set banned words for this channel (comma separated)")
@discord.default_permissions(manage_messages=True)
async def banned_words_command(ctx, words: discord.Option(str, "Comma separated words", required=False, default="")):
    banned = [w.strip() for w in words.split(",") if w.strip()]
    await gateway.set_rules(str(ctx.channel_id), banned_words=banned)
    await ctx.respond(f"⚙️ {len(banned)} banned words set.", ephemeral=True)


@bot.slash_command(name="language", description="Choose the language the assistant answers you in")
async def language_command(ctx, language: discord.Option(str, "Language", choices=[lang.value for lang in Language])):
    await gateway.set_language(str(ctx.channel_id), str(ctx.author.id), Language(language))
    await ctx.respond(f"🌐 I'll answer you in {language}.", ephemeral=True)


@bot.slash_command(name="presence", description="Set the owner's presence (assistant is silent while online)")
@discord.default_permissions(administrator=True)
async def presence_command(ctx, status: discord.Option(str, "Status", choices=list(PRESENCE_STATUSES))):
    gateway.brand.set_status(status)
    await ctx.respond(f"Owner presence set to **{status}**.", ephemeral=True)


@bot.slash_command(name="reload_brand", description="Reload brand memory from disk")
@discord.default_permissions(administrator=True)
async def reload_brand_command(ctx):
    brand = gateway.reload_brand()
    await ctx.respond(f"🔄 Brand memory reloaded for {brand.owner_name}.", ephemeral=True)


@bot.slash_command(name="reload_providers", description="Re-read the provider chain from the environment")
@discord.default_permissions(administrator=True)
async def reload_providers_command(ctx):
    load_dotenv(override=True)
    providers = parse_provider_chain(os.getenv("PROVIDER_CHAIN", DEFAULT_PROVIDER_CHAIN))
    await gateway.reload_providers(build_provider_specs(providers))
    ids = ", ".join(spec.provider_id for spec in gateway.provider_chain.providers) or "none"
    await ctx.respond(f"🔄 Provider chain: {ids}", ephemeral=True)


@bot.slash_command(name="gateway_status", description="Show gateway gates and this channel's stats")
async def gateway_status(ctx):
    """Show which processors are enabled and this channel's moderation counters"""
    await ctx.defer()

    try:
        status_lines = ["**🔧 Gateway Status**\n"]

        processors_to_check = [
            ("Rate Limiter", gateway.rate_limiter),
            ("Spam Detector", gateway.spam_detector),
            ("Moderation", gateway.moderation),
            ("Provider Chain", gateway.provider_chain),
            ("Response Handler", gateway.response_handler),
        ]
        for name, processor in processors_to_check:
            enabled = "✅ Enabled" if processor.is_enabled() else "❌ Disabled"
            status_lines.append(f"**{name}**: {enabled}")

        stats = gateway.stats(str(ctx.channel_id))
        providers = ", ".join(f"{s.provider_id} ({s.timeout:.0f}s)" for s in gateway.provider_chain.providers)
        status_lines.append("\n**Configuration:**")
        status_lines.append(f"• Rate Limit: {config.rate_limit_per_minute}/minute")
        status_lines.append(f"• Providers: {providers or 'none'}")
        status_lines.append(f"• Owner presence: {gateway.brand.brand.status}")
        status_lines.append("\n**This channel:**")
        status_lines.append(f"• Messages: {stats.messages}")
        status_lines.append(f"• Spam blocked: {stats.spam_blocked}")
        status_lines.append(f"• Warnings issued: {stats.warnings_issued}")
        status_lines.append(f"• Users kicked: {stats.users_kicked}")

        await ctx.followup.send("\n".join(status_lines))

    except Exception as e:
        logger.error(f"Error in gateway_status: {e}")
        await ctx.followup.send(f"❌ Error getting gateway status: {str(e)}")


if __name__ == "__main__":
    bot.run(BOT_TOKEN)
