"""Discord webhook notifications for friendly fire and punishments.

Optional: wired only when ``DISCORD_WEBHOOK_URL`` is configured. Delivery
failures are logged and otherwise ignored.
"""

from __future__ import annotations

from typing import Optional

import aiohttp
import discord

from . import logs
from .bus import EventBus
from .events import PlayerKilled, PunishmentDecision, PunishmentKind

_COLORS = {
    PunishmentKind.WARN: discord.Color.gold(),
    PunishmentKind.KICK: discord.Color.orange(),
    PunishmentKind.BAN: discord.Color.red(),
}


def friendly_fire_embed(event: PlayerKilled, server_name: str) -> discord.Embed:
    killer, victim = event.killer, event.victim
    embed = discord.Embed(
        title="Friendly Fire Incident",
        description=f"**Server:** {server_name}",
        color=discord.Color.from_rgb(0xFF, 0x6B, 0x35),
    )
    embed.add_field(name="Killer", value=f"**Name:** {killer.name}\n**ID:** {killer.id}\n**GUID:** {killer.guid}", inline=True)
    embed.add_field(name="Victim", value=f"**Name:** {victim.name}\n**ID:** {victim.id}\n**GUID:** {victim.guid}", inline=True)
    embed.add_field(
        name="Details",
        value=f"**Weapon:** {event.weapon}\n**Distance:** {event.distance:.2f}m\n**Type:** {event.kill_type}",
        inline=True,
    )
    return embed


def punishment_embed(decision: PunishmentDecision, server_name: str) -> discord.Embed:
    offender = decision.offender
    title = f"Teamkill {decision.action.value.capitalize()}"
    embed = discord.Embed(title=title, description=f"**Server:** {server_name}", color=_COLORS[decision.action])
    embed.add_field(name="Player", value=f"**Name:** {offender.name}\n**GUID:** {offender.guid}", inline=True)
    embed.add_field(name="Reason", value=decision.reason or "-", inline=True)
    if decision.duration_hours is not None:
        embed.add_field(name="Duration", value=f"{decision.duration_hours} hours", inline=True)
    embed.set_footer(text=f"{decision.source} tracker")
    return embed


class DiscordNotifier:
    def __init__(self, webhook_url: str, server_name: str, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.webhook_url = webhook_url
        self.server_name = server_name
        self._session = session
        self._owns_session = session is None
        self._webhook: Optional[discord.Webhook] = None
        self._bus: Optional[EventBus] = None

    def _get_webhook(self) -> discord.Webhook:
        if self._webhook is None:
            if self._session is None:
                self._session = aiohttp.ClientSession()
            self._webhook = discord.Webhook.from_url(self.webhook_url, session=self._session)
        return self._webhook

    def attach(self, bus: EventBus) -> None:
        self._bus = bus
        bus.subscribe(PlayerKilled.kind, self.on_player_killed)
        bus.subscribe(PunishmentDecision.kind, self.on_punishment)

    async def close(self) -> None:
        if self._bus is not None:
            self._bus.unsubscribe(PlayerKilled.kind, self.on_player_killed)
            self._bus.unsubscribe(PunishmentDecision.kind, self.on_punishment)
            self._bus = None
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
        self._webhook = None

    async def _send(self, embed: discord.Embed) -> None:
        try:
            await self._get_webhook().send(embed=embed)
        except (discord.HTTPException, aiohttp.ClientError) as e:
            logs.error("discord_notify_failed", title=embed.title, error=repr(e))

    async def on_player_killed(self, event: PlayerKilled) -> None:
        if not event.friendly_fire:
            return
        await self._send(friendly_fire_embed(event, self.server_name))

    async def on_punishment(self, decision: PunishmentDecision) -> None:
        await self._send(punishment_embed(decision, self.server_name))


__all__ = ["DiscordNotifier", "friendly_fire_embed", "punishment_embed"]
