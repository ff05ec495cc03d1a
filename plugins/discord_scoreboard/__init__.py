"""Discord Scoreboard Plugin for SquadRelay.

Posts end-of-round scoreboard CSV files to a Discord channel.
"""

from .plugin import DiscordScoreboardPlugin

__all__ = ['DiscordScoreboardPlugin']
