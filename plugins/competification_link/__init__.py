"""Competification Link Plugin for SquadRelay.

Sends connecting players' Steam ID and EOS ID to the Competification API.
"""

from .plugin import CompetificationLinkPlugin

__all__ = ['CompetificationLinkPlugin']
