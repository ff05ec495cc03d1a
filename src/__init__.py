"""
SquadRelay - Squad server plugins

Posts end-of-round scoreboards to Discord and links player Steam and EOS
accounts through the Competification API.
"""

__version__ = "1.0.0"
__author__ = "SquadRelay Team"
