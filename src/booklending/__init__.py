"""Peer-to-peer book lending with escrowed deposits, rewards and reputation."""

__version__ = "0.1.0"
