"""Duet bridge: two CLI coding agents working one task in tmux."""

__version__ = "0.1.0"
