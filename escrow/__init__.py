"""Escrow and settlement engine for peer-to-peer marketplace sales."""

__version__ = "0.1.0"
