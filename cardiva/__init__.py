"""Cardiva: tender/RFP match review backend."""

__version__ = "0.1.0"
