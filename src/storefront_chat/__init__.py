"""Storefront Chat: realtime buyer/seller messaging service."""

__version__ = "0.1.0"
