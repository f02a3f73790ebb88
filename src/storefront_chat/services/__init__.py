# src/storefront_chat/services/__init__.py
"""Business logic services for the Storefront Chat service."""
