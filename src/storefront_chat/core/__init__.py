"""Configuration, security and logging setup."""
