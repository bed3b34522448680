"""LEMP stack provisioning and verification for Ubuntu hosts."""

APP_NAME: str = "LEMP Setup"
VERSION: str = "1.0.0"

__all__ = ["APP_NAME", "VERSION"]
