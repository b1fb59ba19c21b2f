"""Configuration management for ShiftSync."""

from .settings import ShiftSyncSettings, get_settings, reset_settings

__all__ = ["ShiftSyncSettings", "get_settings", "reset_settings"]
