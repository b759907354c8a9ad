"""Configuration package for the balance report."""

from .settings import BalanceSettings, get_settings

__all__ = ["BalanceSettings", "get_settings"]
