"""Clients for external brokerage services."""
