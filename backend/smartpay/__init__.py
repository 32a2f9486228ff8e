"""
Smart Pay - processor integration for webshop checkouts.

Signs order announcements, verifies notifications and browser returns,
and reconciles payment state against the processor's order result feed.
"""

__version__ = "0.1.0"
__all__ = ["api", "db", "mocks", "models", "services"]
