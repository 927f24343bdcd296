"""shortlink: short codes for long URLs, with click counting."""

__version__ = "1.0.0"
