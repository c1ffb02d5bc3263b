"""Credit-gated AI email generation with a per-user history vault."""

__version__ = "0.1.0"
