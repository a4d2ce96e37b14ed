"""BloodLink notification sync client."""

__version__ = "0.1.0"
