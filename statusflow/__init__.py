"""Status transition validation and event notification delivery."""

__version__ = "1.0.0"
