"""Turn a handheld device into a wireless keyboard, pointer and remote."""

__version__ = "0.1.0"
