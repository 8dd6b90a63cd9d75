"""MediaForge - asynchronous job engine for external media tools."""

__version__ = "0.1.0"
