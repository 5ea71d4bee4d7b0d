"""keepalive: keeps a single external executable running until an operator stops it."""

__version__ = "0.1.0"
