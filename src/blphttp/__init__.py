"""BLPAPI HTTP gateway configuration resolver."""

__version__ = "1.0.0"
