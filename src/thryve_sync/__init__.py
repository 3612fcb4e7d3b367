"""Offline-first message delivery for the Thryve chat client."""

__version__ = "0.1.0"
