"""Command-line utilities for operating the delivery agent."""
