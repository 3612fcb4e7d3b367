"""Core configuration for the delivery agent."""
