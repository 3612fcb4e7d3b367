"""HTTP surface of the delivery agent."""
