"""Business domains of the billing engine."""
