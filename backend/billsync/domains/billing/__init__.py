"""Billing state synchronization domain."""
