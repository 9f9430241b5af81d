"""Billsync: billing state synchronization for payment-provider events."""
