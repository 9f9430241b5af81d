"""Enums used by the settings model."""

from enum import Enum


class Environment(str, Enum):
    """Where the billing engine is deployed."""

    LOCAL = "local"
    TEST = "test"
    DEV = "dev"
    PRD = "prd"
