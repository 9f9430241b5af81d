"""Wiring for the billing engine.

``Container`` holds the protocol implementations; ``create_container`` builds
one from settings. Process entry points (the webhook app, the reconciliation
job) call ``initialize_container`` once and then read ``container``:

    from billsync.core import container as container_module
    from billsync.core.config import settings
    from billsync.core.container import initialize_container

    initialize_container(settings)
    billing_sync = container_module.container.billing_sync
"""

from typing import TYPE_CHECKING, Optional

from billsync.core.container.container import Container
from billsync.core.container.factory import create_container

if TYPE_CHECKING:
    from billsync.core.config import Settings

__all__ = ["Container", "create_container", "container", "initialize_container", "reset_container"]

container: Optional[Container] = None
"""Process-wide container, set by ``initialize_container``.

Domain code never reads this; services get their collaborators through their
constructors.
"""


def initialize_container(settings: "Settings") -> None:
    """Build the process-wide container.

    Raises:
        RuntimeError: If a container is already set
    """
    global container

    if container is not None:
        raise RuntimeError("Billing container already initialized; call reset_container() first")
    container = create_container(settings)


def reset_container() -> None:
    """Drop the process-wide container (tests only)."""
    global container
    container = None
