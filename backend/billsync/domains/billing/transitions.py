"""State transition mapper.

Pure mapping from an event type plus payload to the candidate account fields.
Fields the payload omits keep their previous value.
"""

from typing import Optional

from billsync.domains.billing.types import (
    ACTIVE_SUBSCRIPTION_STATUSES,
    TERMINAL_PAYMENT_STATUSES,
    AccountChanges,
    AccountSnapshot,
    derive_plan,
)
from billsync.schemas.billing_event import BillingEventType, BillingUpdateRequest

_SUBSCRIPTION_CHANGES = frozenset(
    {
        BillingEventType.SUBSCRIPTION_CREATED,
        BillingEventType.SUBSCRIPTION_UPDATED,
        BillingEventType.SUBSCRIPTION_UPGRADED,
        BillingEventType.SUBSCRIPTION_DOWNGRADED,
    }
)


def resolve_event_type(event_type: str) -> Optional[BillingEventType]:
    """Return the known event type, or None for types this engine does not recognize."""
    try:
        return BillingEventType(event_type)
    except ValueError:
        return None


def _customer_id(request: BillingUpdateRequest, current: AccountSnapshot) -> Optional[str]:
    # A missing or empty customer id never clears a stored one
    return request.payment_customer_id or current.payment_customer_id


def _subscription_id(request: BillingUpdateRequest, current: AccountSnapshot) -> Optional[str]:
    if "payment_subscription_id" in request.model_fields_set:
        return request.payment_subscription_id
    return current.payment_subscription_id


def _payment_succeeded_restores(request: BillingUpdateRequest) -> bool:
    if request.subscription_status is not None:
        return request.subscription_status in ACTIVE_SUBSCRIPTION_STATUSES
    return request.is_pro


def map_transition(request: BillingUpdateRequest, current: AccountSnapshot) -> AccountChanges:
    """Compute the candidate account state for one event.

    customer_created and customer_linked only touch identifiers; the entitlement
    stays as stored.

    Args:
        request: The billing event being applied
        current: Value snapshot of the account the write will be conditioned on

    Returns:
        Fully resolved candidate fields, flagged ``recognized=False`` for event
        types outside :class:`BillingEventType` (those apply the provided fields)
    """
    event_type = resolve_event_type(request.event_type)
    customer_id = _customer_id(request, current)
    subscription_id = _subscription_id(request, current)
    is_pro = current.is_pro

    if event_type is None or event_type in _SUBSCRIPTION_CHANGES:
        is_pro = request.is_pro
    elif event_type == BillingEventType.SUBSCRIPTION_DELETED:
        is_pro = False
        subscription_id = None
        customer_id = current.payment_customer_id
    elif event_type == BillingEventType.PAYMENT_FAILED:
        if request.subscription_status in TERMINAL_PAYMENT_STATUSES:
            is_pro = False
    elif event_type == BillingEventType.PAYMENT_SUCCEEDED:
        if _payment_succeeded_restores(request):
            is_pro = True
    elif event_type == BillingEventType.RECONCILIATION_FIX:
        # Reconciliation carries the provider's authoritative entitlement
        is_pro = request.is_pro

    return AccountChanges(
        is_pro=is_pro,
        plan=derive_plan(is_pro, current.plan, request.plan),
        payment_customer_id=customer_id,
        payment_subscription_id=subscription_id,
        recognized=event_type is not None,
    )
