# Overview: Ownership authorization for stores, products, banners and purchases.

"""
Authorization Evaluator

Every mutating or private read operation answers one question:
"does this actor control the resource?". The answer always comes from
walking the ownership chain to a user id:

    User --owns--> Store --owns--> {Product, StoreBanner, Purchase}

and comparing it with the actor, with admins short-circuiting to allow.

authorize() and resolve_owner() are pure: no queries beyond lazy
relationship loads, no commits, no logging. require_owner() composes
them and raises. Recording a denial is the caller's job
(log_security_event), so the decision itself stays testable in isolation.
"""

from __future__ import annotations

from typing import Protocol

from ..extensions import db
from ..errors import NotFoundError, PermissionDeniedError
from ..models import ROLE_ADMIN, Product, Purchase, SecurityEvent, Store, StoreBanner


class Actor(Protocol):
    id: int
    role: str


def authorize(actor: Actor | None, resource_owner_id: int | None) -> bool:
    """
    Allow iff the actor is an admin or owns the resource. No other bypass.

    A missing actor or owner id is always a deny.
    """
    if actor is None or resource_owner_id is None:
        return False
    if actor.role == ROLE_ADMIN:
        return True
    return actor.id is not None and actor.id == resource_owner_id


def resolve_owner(resource) -> int | None:
    """
    Walk the ownership chain of ``resource`` to the owning user id.

    Returns None when the chain is broken (dangling store reference).
    """
    if resource is None:
        return None
    if isinstance(resource, Store):
        return resource.owner_id
    if isinstance(resource, Product):
        # Denormalized copy of store.owner_id
        return resource.owner_id
    if isinstance(resource, (Purchase, StoreBanner)):
        store = resource.store
        return store.owner_id if store is not None else None
    raise TypeError(f"No ownership chain for {type(resource).__name__}")


def require_owner(actor: Actor | None, resource, *, label: str, action: str = "access"):
    """
    Raise unless ``actor`` controls ``resource``.

    - resource missing, or its owner cannot be resolved -> NotFoundError
      (the parent vanished; do not report it as a permission problem)
    - owner resolved but actor is neither owner nor admin -> PermissionDeniedError
    """
    if resource is None:
        raise NotFoundError(f"{label} not found")

    owner_id = resolve_owner(resource)
    if owner_id is None:
        raise NotFoundError(f"{label} not found")

    if not authorize(actor, owner_id):
        raise PermissionDeniedError(f"You do not have permission to {action} this {label.lower()}")

    return resource


def check_owner_consistency(product: Product) -> bool:
    """True when the product's denormalized owner matches its store's owner."""
    store = product.store
    return store is not None and product.owner_id == store.owner_id


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - AUTH_FAILED
    - ADMIN_REQUIRED
    - OWNERSHIP_DENIED
    - LOGIN_FAILED
    - PASSWORD_CHANGED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.session.add(event)
    db.session.commit()
    return event
