"""
Role & Scope Resolver — who may act on which workflow item.

``resolve(actor)`` builds an immutable ``Capabilities`` snapshot once per
request from the actor's role set and active assignment rows.  Callers pass
that snapshot (or the actor itself) to ``can_act``.

Scope kinds:
    none   — capability check only (creation)
    owner  — actor must be the item's creator
    area   — one of the item's operating areas must be reviewable
    hub    — the hub bound to the item's operating area must be fulfillable

Evaluation is deny-by-default: a role without assignment rows grants no
scope.  ``super_admin`` is the only wildcard and implies every role.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fieldops.core.exceptions import Forbidden
from fieldops.services import scope_store

logger = logging.getLogger(__name__)

SCOPE_KINDS = ("none", "owner", "area", "hub")


@dataclass(frozen=True)
class Capabilities:
    """Resolved roles and scope for one actor."""

    user_id: int | None
    roles: frozenset[str]
    reviewable_areas: frozenset[str] = frozenset()
    fulfillable_hubs: frozenset[str] = frozenset()

    @property
    def is_super_admin(self) -> bool:
        return "super_admin" in self.roles

    @property
    def wildcard(self) -> bool:
        return self.is_super_admin

    def has(self, capability: str) -> bool:
        return self.is_super_admin or capability in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has("admin")

    @property
    def is_opx(self) -> bool:
        return self.has("opx")

    @property
    def is_hub_admin(self) -> bool:
        return self.has("hub_admin")

    @property
    def is_tps(self) -> bool:
        return self.has("tps")

    @property
    def is_field_staff(self) -> bool:
        return self.has("field_staff")

    def can_review(self, ops_area: str) -> bool:
        return self.wildcard or ops_area in self.reviewable_areas

    def can_fulfil(self, hub: str) -> bool:
        return self.wildcard or hub in self.fulfillable_hubs

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "roles": sorted(self.roles),
            "is_admin": self.is_admin,
            "is_super_admin": self.is_super_admin,
            "reviewable_areas": "*" if self.wildcard else sorted(self.reviewable_areas),
            "fulfillable_hubs": "*" if self.wildcard else sorted(self.fulfillable_hubs),
        }


NO_CAPABILITIES = Capabilities(user_id=None, roles=frozenset())


def resolve(actor) -> Capabilities:
    """Compute the capability snapshot for *actor* (a User row)."""
    if isinstance(actor, Capabilities):
        return actor
    if actor is None or not actor.is_active:
        return NO_CAPABILITIES
    return Capabilities(
        user_id=actor.id,
        roles=frozenset(actor.role_names),
        reviewable_areas=scope_store.active_areas_for(actor.id),
        fulfillable_hubs=scope_store.active_hubs_for(actor.id),
    )


def _scope_ok(caps: Capabilities, item, scope_kind: str) -> bool:
    if scope_kind == "none":
        return True
    if scope_kind == "owner":
        return item is not None and item.created_by_user_id == caps.user_id
    if scope_kind == "area":
        return any(caps.can_review(area) for area in item.ops_areas)
    if scope_kind == "hub":
        return caps.can_fulfil(scope_store.hub_for(item.ops_area))
    raise ValueError(f"Unknown scope kind: {scope_kind}")


def can_act(actor_or_caps, item, required_capabilities, scope_kind: str = "none") -> Capabilities:
    """
    Raise ``Forbidden`` unless the actor holds one of *required_capabilities*
    and satisfies *scope_kind* for *item*.  Returns the resolved capabilities.
    """
    caps = resolve(actor_or_caps)

    if not any(caps.has(c) for c in required_capabilities):
        raise Forbidden(
            f"Requires one of: {', '.join(required_capabilities)}"
        )
    if not _scope_ok(caps, item, scope_kind):
        logger.info(
            "Scope denied (%s)", scope_kind,
            extra={"actor_id": caps.user_id,
                   "family": getattr(item, "FAMILY", None),
                   "item_id": getattr(item, "id", None)},
        )
        raise Forbidden(f"Actor lacks {scope_kind} scope for this item")
    return caps


def can_view(actor_or_caps, item) -> bool:
    """Creator, reviewers of any of its areas, or fulfillers of its hub."""
    caps = resolve(actor_or_caps)
    if caps.wildcard or item.created_by_user_id == caps.user_id:
        return True
    if any(caps.can_review(area) for area in item.ops_areas):
        return True
    hubs = {scope_store.hub_for(area) for area in item.ops_areas}
    return any(caps.can_fulfil(h) for h in hubs)
