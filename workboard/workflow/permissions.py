"""Capability checks the client enforces before offering an action."""

from __future__ import annotations

from .models import Actor, WorkItem

# Fields that stay editable on lecturer-originated items.
LECTURER_ITEM_EDITABLE_FIELDS: frozenset[str] = frozenset({"status"})


def can_approve(actor: Actor) -> bool:
    return actor.is_group_leader


def can_edit_details(item: WorkItem, fields: set[str] | frozenset[str]) -> bool:
    if not item.is_lecturer_assigned:
        return True
    return set(fields) <= LECTURER_ITEM_EDITABLE_FIELDS


def can_delete(actor: Actor, item: WorkItem) -> bool:
    if item.is_lecturer_assigned:
        return False
    return actor.is_group_leader or item.reporter_id == actor.user_id
