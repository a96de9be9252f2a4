from typing import Dict, FrozenSet, Type

from shared.utils import StateError
from storefront.models import (
    FAQ, AppUser, BlogPost, Category, ContactMessage, FAQCategory, Lifecycle, Product, Slider,
)

Transitions = Dict[Lifecycle, FrozenSet[Lifecycle]]

CONTENT_TRANSITIONS: Transitions = {
    Lifecycle.ACTIVE: frozenset({Lifecycle.DISABLED, Lifecycle.DELETED}),
    Lifecycle.DISABLED: frozenset({Lifecycle.ACTIVE, Lifecycle.DELETED}),
    Lifecycle.DELETED: frozenset({Lifecycle.ACTIVE}),
}

# A deleted account stays deleted; usernames and emails remain reserved.
USER_TRANSITIONS: Transitions = {
    Lifecycle.ACTIVE: frozenset({Lifecycle.DISABLED, Lifecycle.DELETED}),
    Lifecycle.DISABLED: frozenset({Lifecycle.ACTIVE, Lifecycle.DELETED}),
    Lifecycle.DELETED: frozenset(),
}

MESSAGE_TRANSITIONS: Transitions = {
    Lifecycle.ACTIVE: frozenset({Lifecycle.DELETED}),
    Lifecycle.DISABLED: frozenset({Lifecycle.ACTIVE, Lifecycle.DELETED}),
    Lifecycle.DELETED: frozenset({Lifecycle.ACTIVE}),
}

TRANSITION_TABLE: Dict[Type, Transitions] = {
    Product: CONTENT_TRANSITIONS,
    Category: CONTENT_TRANSITIONS,
    BlogPost: CONTENT_TRANSITIONS,
    FAQ: CONTENT_TRANSITIONS,
    FAQCategory: CONTENT_TRANSITIONS,
    Slider: CONTENT_TRANSITIONS,
    AppUser: USER_TRANSITIONS,
    ContactMessage: MESSAGE_TRANSITIONS,
}


def can_transition(entity_type: Type, current: Lifecycle, target: Lifecycle) -> bool:
    if current == target:
        return True
    return target in TRANSITION_TABLE[entity_type][current]


def transition(entity, target: Lifecycle):
    """Move `entity` to `target`, raising StateError when the table forbids it."""
    current = entity.lifecycle
    if current == target:
        return entity
    if not can_transition(type(entity), current, target):
        raise StateError(
            f"{type(entity).__name__} cannot go from {current.value} to {target.value}",
            context={"id": entity.id, "from": current.value, "to": target.value},
        )
    entity.lifecycle = target
    entity.touch()
    return entity


def toggle(entity):
    """Flip between active and disabled."""
    if entity.lifecycle == Lifecycle.DELETED:
        raise StateError(f"{type(entity).__name__} {entity.id} is deleted")
    target = Lifecycle.DISABLED if entity.lifecycle == Lifecycle.ACTIVE else Lifecycle.ACTIVE
    return transition(entity, target)


def ensure_editable(entity):
    if entity.lifecycle == Lifecycle.DELETED:
        raise StateError(
            f"{type(entity).__name__} {entity.id} is deleted and must be restored before editing",
            context={"id": entity.id},
        )
    return entity
