"""
Companion (Cat) Service
=======================

Cats grow from their owner's community activity:
- review post     +20 experience
- discussion post +15 experience
- emotion post    +10 experience
- journal entry   +10 experience

FAN-OUT:
--------
A user can own several cats. One rewarded action grows ALL of them:
each gets the points, a recomputed level and +1 on the matching
per-activity counter.

All cats are updated inside ONE transaction with their rows locked, so
a failure halfway leaves no cat updated. Callers that are already in
a transaction (post creation, journal entries) get a savepoint, and
the grant commits or rolls back together with the action that caused it.
"""

import logging

from django.db import transaction

from .effects import Effect
from .exceptions import ObjectNotFound, check_fields
from .models import Cat

logger = logging.getLogger(__name__)

CAT_FIELDS = frozenset({
    'name', 'emoji', 'cat_type', 'description', 'specialty',
    'achievements', 'max_experience',
})


def create_cat(user, fields: dict) -> Cat:
    """Adopt a new cat at level 1 with no experience."""
    check_fields('cat', fields, CAT_FIELDS)
    cat = Cat(user=user, **fields)
    cat.full_clean()
    cat.save()
    logger.info("User %s adopted cat %s", user.id, cat.id)
    return cat


def update_cat(cat_id, fields: dict) -> Cat:
    """
    Edit a cat's display fields.

    level, experience and stats are not in CAT_FIELDS: they only
    change through add_experience().
    """
    check_fields('cat', fields, CAT_FIELDS)
    with transaction.atomic():
        cat = Cat.objects.select_for_update().filter(id=cat_id).first()
        if cat is None:
            raise ObjectNotFound(f"Cat {cat_id} does not exist")
        for name, value in fields.items():
            setattr(cat, name, value)
        cat.full_clean()
        cat.save(update_fields=[*fields, 'updated_at'])
    return cat


def add_experience(user_id, activity: str, points: int) -> list[Effect]:
    """
    Grant `points` to every cat the user owns.

    Returns one 'experience' and one stat-counter Effect per cat.
    A user without cats gets an empty list.
    """
    stat_field = Cat.STAT_FIELDS.get(activity)
    if stat_field is None:
        raise ValueError(f"Invalid activity: {activity}")
    if points < 0:
        raise ValueError("Experience never decreases")

    effects = []
    with transaction.atomic():
        cats = Cat.objects.select_for_update().filter(user_id=user_id).order_by('id')
        for cat in cats:
            cat.experience += points
            setattr(cat, stat_field, getattr(cat, stat_field) + 1)
            # save() recomputes level from experience
            cat.save(update_fields=['experience', stat_field])

            effects.append(Effect('cat', cat.id, 'experience', points))
            effects.append(Effect('cat', cat.id, stat_field, 1))

    logger.debug(
        "Granted %s %s experience to %s cat(s) of user %s",
        points, activity, len(effects) // 2, user_id
    )
    return effects
