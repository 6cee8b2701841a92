"""
Django Signals for the community app.

Two concerns live here:

1. Profile bootstrap
   - Every user gets a UserProfile (display fields + denormalized stats)
   - Created on the user's first save, so services can always F()-update it

2. post_changed
   - Custom signal fired AFTER COMMIT whenever a write touches a post
   - Backs subscriptions.subscribe_to_post()

IMPORTANT: Counters are NOT maintained here.
Built-in model signals do not fire on QuerySet.update(), and the
services bump counters with QuerySet.update(field=F(...)). Each write
path in services.py lists its side effects explicitly instead.
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import Signal, receiver

from .models import Post, UserProfile

logger = logging.getLogger(__name__)

# Sent with sender=Post and kwarg post_id
post_changed = Signal()


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_profile(sender, instance, created, **kwargs):
    """Give new users an empty stats profile."""
    if created:
        UserProfile.objects.get_or_create(user=instance)


def notify_post_changed(post_id):
    """
    Queue a post_changed notification for when the current transaction commits.

    Outside a transaction on_commit() runs the callback immediately.
    Rolled-back writes never notify. The write has already committed when
    subscribers run, so their errors are logged and never reach the writer.
    """
    transaction.on_commit(lambda: _send_post_changed(post_id))


def _send_post_changed(post_id):
    for receiver_fn, result in post_changed.send_robust(sender=Post, post_id=post_id):
        if isinstance(result, Exception):
            logger.error(
                "post_changed subscriber %r failed for post %s: %s",
                receiver_fn, post_id, result, exc_info=result
            )
