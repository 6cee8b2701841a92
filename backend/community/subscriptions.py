"""
Live updates for a single post.

    unsubscribe = subscribe_to_post(post.id, lambda post: print(post.like_count))
    ...
    unsubscribe()

The callback receives a freshly loaded Post after every committed write
that touches it (likes, views, comments, edits), or None once it is
deleted. Delivery is in-process only, via the post_changed signal.
"""

import logging
from typing import Callable, Optional

from .models import Post
from .signals import post_changed

logger = logging.getLogger(__name__)


def subscribe_to_post(post_id, callback: Callable[[Optional[Post]], None]) -> Callable[[], None]:
    def receiver(sender, post_id: int, **kwargs):
        if int(post_id) != watched_id:
            return
        callback(Post.objects.filter(id=post_id).first())

    watched_id = int(post_id)
    # weak=False: the closure is only referenced by the signal
    post_changed.connect(receiver, weak=False)
    logger.debug("Subscribed to post %s", watched_id)

    def unsubscribe():
        post_changed.disconnect(receiver)
        logger.debug("Unsubscribed from post %s", watched_id)

    return unsubscribe
