"""
Community Store: the client-side cache in front of the services
===============================================================

One CommunityStore lives for one user session. It owns every cached
list the presentation layer renders (feed page, focused post, its
comment forest, cats, journal) plus a status and error message per
entity family. Nothing else mutates those lists; everything goes
through the action methods below.

STATE MACHINE (per family: posts, comments, cats, emotions):
------------------------------------------------------------
    idle -> loading -> loaded | errored
    loaded -> loading          (refetch)
    errored -> loading         (retry)

Families are independent: a failed cats fetch never blocks posts.

HOW THE CACHE FOLLOWS THE SERVER:
---------------------------------
1. Creations splice the row returned by the service into the cache,
   so the UI shows it without a refetch.
2. Counter side effects come back from the service as Effect records
   and are replayed on the cached rows (comment_count, cat experience).
3. Like toggles copy like_count / liked_by from the LikeResult, which
   was decided against the locked row. The cache never guesses whether
   a toggle was a like or an unlike.

ERRORS:
-------
- No signed-in user on a mutating action: AuthorizationRequired is raised
  before any service call or state change.
- Service errors: the family's error message is set, then re-raised so
  the caller can decide whether to show a toast. No automatic retry.
- View counting never sets an error.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Optional

from django.conf import settings
from django.core.exceptions import ValidationError

from . import companions, journal, queries, services
from .effects import WriteResult
from .exceptions import (
    AuthorizationRequired,
    AuthorshipViolation,
    CommunityError,
    StateTransitionError,
)
from .models import level_for_experience
from .queries import PostFilters, build_comment_forest, iter_comment_nodes

logger = logging.getLogger(__name__)

IDLE = 'idle'
LOADING = 'loading'
LOADED = 'loaded'
ERRORED = 'errored'

ALLOWED_TRANSITIONS = {
    IDLE: {LOADING},
    LOADING: {LOADED, ERRORED},
    LOADED: {LOADING},
    ERRORED: {LOADING},
}

FAMILIES = ('posts', 'comments', 'cats', 'emotions')


@dataclass
class FamilyState:
    status: str = IDLE
    error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.status == LOADING

    def transition(self, new_status: str) -> None:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise StateTransitionError(f"Cannot go from {self.status} to {new_status}")
        self.status = new_status


def _message_for(exc: Exception, fallback: str) -> str:
    """Human-readable message for the error slot of a family."""
    if isinstance(exc, (CommunityError, ValueError)):
        return str(exc) or fallback
    if isinstance(exc, ValidationError):
        return '; '.join(exc.messages)
    return fallback


class CommunityStore:
    """
    Session cache for the community pages.

    `identity` is a zero-argument callable returning the signed-in user,
    or None (an anonymous user counts as None).
    """

    def __init__(self, identity: Callable, page_size: Optional[int] = None):
        self.identity = identity
        self.page_size = page_size or getattr(settings, 'COMMUNITY_PAGE_SIZE', queries.DEFAULT_PAGE_SIZE)

        self.posts = []
        self.current_post = None
        self.filters = PostFilters()
        self.post_cursor = None
        self.has_more_posts = True
        self.is_loading_more = False

        self.comments = []
        self.comments_post_id = None

        self.cats = []
        self.emotions = []

        self.state = {family: FamilyState() for family in FAMILIES}

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    def _require_user(self):
        user = self.identity()
        if user is None or not getattr(user, 'is_authenticated', False):
            raise AuthorizationRequired()
        return user

    @contextmanager
    def _loading(self, family: str, failure_message: str):
        state = self.state[family]
        state.transition(LOADING)
        state.error = None
        try:
            yield
        except Exception as exc:
            state.transition(ERRORED)
            state.error = _message_for(exc, failure_message)
            logger.warning("%s fetch failed: %s", family, exc)
            raise
        state.transition(LOADED)

    @contextmanager
    def _mutation(self, family: str, failure_message: str):
        try:
            yield
        except Exception as exc:
            self.state[family].error = _message_for(exc, failure_message)
            logger.warning("%s update failed: %s", family, exc)
            raise

    def _cached_posts(self, post_id) -> list:
        """Every cached copy of a post, each object once."""
        found = []
        for post in [*self.posts, self.current_post]:
            if post is not None and post.id == post_id and not any(p is post for p in found):
                found.append(post)
        return found

    def _find_comment_node(self, comment_id) -> Optional[dict]:
        for node in iter_comment_nodes(self.comments):
            if node['comment'].id == comment_id:
                return node
        return None

    def _apply_effects(self, result: WriteResult) -> None:
        """Replay a write's side effects on cached posts and cats. Profiles aren't cached."""
        for effect in result.effects_for('post'):
            for post in self._cached_posts(effect.target_id):
                setattr(post, effect.field, getattr(post, effect.field) + effect.delta)

        for effect in result.effects_for('cat'):
            for cat in self.cats:
                if cat.id != effect.target_id:
                    continue
                setattr(cat, effect.field, getattr(cat, effect.field) + effect.delta)
                if effect.field == 'experience':
                    cat.level = level_for_experience(cat.experience)

    def _receive_page(self, page, reset: bool) -> None:
        self.posts = list(page.items) if reset else [*self.posts, *page.items]
        self.post_cursor = page.next_cursor
        self.has_more_posts = page.has_more

    def _check_authorship(self, post_id, user, verb: str) -> None:
        # Checked against the cache only; a stale copy can pass
        for post in self._cached_posts(post_id):
            if post.author_id != user.id:
                raise AuthorshipViolation(f"You can only {verb} your own posts.")

    # ------------------------------------------------------------------
    # posts
    # ------------------------------------------------------------------

    def fetch_posts(self, reset: bool = True) -> None:
        """Newest posts, unfiltered."""
        self.filters = PostFilters()
        with self._loading('posts', "Failed to load posts."):
            page = queries.list_posts(self.page_size)
            self._receive_page(page, reset)

    def fetch_post(self, post_id) -> None:
        with self._loading('posts', "Failed to load post."):
            self.current_post = queries.get_post(post_id)

    def search_posts(self, filters: PostFilters, reset: bool = True) -> None:
        self.filters = filters
        with self._loading('posts', "Search failed."):
            page = queries.list_filtered_posts(filters, self.page_size)
            self._receive_page(page, reset)

    def load_more_posts(self) -> None:
        """
        Append the next page using the last filters.

        No-op while a page load is in flight, when there is no cursor,
        or when the previous page came back short.
        """
        if self.is_loading_more or not self.has_more_posts or not self.post_cursor:
            return

        self.is_loading_more = True
        try:
            with self._loading('posts', "Failed to load more posts."):
                if self.filters.is_empty:
                    page = queries.list_posts(self.page_size, self.post_cursor)
                else:
                    page = queries.list_filtered_posts(self.filters, self.page_size, self.post_cursor)
                self._receive_page(page, reset=False)
        finally:
            self.is_loading_more = False

    def add_post(self, draft: dict):
        user = self._require_user()
        with self._mutation('posts', "Failed to create post."):
            result = services.create_post(user, draft)

        self.posts.insert(0, result.instance)
        self._apply_effects(result)
        return result.id

    def update_post(self, post_id, fields: dict) -> None:
        user = self._require_user()
        with self._mutation('posts', "Failed to update post."):
            self._check_authorship(post_id, user, 'edit')
            post = services.update_post(post_id, fields)

        self.posts = [post if cached.id == post_id else cached for cached in self.posts]
        if self.current_post is not None and self.current_post.id == post_id:
            self.current_post = post

    def delete_post(self, post_id) -> None:
        user = self._require_user()
        with self._mutation('posts', "Failed to delete post."):
            self._check_authorship(post_id, user, 'delete')
            services.delete_post(post_id)

        self.posts = [post for post in self.posts if post.id != post_id]
        if self.current_post is not None and self.current_post.id == post_id:
            self.current_post = None
        if self.comments_post_id == post_id:
            self.comments = []

    def toggle_post_like(self, post_id):
        user = self._require_user()
        with self._mutation('posts', "Failed to update like."):
            result = services.toggle_post_like(user, post_id)

        for post in self._cached_posts(post_id):
            post.like_count = result.like_count
            post.liked_by = list(result.liked_by)
        return result

    def increment_post_views(self, post_id) -> None:
        """Best-effort; a failure only shows up in the logs."""
        if not services.increment_post_views(post_id):
            return
        for post in self._cached_posts(post_id):
            post.view_count += 1

    def set_current_post(self, post) -> None:
        self.current_post = post

    def set_filters(self, filters: PostFilters) -> None:
        self.filters = filters

    # ------------------------------------------------------------------
    # comments
    # ------------------------------------------------------------------

    def fetch_comments(self, post_id) -> None:
        with self._loading('comments', "Failed to load comments."):
            self.comments = queries.list_comments(post_id)
            self.comments_post_id = post_id

    def add_comment(self, post_id, content: str, parent_comment_id=None):
        user = self._require_user()
        with self._mutation('comments', "Failed to add comment."):
            result = services.add_comment(user, post_id, content, parent_comment_id)

        if self.comments_post_id == post_id:
            node = {'comment': result.instance, 'replies': []}
            parent = self._find_comment_node(parent_comment_id) if parent_comment_id else None
            if parent is not None:
                parent['replies'].append(node)
            else:
                # Roots are chronological, so new ones go last
                self.comments.append(node)
        self._apply_effects(result)
        return result.id

    def update_comment(self, comment_id, fields: dict) -> None:
        self._require_user()
        with self._mutation('comments', "Failed to update comment."):
            comment = services.update_comment(comment_id, fields)

        node = self._find_comment_node(comment_id)
        if node is not None:
            node['comment'] = comment

    def delete_comment(self, comment_id) -> None:
        """
        Remove a comment from the cache the way the next fetch would show it:
        its replies stay and move up to the root level.
        """
        self._require_user()
        with self._mutation('comments', "Failed to delete comment."):
            result = services.delete_comment(comment_id)

        remaining = [
            node['comment'] for node in iter_comment_nodes(self.comments)
            if node['comment'].id != comment_id
        ]
        remaining.sort(key=lambda comment: (comment.created_at, comment.id))
        self.comments = build_comment_forest(remaining)
        self._apply_effects(result)

    def toggle_comment_like(self, comment_id):
        user = self._require_user()
        with self._mutation('comments', "Failed to update comment like."):
            result = services.toggle_comment_like(user, comment_id)

        node = self._find_comment_node(comment_id)
        if node is not None:
            node['comment'].like_count = result.like_count
            node['comment'].liked_by = list(result.liked_by)
        return result

    # ------------------------------------------------------------------
    # cats
    # ------------------------------------------------------------------

    def fetch_cats(self, user_id=None) -> None:
        if user_id is None:
            user_id = self._require_user().id
        with self._loading('cats', "Failed to load cats."):
            self.cats = queries.list_cats(user_id)

    def add_cat(self, fields: dict):
        user = self._require_user()
        with self._mutation('cats', "Failed to adopt cat."):
            cat = companions.create_cat(user, fields)
        self.cats.append(cat)
        return cat.id

    def update_cat(self, cat_id, fields: dict) -> None:
        self._require_user()
        with self._mutation('cats', "Failed to update cat."):
            cat = companions.update_cat(cat_id, fields)
        self.cats = [cat if cached.id == cat_id else cached for cached in self.cats]

    # ------------------------------------------------------------------
    # emotion journal
    # ------------------------------------------------------------------

    def fetch_emotions(self, user_id=None) -> None:
        if user_id is None:
            user_id = self._require_user().id
        with self._loading('emotions', "Failed to load emotion records."):
            self.emotions = queries.list_emotions(user_id)

    def add_emotion(self, fields: dict):
        user = self._require_user()
        with self._mutation('emotions', "Failed to add emotion record."):
            result = journal.create_emotion(user, fields)

        self.emotions.insert(0, result.instance)
        self._apply_effects(result)
        return result.id

    def update_emotion(self, record_id, fields: dict) -> None:
        self._require_user()
        with self._mutation('emotions', "Failed to update emotion record."):
            record = journal.update_emotion(record_id, fields)
        self.emotions = [record if cached.id == record_id else cached for cached in self.emotions]

    def delete_emotion(self, record_id) -> None:
        self._require_user()
        with self._mutation('emotions', "Failed to delete emotion record."):
            journal.delete_emotion(record_id)
        self.emotions = [record for record in self.emotions if record.id != record_id]

    # ------------------------------------------------------------------
    # utilities
    # ------------------------------------------------------------------

    def clear_errors(self) -> None:
        """Reset error messages only; statuses and cached data stay."""
        for state in self.state.values():
            state.error = None
