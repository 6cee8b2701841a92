"""
Post & Comment Write Paths
==========================

This module handles every write against posts and comments with:
1. One transaction per logical action
2. Row locks for read-modify-write (likes)
3. An explicit, ordered list of side effects returned to the caller

SIDE EFFECTS PER ACTION:
------------------------
create_post    -> profile.posts_count +1, profile.<type>_count +1, cat experience
delete_post    -> reverses the profile counters above, drops comments
toggle like    -> post.like_count +-1, author.likes_received +-1 (not for self-likes)
add_comment    -> post.comment_count +1, post author.comments_received +1 (not own post)
delete_comment -> the reverse of add_comment; replies stay where they are

Each of these is hard-coded in its write path, never triggered by a
model signal, so reading one function tells you everything it touches.

CONCURRENCY STRATEGY:
---------------------
Problem: Two users clicking "like" at the exact same moment.
Naive: read liked_by -> decide -> increment like_count. Two readers both
see "not liked" and the counter is bumped twice for one array entry.

Solution: SELECT ... FOR UPDATE on the liked row, then write like_count
and liked_by in the same UPDATE. The second toggle waits for the first
and sees its result. like_count is set to len(liked_by), so the two can
never drift apart.
"""

import logging
from typing import Literal, Optional

from django.db import DatabaseError, transaction
from django.db.models import F

from .companions import add_experience
from .effects import Effect, WriteResult
from .exceptions import ObjectNotFound, check_fields
from .models import Comment, Post, PostTag, UserProfile, POST_TYPE_REWARDS
from .signals import notify_post_changed

logger = logging.getLogger(__name__)

POST_UPDATE_FIELDS = frozenset({
    'title', 'content', 'movie_title', 'rating', 'emotion', 'emotion_emoji',
    'emotion_intensity', 'tags', 'is_active', 'status',
})
POST_CREATE_FIELDS = POST_UPDATE_FIELDS | {'post_type'}

COMMENT_UPDATE_FIELDS = frozenset({'content'})

PROFILE_FIELDS = frozenset({'nickname', 'photo_url', 'bio'})


class LikeResult:
    """Result of a like operation, decided against the locked row."""
    def __init__(
        self,
        success: bool,
        action: Literal['created', 'removed', 'already_exists', 'already_removed'],
        like_count: int = 0,
        liked_by: Optional[list] = None,
        effects: Optional[list] = None
    ):
        self.success = success
        self.action = action
        self.like_count = like_count
        self.liked_by = liked_by or []
        self.effects = effects or []

    def liked_by_user(self, user_id) -> bool:
        return user_id in self.liked_by


# ============================================================================
# PROFILES
# ============================================================================

def get_or_create_profile(user) -> UserProfile:
    profile, _ = UserProfile.objects.get_or_create(user=user)
    return profile


def update_profile(user, fields: dict) -> UserProfile:
    """
    Edit the display fields of a profile. Stats are not editable.

    Existing posts and comments keep the author name they were written under.
    """
    check_fields('profile', fields, PROFILE_FIELDS)
    with transaction.atomic():
        profile = get_or_create_profile(user)
        for name, value in fields.items():
            setattr(profile, name, value)
        profile.full_clean()
        profile.save(update_fields=[*fields, 'updated_at'])
    logger.info("User %s updated profile fields %s", user.id, sorted(fields))
    return profile


def _bump_profile(user_id, **deltas) -> list[Effect]:
    """Atomically add each delta to the user's profile counters."""
    deltas = {name: delta for name, delta in deltas.items() if delta}
    if not deltas:
        return []
    UserProfile.objects.get_or_create(user_id=user_id)
    UserProfile.objects.filter(user_id=user_id).update(
        **{name: F(name) + delta for name, delta in deltas.items()}
    )
    return [Effect('profile', user_id, name, delta) for name, delta in deltas.items()]


# ============================================================================
# POSTS
# ============================================================================

def normalize_tags(tags) -> list[str]:
    """Strip, drop blanks and duplicates, keep display order."""
    seen = []
    for tag in tags or []:
        tag = str(tag).strip().lstrip('#')
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def sync_tag_index(post: Post) -> None:
    PostTag.objects.filter(post=post).delete()
    PostTag.objects.bulk_create([PostTag(post=post, name=name) for name in post.tags])


def create_post(author, draft: dict) -> WriteResult:
    """
    Create a post and its denormalized effects atomically.

    ATOMICITY:
    Insert + profile counters + cat experience commit together.
    A post that exists without its counters is never observable.
    """
    check_fields('post', draft, POST_CREATE_FIELDS)
    profile = get_or_create_profile(author)

    with transaction.atomic():
        post = Post(
            author=author,
            author_name=profile.display_name,
            author_avatar=profile.avatar_marker,
            **draft
        )
        post.tags = normalize_tags(post.tags)
        # Counters always start empty, whatever the draft said
        post.like_count, post.liked_by = 0, []
        post.comment_count = post.view_count = 0
        post.full_clean()
        post.save()
        sync_tag_index(post)

        counters = {'posts_count': 1}
        reward = POST_TYPE_REWARDS.get(post.post_type)
        if reward:
            counters[reward[0]] = 1
        effects = _bump_profile(author.id, **counters)

        if reward:
            effects += add_experience(author.id, reward[1], reward[2])

    logger.info("User %s created %s post %s", author.id, post.post_type, post.id)
    return WriteResult(post, effects)


def update_post(post_id, fields: dict) -> Post:
    """Merge allowed fields and stamp updated_at. Counters are untouched."""
    check_fields('post', fields, POST_UPDATE_FIELDS)

    with transaction.atomic():
        post = Post.objects.select_for_update().filter(id=post_id).first()
        if post is None:
            raise ObjectNotFound(f"Post {post_id} does not exist")

        for name, value in fields.items():
            setattr(post, name, value)
        if 'tags' in fields:
            post.tags = normalize_tags(post.tags)
        post.full_clean()
        post.save(update_fields=[*fields, 'updated_at'])

        if 'tags' in fields:
            sync_tag_index(post)
        notify_post_changed(post.id)

    return post


def delete_post(post_id) -> WriteResult:
    """
    Delete a post, its comments, and correct its author's counters.

    Corrections:
    - posts_count and the type counter -1
    - likes_received minus likes from users other than the author
    - comments_received minus comments from users other than the author

    Cat experience is NOT taken back: experience only grows.
    """
    with transaction.atomic():
        post = Post.objects.select_for_update().filter(id=post_id).first()
        if post is None:
            raise ObjectNotFound(f"Post {post_id} does not exist")

        author_id = post.author_id
        deltas = {'posts_count': -1}
        reward = POST_TYPE_REWARDS.get(post.post_type)
        if reward:
            deltas[reward[0]] = -1
        deltas['likes_received'] = -sum(1 for uid in post.liked_by if uid != author_id)
        deltas['comments_received'] = -(
            Comment.objects.filter(post_id=post.id).exclude(author_id=author_id).count()
        )

        # CASCADE removes comments and tag index rows
        post.delete()
        effects = _bump_profile(author_id, **deltas)
        notify_post_changed(post_id)

    logger.info("Post %s deleted with counter corrections %s", post_id, deltas)
    post.id = post_id
    return WriteResult(post, effects)


def increment_post_views(post_id) -> bool:
    """
    Best-effort view counter.

    Views are telemetry: a failure is logged and reported as False,
    never raised to the caller.
    """
    try:
        with transaction.atomic():
            updated = Post.objects.filter(id=post_id).update(view_count=F('view_count') + 1)
    except DatabaseError:
        logger.warning("Failed to increment views for post %s", post_id, exc_info=True)
        return False

    if updated:
        notify_post_changed(post_id)
    return bool(updated)


# ============================================================================
# LIKES
# ============================================================================

def _set_like(model, target_id, user, want: Optional[bool]) -> LikeResult:
    """
    Like (want=True), unlike (want=False) or toggle (want=None) a row.

    The membership decision and the write happen under one row lock,
    so concurrent callers are serialized and like_count == len(liked_by).
    Only posts carry author stats; comment likes are a single-row write.
    """
    label = model.__name__
    with transaction.atomic():
        target = model.objects.select_for_update().filter(id=target_id).first()
        if target is None:
            raise ObjectNotFound(f"{label} {target_id} does not exist")

        liked_by = list(target.liked_by or [])
        currently_liked = user.id in liked_by
        if want is None:
            want = not currently_liked

        if want == currently_liked:
            # Already in the requested state
            return LikeResult(
                success=False,
                action='already_exists' if want else 'already_removed',
                like_count=target.like_count,
                liked_by=liked_by
            )

        if want:
            liked_by.append(user.id)
            action, delta = 'created', 1
        else:
            liked_by = [uid for uid in liked_by if uid != user.id]
            action, delta = 'removed', -1

        target.liked_by = liked_by
        target.like_count = len(liked_by)
        target.save(update_fields=['liked_by', 'like_count', 'updated_at'])

        effects = [Effect(label.lower(), target.id, 'like_count', delta)]
        if model is Post:
            if target.author_id != user.id:
                effects += _bump_profile(target.author_id, likes_received=delta)
            notify_post_changed(target.id)

    return LikeResult(
        success=True,
        action=action,
        like_count=target.like_count,
        liked_by=liked_by,
        effects=effects
    )


def like_post(user, post_id) -> LikeResult:
    return _set_like(Post, post_id, user, True)


def unlike_post(user, post_id) -> LikeResult:
    return _set_like(Post, post_id, user, False)


def toggle_post_like(user, post_id) -> LikeResult:
    """Like if not liked, otherwise unlike; decided against the locked row."""
    return _set_like(Post, post_id, user, None)


def like_comment(user, comment_id) -> LikeResult:
    return _set_like(Comment, comment_id, user, True)


def unlike_comment(user, comment_id) -> LikeResult:
    return _set_like(Comment, comment_id, user, False)


def toggle_comment_like(user, comment_id) -> LikeResult:
    return _set_like(Comment, comment_id, user, None)


# ============================================================================
# COMMENTS
# ============================================================================

def add_comment(author, post_id, content: str, parent_comment_id=None) -> WriteResult:
    """
    Insert a comment and bump the counters it affects, in one transaction.

    Validates that:
    1. The post exists
    2. The parent comment (if any) exists and belongs to the same post
    3. Content is not empty
    """
    content = (content or '').strip()
    if not content:
        raise ValueError("Comment cannot be empty.")
    profile = get_or_create_profile(author)

    with transaction.atomic():
        post = Post.objects.filter(id=post_id).first()
        if post is None:
            raise ObjectNotFound(f"Post {post_id} does not exist")

        if parent_comment_id is not None:
            parent = Comment.objects.filter(id=parent_comment_id).first()
            if parent is None:
                raise ObjectNotFound(f"Comment {parent_comment_id} does not exist")
            if parent.post_id != post.id:
                raise ValueError("Parent comment must belong to the same post.")

        comment = Comment.objects.create(
            post=post,
            author=author,
            author_name=profile.display_name,
            author_avatar=profile.avatar_marker,
            content=content,
            parent_comment_id=parent_comment_id
        )

        Post.objects.filter(id=post.id).update(comment_count=F('comment_count') + 1)
        effects = [Effect('post', post.id, 'comment_count', 1)]

        # Commenting on your own post is not "received"
        if post.author_id != author.id:
            effects += _bump_profile(post.author_id, comments_received=1)
        notify_post_changed(post.id)

    return WriteResult(comment, effects)


def update_comment(comment_id, fields: dict) -> Comment:
    check_fields('comment', fields, COMMENT_UPDATE_FIELDS)
    if 'content' in fields:
        fields = {**fields, 'content': (fields['content'] or '').strip()}
        if not fields['content']:
            raise ValueError("Comment cannot be empty.")

    comment = Comment.objects.filter(id=comment_id).first()
    if comment is None:
        raise ObjectNotFound(f"Comment {comment_id} does not exist")
    for name, value in fields.items():
        setattr(comment, name, value)
    comment.save(update_fields=[*fields, 'updated_at'])
    return comment


def delete_comment(comment_id) -> WriteResult:
    """
    Delete one comment and decrement the counters add_comment() bumped.

    NOTE: Replies are neither deleted nor re-parented. They keep their
    parent_comment_id and show up as roots on the next fetch.
    """
    with transaction.atomic():
        comment = Comment.objects.select_related('post').filter(id=comment_id).first()
        if comment is None:
            raise ObjectNotFound(f"Comment {comment_id} does not exist")

        post_id = comment.post_id
        post_author_id = comment.post.author_id
        comment.delete()

        decremented = Post.objects.filter(id=post_id, comment_count__gt=0).update(
            comment_count=F('comment_count') - 1
        )
        effects = [Effect('post', post_id, 'comment_count', -1)] if decremented else []
        if comment.author_id != post_author_id:
            effects += _bump_profile(post_author_id, comments_received=-1)
        notify_post_changed(post_id)

    comment.id = comment_id
    return WriteResult(comment, effects)
