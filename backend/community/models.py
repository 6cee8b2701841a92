"""
Data Models for the Movie Community
===================================

Design Philosophy:
------------------
1. Counters are denormalized onto the rows that display them
   - Post.like_count / comment_count / view_count, Comment.like_count
   - UserProfile stats (posts, reviews, likes received, ...)
   - Maintained by explicit F() increments in services.py, never recomputed
   - Trade-off: one UPDATE per side effect vs COUNT(*) on every feed render

2. Likes are stored as a JSON list of user ids on the liked row
   - like_count must always equal len(liked_by)
   - Both are written in the same UPDATE under select_for_update()
   - Alternative: a Like table with a unique constraint (more joins per feed page)

3. Comments use an Adjacency List (parent_comment) WITHOUT a DB constraint
   - Deleting a parent leaves replies pointing at a missing id
   - Tree assembly in queries.py surfaces those replies as roots

4. Cat level is derived from experience
   - level = experience // 100 + 1, recomputed in save()
   - Callers can never set the two inconsistently

Indexes Strategy:
-----------------
- post.created_at (+ id): feed ordering and cursor seek
- post.post_type / status / author: feed filters
- posttag.name: "has any of these tags" filter
- comment.post_id + comment.created_at: all comments for a post, oldest first
- cat.user_id, emotionrecord.user_id + created_at: per-user lists
"""

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


# Same limit as Django usernames
AUTHOR_NAME_MAX_LENGTH = 150


# ============================================================================
# EXPERIENCE CONSTANTS
# ============================================================================
EXPERIENCE_PER_LEVEL = 100

EXPERIENCE_REVIEW_POST = 20
EXPERIENCE_DISCUSSION_POST = 15
EXPERIENCE_EMOTION_POST = 10
EXPERIENCE_EMOTION_RECORD = 10


def level_for_experience(experience: int) -> int:
    """Level is 1 until the first 100 experience, then +1 per 100."""
    return experience // EXPERIENCE_PER_LEVEL + 1


class UserProfile(models.Model):
    """
    Local mirror of the identity provider's user plus denormalized stats.

    Stats are best-effort: each one is bumped alongside the action that
    causes it and never recomputed from source rows.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    nickname = models.CharField(max_length=50, blank=True, default='')
    photo_url = models.URLField(max_length=500, blank=True, default='')
    bio = models.TextField(blank=True, default='')

    posts_count = models.IntegerField(default=0)
    reviews_count = models.IntegerField(default=0)
    discussions_count = models.IntegerField(default=0)
    emotions_count = models.IntegerField(default=0)
    likes_received = models.IntegerField(default=0)
    comments_received = models.IntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Profile of {self.user.username}"

    @property
    def display_name(self) -> str:
        name = self.nickname or self.user.get_full_name() or self.user.username or 'User'
        # Snapshotted into author_name on posts and comments
        return name[:AUTHOR_NAME_MAX_LENGTH]

    @property
    def avatar_marker(self) -> str:
        # Real image URLs are resolved by the frontend
        return '🖼️' if self.photo_url else '👤'

    @property
    def stats(self) -> dict:
        return {
            'posts_count': self.posts_count,
            'reviews_count': self.reviews_count,
            'discussions_count': self.discussions_count,
            'emotions_count': self.emotions_count,
            'likes_received': self.likes_received,
            'comments_received': self.comments_received,
        }


class LikeableMixin(models.Model):
    """
    Shared like state for posts and comments.

    INVARIANT: like_count == len(liked_by) after every toggle commits.
    """
    like_count = models.PositiveIntegerField(default=0, db_index=True)
    liked_by = models.JSONField(default=list, blank=True)

    class Meta:
        abstract = True

    def is_liked_by(self, user_id) -> bool:
        return user_id in (self.liked_by or [])


class Post(LikeableMixin):
    """
    A community post: review, discussion, emotion share or general talk.

    author_name / author_avatar are a snapshot taken at write time,
    not a live reference to the profile.
    """

    class PostType(models.TextChoices):
        REVIEW = 'review', 'Review'
        DISCUSSION = 'discussion', 'Discussion'
        EMOTION = 'emotion', 'Emotion'
        GENERAL = 'general', 'General'

    class Status(models.TextChoices):
        HOT = 'hot', 'Hot'
        NEW = 'new', 'New'
        SOLVED = 'solved', 'Solved'

    post_type = models.CharField(
        max_length=20,
        choices=PostType.choices,
        default=PostType.GENERAL,
        db_index=True
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='posts',
        db_index=True
    )
    author_name = models.CharField(max_length=AUTHOR_NAME_MAX_LENGTH)
    author_avatar = models.CharField(max_length=500, blank=True, default='')

    title = models.CharField(max_length=300)
    content = models.TextField()

    movie_title = models.CharField(max_length=300, blank=True, default='')
    rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    emotion = models.CharField(max_length=50, blank=True, default='')
    emotion_emoji = models.CharField(max_length=16, blank=True, default='')
    emotion_intensity = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )

    # Display order matters; PostTag mirrors this list for filtering
    tags = models.JSONField(default=list, blank=True)

    comment_count = models.PositiveIntegerField(default=0)
    view_count = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(null=True, blank=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        blank=True,
        default='',
        db_index=True
    )

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['-created_at', '-id'], name='post_feed_order_idx'),
            models.Index(fields=['author', '-created_at'], name='post_author_recent_idx'),
        ]

    def __str__(self):
        return f"{self.title[:50]} by {self.author_name}"


class PostTag(models.Model):
    """
    One row per tag of a post.

    Exists only so "post has any of these tags" is an indexed join that
    works on every database backend. Rewritten together with Post.tags.
    """
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name='tag_index')
    name = models.CharField(max_length=100, db_index=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['post', 'name'], name='unique_tag_per_post')
        ]

    def __str__(self):
        return f"#{self.name} on {self.post_id}"


class Comment(LikeableMixin):
    """
    Comment on a post, optionally a reply to another comment.

    WHY db_constraint=False ON parent_comment:
    - Deleting a comment does not cascade to its replies
    - The replies keep their parent id and become orphans
    - queries.build_comment_forest() shows orphans as roots
    """
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='comments',
        db_index=True
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    author_name = models.CharField(max_length=AUTHOR_NAME_MAX_LENGTH)
    author_avatar = models.CharField(max_length=500, blank=True, default='')

    content = models.TextField()

    parent_comment = models.ForeignKey(
        'self',
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name='+'
    )

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['post', 'created_at'], name='comment_post_created_idx'),
        ]

    def __str__(self):
        return f"Comment by {self.author_name} on {self.post_id}"


class Cat(models.Model):
    """
    Gamified companion. Grows whenever its owner does something rewarded.

    A user may own several cats; experience is granted to all of them.
    """

    class Activity(models.TextChoices):
        REVIEW = 'review', 'Review'
        DISCUSSION = 'discussion', 'Discussion'
        EMOTION = 'emotion', 'Emotion'

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='cats',
        db_index=True
    )
    name = models.CharField(max_length=50)
    emoji = models.CharField(max_length=16, default='🐱')
    cat_type = models.CharField(max_length=50, blank=True, default='')
    description = models.TextField(blank=True, default='')
    specialty = models.CharField(max_length=200, blank=True, default='')
    achievements = models.JSONField(default=list, blank=True)

    level = models.PositiveIntegerField(default=1)
    experience = models.PositiveIntegerField(default=0)
    max_experience = models.PositiveIntegerField(default=EXPERIENCE_PER_LEVEL)

    review_count = models.PositiveIntegerField(default=0)
    discussion_count = models.PositiveIntegerField(default=0)
    emotion_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at', 'id']

    # Activity -> per-activity stat counter
    STAT_FIELDS = {
        'review': 'review_count',
        'discussion': 'discussion_count',
        'emotion': 'emotion_count',
    }

    def __str__(self):
        return f"{self.name} (Lv.{self.level}) of {self.user_id}"

    def save(self, *args, **kwargs):
        self.level = level_for_experience(self.experience)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'experience' in update_fields:
            kwargs['update_fields'] = set(update_fields) | {'level', 'updated_at'}
        super().save(*args, **kwargs)

    @property
    def stats(self) -> dict:
        return {
            'reviews': self.review_count,
            'discussions': self.discussion_count,
            'emotions': self.emotion_count,
        }


class EmotionRecord(models.Model):
    """A personal mood-log entry about one movie or show."""
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='emotion_records'
    )
    movie_title = models.CharField(max_length=300)
    emotion = models.CharField(max_length=50)
    emoji = models.CharField(max_length=16, blank=True, default='')
    text = models.TextField(blank=True, default='')
    intensity = models.PositiveSmallIntegerField(
        default=3,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    tags = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='emotion_user_recent_idx'),
        ]

    def __str__(self):
        return f"{self.emoji} {self.emotion} on {self.movie_title}"


# Post type -> (profile counter, cat activity, experience points)
POST_TYPE_REWARDS = {
    'review': ('reviews_count', 'review', EXPERIENCE_REVIEW_POST),
    'discussion': ('discussions_count', 'discussion', EXPERIENCE_DISCUSSION_POST),
    'emotion': ('emotions_count', 'emotion', EXPERIENCE_EMOTION_POST),
}
