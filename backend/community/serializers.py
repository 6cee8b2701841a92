"""
DRF Serializers
===============

Serializers handle:
1. Validation of incoming payloads (unknown keys are a 400, not ignored)
2. Transformation of model instances to JSON
3. Nested comment forest serialization

DESIGN DECISIONS:
-----------------
1. Serializers only validate. Writes go through services / companions /
   journal so every side effect stays in one place.
2. Server-owned fields (counters, level, experience, author snapshot)
   are read-only; sending one is rejected like any other unknown key.
3. CommentTreeSerializer walks the pre-built forest from queries.py.
"""

from rest_framework import serializers
from django.contrib.auth.models import User

from .models import Post, Comment, Cat, EmotionRecord, UserProfile


class StrictFieldsMixin:
    """Reject payload keys that are not writable fields of this serializer."""

    def to_internal_value(self, data):
        if isinstance(data, dict):
            writable = {name for name, field in self.fields.items() if not field.read_only}
            unknown = sorted(set(data) - writable)
            if unknown:
                raise serializers.ValidationError({name: ['Unknown field.'] for name in unknown})
        return super().to_internal_value(data)


class UserSerializer(serializers.ModelSerializer):
    """Minimal user representation for embedding in other objects."""

    class Meta:
        model = User
        fields = ['id', 'username']
        read_only_fields = fields


class TagListField(serializers.ListField):
    child = serializers.CharField(max_length=100)


class PostSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    """
    Serializer for feed entries and post creation.

    Author is taken from request.user in the view, never from input.
    """
    author = UserSerializer(read_only=True)
    tags = TagListField(required=False)
    user_liked = serializers.SerializerMethodField()

    class Meta:
        model = Post
        fields = [
            'id',
            'post_type',
            'author',
            'author_name',
            'author_avatar',
            'title',
            'content',
            'movie_title',
            'rating',
            'emotion',
            'emotion_emoji',
            'emotion_intensity',
            'tags',
            'like_count',
            'liked_by',
            'comment_count',
            'view_count',
            'is_active',
            'status',
            'created_at',
            'updated_at',
            'user_liked',
        ]
        read_only_fields = [
            'author_name', 'author_avatar', 'like_count', 'liked_by',
            'comment_count', 'view_count', 'created_at', 'updated_at',
        ]

    def validate_title(self, value):
        if not value.strip():
            raise serializers.ValidationError("Title cannot be empty.")
        return value.strip()

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError("Content cannot be empty.")
        return value.strip()

    def get_user_liked(self, obj):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return False
        return obj.is_liked_by(request.user.id)


class PostUpdateSerializer(PostSerializer):
    """Partial edits. The post type is fixed once the post exists."""

    class Meta(PostSerializer.Meta):
        read_only_fields = PostSerializer.Meta.read_only_fields + ['post_type']


class CommentSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    """
    Serializer for individual comments.

    NOTE: This does NOT include nested replies!
    Tree structure is handled by CommentTreeSerializer.
    """
    author = UserSerializer(read_only=True)
    post_id = serializers.IntegerField(read_only=True)
    parent_comment_id = serializers.IntegerField(required=False, allow_null=True)

    class Meta:
        model = Comment
        fields = [
            'id',
            'post_id',
            'author',
            'author_name',
            'author_avatar',
            'content',
            'parent_comment_id',
            'like_count',
            'liked_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = [
            'author_name', 'author_avatar', 'like_count', 'liked_by',
            'created_at', 'updated_at',
        ]

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError("Comment cannot be empty.")
        return value.strip()


class CommentUpdateSerializer(CommentSerializer):
    """Only the text of a comment can change."""
    parent_comment_id = serializers.IntegerField(read_only=True)


class CommentTreeSerializer(serializers.Serializer):
    """
    Serializer for the nested comment forest.

    This is NOT a ModelSerializer because it serializes
    the pre-built structure from build_comment_forest().

    Structure:
    {
        "comment": { ...comment data... },
        "replies": [ ...nested CommentTreeSerializer... ]
    }
    """
    comment = CommentSerializer()
    replies = serializers.SerializerMethodField()

    def get_replies(self, obj):
        return CommentTreeSerializer(obj['replies'], many=True, context=self.context).data


class PostDetailSerializer(PostSerializer):
    """
    Post with its comment forest.

    The forest is passed pre-built in context to avoid N+1 queries
    during serialization.
    """
    comments = serializers.SerializerMethodField()

    class Meta(PostSerializer.Meta):
        fields = PostSerializer.Meta.fields + ['comments']

    def get_comments(self, obj):
        forest = self.context.get('comment_forest', [])
        return CommentTreeSerializer(forest, many=True, context=self.context).data


class CatSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    """Level, experience and stats only change through activity rewards."""
    user_id = serializers.IntegerField(read_only=True)
    achievements = TagListField(required=False)
    stats = serializers.DictField(read_only=True)

    class Meta:
        model = Cat
        fields = [
            'id',
            'user_id',
            'name',
            'emoji',
            'cat_type',
            'description',
            'specialty',
            'achievements',
            'level',
            'experience',
            'max_experience',
            'stats',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['level', 'experience', 'created_at', 'updated_at']


class EmotionRecordSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    tags = TagListField(required=False)

    class Meta:
        model = EmotionRecord
        fields = [
            'id',
            'user_id',
            'movie_title',
            'emotion',
            'emoji',
            'text',
            'intensity',
            'tags',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']


class UserProfileSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)
    display_name = serializers.CharField(read_only=True)
    avatar_marker = serializers.CharField(read_only=True)
    stats = serializers.DictField(read_only=True)

    class Meta:
        model = UserProfile
        fields = [
            'user',
            'display_name',
            'avatar_marker',
            'nickname',
            'photo_url',
            'bio',
            'stats',
            'created_at',
        ]
        read_only_fields = ['nickname', 'photo_url', 'bio', 'created_at']


class UserProfileUpdateSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    """Only the display fields; stats move with activity."""

    class Meta:
        model = UserProfile
        fields = ['nickname', 'photo_url', 'bio']


class LikeResultSerializer(serializers.Serializer):
    """Outcome of a like/unlike/toggle, as decided on the server."""
    success = serializers.BooleanField()
    action = serializers.CharField()
    like_count = serializers.IntegerField()
    liked_by = serializers.ListField(child=serializers.IntegerField())
    user_liked = serializers.SerializerMethodField()

    def get_user_liked(self, obj):
        request = self.context.get('request')
        if request is None:
            return False
        return obj.liked_by_user(request.user.id)
