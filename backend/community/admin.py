"""
Django Admin Configuration for Community Models
"""
from django.contrib import admin
from .models import UserProfile, Post, PostTag, Comment, Cat, EmotionRecord
from .services import normalize_tags, sync_tag_index


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'nickname', 'posts_count', 'likes_received', 'comments_received']
    search_fields = ['user__username', 'nickname']
    readonly_fields = [
        'posts_count', 'reviews_count', 'discussions_count', 'emotions_count',
        'likes_received', 'comments_received', 'created_at', 'updated_at',
    ]


class PostTagInline(admin.TabularInline):
    model = PostTag
    extra = 0
    # Rewritten by services whenever Post.tags changes
    readonly_fields = ['name']
    can_delete = False


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ['title', 'post_type', 'author_name', 'like_count', 'comment_count', 'view_count', 'created_at']
    list_filter = ['post_type', 'status', 'created_at']
    search_fields = ['title', 'content', 'movie_title', 'author__username']
    readonly_fields = ['like_count', 'liked_by', 'comment_count', 'view_count', 'created_at', 'updated_at']
    inlines = [PostTagInline]

    def save_model(self, request, obj, form, change):
        obj.tags = normalize_tags(obj.tags)
        super().save_model(request, obj, form, change)

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        # After the inline, so the rebuilt index is what stays
        if not change or 'tags' in form.changed_data:
            sync_tag_index(form.instance)


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'post', 'author_name', 'parent_comment_id', 'like_count', 'created_at']
    list_filter = ['created_at']
    search_fields = ['content', 'author__username']
    readonly_fields = ['like_count', 'liked_by', 'created_at', 'updated_at']


@admin.register(Cat)
class CatAdmin(admin.ModelAdmin):
    list_display = ['name', 'user', 'level', 'experience', 'review_count', 'discussion_count', 'emotion_count']
    search_fields = ['name', 'user__username']
    # Only activity rewards move these
    readonly_fields = ['level', 'experience', 'review_count', 'discussion_count', 'emotion_count']


@admin.register(EmotionRecord)
class EmotionRecordAdmin(admin.ModelAdmin):
    list_display = ['user', 'movie_title', 'emoji', 'emotion', 'intensity', 'created_at']
    list_filter = ['emotion', 'created_at']
    search_fields = ['movie_title', 'text', 'user__username']
