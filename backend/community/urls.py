"""
Community App URL Configuration
"""
from django.urls import path
from .views import (
    PostListView,
    PostDetailView,
    LikePostView,
    PostViewCountView,
    CommentListView,
    CommentDetailView,
    LikeCommentView,
    CatListView,
    CatDetailView,
    EmotionListView,
    EmotionDetailView,
    UserProfileView,
    MockAuthView,
    WhoAmIView
)

urlpatterns = [
    # Posts
    path('posts/', PostListView.as_view(), name='post-list'),
    path('posts/<int:post_id>/', PostDetailView.as_view(), name='post-detail'),
    path('posts/<int:post_id>/like/', LikePostView.as_view(), name='like-post'),
    path('posts/<int:post_id>/view/', PostViewCountView.as_view(), name='post-view'),
    path('posts/<int:post_id>/comments/', CommentListView.as_view(), name='comment-list'),

    # Comments
    path('comments/<int:comment_id>/', CommentDetailView.as_view(), name='comment-detail'),
    path('comments/<int:comment_id>/like/', LikeCommentView.as_view(), name='like-comment'),

    # Companions and journal
    path('cats/', CatListView.as_view(), name='cat-list'),
    path('cats/<int:cat_id>/', CatDetailView.as_view(), name='cat-detail'),
    path('emotions/', EmotionListView.as_view(), name='emotion-list'),
    path('emotions/<int:record_id>/', EmotionDetailView.as_view(), name='emotion-detail'),

    # Profiles
    path('users/<int:user_id>/profile/', UserProfileView.as_view(), name='user-profile'),

    # Auth (development)
    path('auth/mock-login/', MockAuthView.as_view(), name='mock-login'),
    path('auth/whoami/', WhoAmIView.as_view(), name='whoami'),
]
