"""
DRF Views
=========

API endpoints for the movie community.

Views are thin: they validate with a serializer, call one service
function and serialize what it returns. Errors raised by the services
(ObjectNotFound, AuthorshipViolation, UnknownFieldError, ValueError)
are turned into responses by exceptions.custom_exception_handler.

AUTHENTICATION NOTE:
--------------------
Session authentication; /api/auth/mock-login/ creates and signs in a
user for development. Reads are public, writes need a user.
"""

import logging

from rest_framework import status, permissions
from rest_framework.views import APIView
from rest_framework.response import Response
from django.conf import settings
from django.contrib.auth import login
from django.contrib.auth.models import User
from django.shortcuts import get_object_or_404

from . import companions, journal, queries, services
from .exceptions import AuthorizationRequired, AuthorshipViolation, ObjectNotFound
from .models import Cat, Comment, EmotionRecord, Post
from .queries import PostFilters
from .serializers import (
    CatSerializer,
    CommentSerializer,
    CommentTreeSerializer,
    CommentUpdateSerializer,
    EmotionRecordSerializer,
    LikeResultSerializer,
    PostDetailSerializer,
    PostSerializer,
    PostUpdateSerializer,
    UserProfileSerializer,
    UserProfileUpdateSerializer,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def _require_owner(owner_id, user, kind: str) -> None:
    if owner_id != user.id:
        raise AuthorshipViolation(f"You can only change your own {kind}.")


def _int_param(params, name):
    value = params.get(name)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer")


def _filters_from_query(params) -> PostFilters:
    tags = tuple(tag.strip() for tag in params.get('tags', '').split(',') if tag.strip())
    return PostFilters(
        post_type=params.get('type') or None,
        status=params.get('status') or None,
        author_id=_int_param(params, 'author'),
        tags=tags,
        sort_by=params.get('sort_by') or None,
        sort_order=params.get('sort_order') or None,
    )


def _user_for_list(request):
    """?user=<id> for someone else's list, otherwise the signed-in user."""
    user_id = _int_param(request.query_params, 'user')
    if user_id is not None:
        return user_id
    if not request.user.is_authenticated:
        raise AuthorizationRequired()
    return request.user.id


class PostListView(APIView):
    """
    GET  /api/posts/   feed page (filters: type, status, author, tags,
                       sort_by, sort_order; paging: cursor, page_size)
    POST /api/posts/   create a post

    Response for GET:
    {
        "results": [...],
        "next_cursor": "..." | null,
        "has_more": true | false
    }
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request):
        params = request.query_params
        page_size = _int_param(params, 'page_size') or getattr(
            settings, 'COMMUNITY_PAGE_SIZE', queries.DEFAULT_PAGE_SIZE
        )
        page_size = min(page_size, MAX_PAGE_SIZE)
        cursor = params.get('cursor') or None

        filters = _filters_from_query(params)
        if filters.is_empty:
            page = queries.list_posts(page_size, cursor)
        else:
            page = queries.list_filtered_posts(filters, page_size, cursor)

        return Response({
            'results': PostSerializer(page.items, many=True, context={'request': request}).data,
            'next_cursor': page.next_cursor,
            'has_more': page.has_more,
        })

    def post(self, request):
        serializer = PostSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)

        result = services.create_post(request.user, serializer.validated_data)
        return Response(
            PostSerializer(result.instance, context={'request': request}).data,
            status=status.HTTP_201_CREATED
        )


class PostDetailView(APIView):
    """
    GET    /api/posts/<id>/   post with its full comment forest
    PATCH  /api/posts/<id>/   author only
    DELETE /api/posts/<id>/   author only; removes comments too

    QUERY COUNT for GET: 2 (post, all comments). The forest is built
    in Python, not in the database.
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request, post_id):
        post = queries.get_post(post_id)
        if post is None:
            return Response({'error': 'Post not found'}, status=status.HTTP_404_NOT_FOUND)

        serializer = PostDetailSerializer(
            post,
            context={
                'comment_forest': queries.list_comments(post_id),
                'request': request,
            }
        )
        return Response(serializer.data)

    def patch(self, request, post_id):
        post = get_object_or_404(Post, id=post_id)
        _require_owner(post.author_id, request.user, 'posts')

        serializer = PostUpdateSerializer(post, data=request.data, partial=True, context={'request': request})
        serializer.is_valid(raise_exception=True)

        post = services.update_post(post_id, serializer.validated_data)
        return Response(PostSerializer(post, context={'request': request}).data)

    def delete(self, request, post_id):
        post = get_object_or_404(Post, id=post_id)
        _require_owner(post.author_id, request.user, 'posts')

        services.delete_post(post_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class LikePostView(APIView):
    """
    POST   /api/posts/<id>/like/   toggle
    DELETE /api/posts/<id>/like/   unlike
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, post_id):
        result = services.toggle_post_like(request.user, post_id)
        return Response(LikeResultSerializer(result, context={'request': request}).data)

    def delete(self, request, post_id):
        result = services.unlike_post(request.user, post_id)
        return Response(LikeResultSerializer(result, context={'request': request}).data)


class PostViewCountView(APIView):
    """
    POST /api/posts/<id>/view/

    Best-effort; always 200, "counted" says whether it stuck.
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request, post_id):
        return Response({'counted': services.increment_post_views(post_id)})


class CommentListView(APIView):
    """
    GET  /api/posts/<post_id>/comments/   comment forest, oldest first
    POST /api/posts/<post_id>/comments/   add a comment or reply

    Body:
    {
        "content": "Comment text",
        "parent_comment_id": 123  // optional, for replies
    }
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request, post_id):
        forest = queries.list_comments(post_id)
        return Response(CommentTreeSerializer(forest, many=True, context={'request': request}).data)

    def post(self, request, post_id):
        serializer = CommentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = services.add_comment(
            request.user,
            post_id,
            serializer.validated_data['content'],
            serializer.validated_data.get('parent_comment_id')
        )
        return Response(CommentSerializer(result.instance).data, status=status.HTTP_201_CREATED)


class CommentDetailView(APIView):
    """
    PATCH  /api/comments/<id>/   edit text, author only
    DELETE /api/comments/<id>/   author only; replies stay
    """
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, comment_id):
        comment = get_object_or_404(Comment, id=comment_id)
        _require_owner(comment.author_id, request.user, 'comments')

        serializer = CommentUpdateSerializer(comment, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        comment = services.update_comment(comment_id, serializer.validated_data)
        return Response(CommentSerializer(comment).data)

    def delete(self, request, comment_id):
        comment = get_object_or_404(Comment, id=comment_id)
        _require_owner(comment.author_id, request.user, 'comments')

        services.delete_comment(comment_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class LikeCommentView(APIView):
    """
    POST   /api/comments/<id>/like/   toggle
    DELETE /api/comments/<id>/like/   unlike
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, comment_id):
        result = services.toggle_comment_like(request.user, comment_id)
        return Response(LikeResultSerializer(result, context={'request': request}).data)

    def delete(self, request, comment_id):
        result = services.unlike_comment(request.user, comment_id)
        return Response(LikeResultSerializer(result, context={'request': request}).data)


class CatListView(APIView):
    """
    GET  /api/cats/?user=<id>   a user's cats (default: your own)
    POST /api/cats/             adopt a cat
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request):
        cats = queries.list_cats(_user_for_list(request))
        return Response(CatSerializer(cats, many=True).data)

    def post(self, request):
        serializer = CatSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        cat = companions.create_cat(request.user, serializer.validated_data)
        return Response(CatSerializer(cat).data, status=status.HTTP_201_CREATED)


class CatDetailView(APIView):
    """PATCH /api/cats/<id>/   owner only; never level or experience"""
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, cat_id):
        cat = get_object_or_404(Cat, id=cat_id)
        _require_owner(cat.user_id, request.user, 'cats')

        serializer = CatSerializer(cat, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        cat = companions.update_cat(cat_id, serializer.validated_data)
        return Response(CatSerializer(cat).data)


class EmotionListView(APIView):
    """
    GET  /api/emotions/?user=<id>   journal, newest first
    POST /api/emotions/             new entry; grows your cats
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request):
        records = queries.list_emotions(_user_for_list(request))
        return Response(EmotionRecordSerializer(records, many=True).data)

    def post(self, request):
        serializer = EmotionRecordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = journal.create_emotion(request.user, serializer.validated_data)
        return Response(EmotionRecordSerializer(result.instance).data, status=status.HTTP_201_CREATED)


class EmotionDetailView(APIView):
    """
    PATCH  /api/emotions/<id>/
    DELETE /api/emotions/<id>/
    """
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, record_id):
        record = get_object_or_404(EmotionRecord, id=record_id)
        _require_owner(record.user_id, request.user, 'emotion records')

        serializer = EmotionRecordSerializer(record, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        record = journal.update_emotion(record_id, serializer.validated_data)
        return Response(EmotionRecordSerializer(record).data)

    def delete(self, request, record_id):
        record = get_object_or_404(EmotionRecord, id=record_id)
        _require_owner(record.user_id, request.user, 'emotion records')

        journal.delete_emotion(record_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class UserProfileView(APIView):
    """
    GET   /api/users/<id>/profile/
    PATCH /api/users/<id>/profile/   own profile only: nickname, photo_url, bio
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request, user_id):
        profile = queries.get_profile(user_id)
        if profile is None:
            raise ObjectNotFound(f"User {user_id} does not exist")
        return Response(UserProfileSerializer(profile).data)

    def patch(self, request, user_id):
        _require_owner(user_id, request.user, 'profile')

        serializer = UserProfileUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        profile = services.update_profile(request.user, serializer.validated_data)
        return Response(UserProfileSerializer(profile).data)


# ============================================================================
# DEVELOPMENT/TESTING HELPERS
# ============================================================================

class MockAuthView(APIView):
    """
    POST /api/auth/mock-login/

    DEVELOPMENT ONLY: Quick login for testing without full auth flow.
    Creates user if doesn't exist.

    Body: { "username": "testuser" }
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        username = request.data.get('username', 'testuser')
        user, created = User.objects.get_or_create(
            username=username,
            defaults={'email': f'{username}@example.com'}
        )
        login(request, user)
        logger.info("Mock login for %s (created=%s)", username, created)

        return Response({
            'user_id': user.id,
            'username': user.username,
            'created': created
        })


class WhoAmIView(APIView):
    """
    GET /api/auth/whoami/

    Returns current authenticated user info.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        if request.user.is_authenticated:
            return Response({
                'authenticated': True,
                'user_id': request.user.id,
                'username': request.user.username,
                'display_name': services.get_or_create_profile(request.user).display_name,
            })
        return Response({
            'authenticated': False,
            'user_id': None,
            'username': None,
            'display_name': None,
        })
