"""
Read Paths: Feed Pages, Comment Trees, Per-User Lists
=====================================================

CURSOR PAGINATION:
------------------
The feed is an infinite scroll, so every list uses keyset pagination:
    WHERE (sort_field, id) < (last_value, last_id)  ORDER BY sort_field DESC, id DESC

The cursor handed to callers is an opaque urlsafe-base64 token of
(last_value, last_id). Callers pass it back unchanged; None means
"start from the first row". A page shorter than page_size means
there is nothing left.

Why the id tie-breaker: many posts share like_count = 0, and plenty
of seeded posts share created_at. Without it, rows on a page boundary
would be skipped or repeated.

COMMENT TREE:
-------------
All comments of a post are fetched in ONE query ordered by created_at,
then assembled in Python in O(n). See build_comment_forest().
"""

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.db.models import Q
from django.utils.dateparse import parse_datetime

from .models import Post, Comment, Cat, EmotionRecord, UserProfile

DEFAULT_PAGE_SIZE = 20

SORTABLE_FIELDS = ('created_at', 'like_count', 'comment_count', 'view_count')
SORT_ORDERS = ('asc', 'desc')


@dataclass(frozen=True)
class PostFilters:
    """Feed filters. Any combination may be set; tags match on ANY."""
    post_type: Optional[str] = None
    status: Optional[str] = None
    author_id: Optional[int] = None
    tags: tuple = ()
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not any([
            self.post_type, self.status, self.author_id,
            self.tags, self.sort_by, self.sort_order,
        ])


@dataclass
class Page:
    items: list
    next_cursor: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def has_more(self) -> bool:
        # Short page == exhausted, regardless of how many rows remain
        return len(self.items) == self.page_size


# ============================================================================
# CURSORS
# ============================================================================

def encode_cursor(sort_by: str, instance) -> str:
    value = getattr(instance, sort_by)
    if isinstance(value, datetime):
        value = value.isoformat()
    payload = json.dumps({'v': value, 'id': instance.pk}, separators=(',', ':'))
    return base64.urlsafe_b64encode(payload.encode()).decode()


def decode_cursor(sort_by: str, cursor: str) -> tuple:
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
        value, pk = payload['v'], int(payload['id'])
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError):
        raise ValueError("Invalid cursor")

    if sort_by == 'created_at':
        value = parse_datetime(value) if isinstance(value, str) else None
        if value is None:
            raise ValueError("Invalid cursor")
    elif not isinstance(value, int) or isinstance(value, bool):
        # Counter sorts
        raise ValueError("Invalid cursor")
    return value, pk


def _paginate(queryset, sort_by: str, sort_order: str, page_size: int, cursor: Optional[str]) -> Page:
    if sort_by not in SORTABLE_FIELDS:
        raise ValueError(f"Cannot sort by {sort_by!r}")
    if sort_order not in SORT_ORDERS:
        raise ValueError(f"Invalid sort order {sort_order!r}")
    if page_size < 1:
        raise ValueError("page_size must be positive")

    descending = sort_order == 'desc'
    if cursor:
        value, pk = decode_cursor(sort_by, cursor)
        op = 'lt' if descending else 'gt'
        queryset = queryset.filter(
            Q(**{f'{sort_by}__{op}': value}) |
            Q(**{sort_by: value, f'id__{op}': pk})
        )

    if descending:
        queryset = queryset.order_by(f'-{sort_by}', '-id')
    else:
        queryset = queryset.order_by(sort_by, 'id')

    items = list(queryset[:page_size])
    next_cursor = encode_cursor(sort_by, items[-1]) if items else None
    return Page(items=items, next_cursor=next_cursor, page_size=page_size)


# ============================================================================
# POSTS
# ============================================================================

def list_posts(page_size: int = DEFAULT_PAGE_SIZE, cursor: Optional[str] = None) -> Page:
    """Newest posts first."""
    return _paginate(Post.objects.all(), 'created_at', 'desc', page_size, cursor)


def list_filtered_posts(
    filters: PostFilters,
    page_size: int = DEFAULT_PAGE_SIZE,
    cursor: Optional[str] = None
) -> Page:
    """
    Same contract as list_posts(), narrowed by filters.

    Tag membership goes through the PostTag index:
        SELECT DISTINCT post.* FROM post JOIN posttag ON ... WHERE posttag.name IN (...)
    """
    queryset = Post.objects.all()

    if filters.post_type:
        queryset = queryset.filter(post_type=filters.post_type)
    if filters.status:
        queryset = queryset.filter(status=filters.status)
    if filters.author_id:
        queryset = queryset.filter(author_id=filters.author_id)
    if filters.tags:
        queryset = queryset.filter(tag_index__name__in=list(filters.tags)).distinct()

    return _paginate(
        queryset,
        filters.sort_by or 'created_at',
        filters.sort_order or 'desc',
        page_size,
        cursor
    )


def get_post(post_id) -> Optional[Post]:
    """Missing posts are None, not an error."""
    return Post.objects.filter(id=post_id).first()


# ============================================================================
# COMMENTS
# ============================================================================

def get_all_comments_for_post(post_id) -> list[Comment]:
    """
    Fetch ALL comments for a post in a SINGLE query, oldest first.

    SELECT * FROM comment WHERE post_id = %s ORDER BY created_at, id
    """
    return list(
        Comment.objects
        .filter(post_id=post_id)
        .order_by('created_at', 'id')
    )


def build_comment_forest(flat_comments: list[Comment]) -> list[dict]:
    """
    Build nested tree structure from flat list.

    Algorithm: O(n), two passes over a hash map

    1. First pass: Create lookup dict {id -> node}
    2. Second pass: Attach children to parents

    The two passes make the result independent of input order: a reply
    fetched before its parent still lands under it.

    ORPHANS:
    A comment whose parent_comment_id is not in the input (parent was
    deleted) is returned as a root. Every input comment appears exactly once.

    Example Input (flat):
        [Comment(id=1), Comment(id=2, parent=1), Comment(id=3, parent=99)]

    Example Output (nested):
        [
            {'comment': Comment(id=1), 'replies': [{'comment': Comment(id=2), 'replies': []}]},
            {'comment': Comment(id=3), 'replies': []},
        ]
    """
    nodes = {}
    for comment in flat_comments:
        nodes[comment.id] = {
            'comment': comment,
            'replies': []
        }

    root_nodes = []
    for comment in flat_comments:
        node = nodes[comment.id]
        parent_node = nodes.get(comment.parent_comment_id)
        if parent_node is not None and parent_node is not node:
            parent_node['replies'].append(node)
        else:
            root_nodes.append(node)

    return root_nodes


def list_comments(post_id) -> list[dict]:
    """Comment forest for a post. TOTAL QUERIES: 1"""
    return build_comment_forest(get_all_comments_for_post(post_id))


def iter_comment_nodes(nodes: list[dict]):
    """Depth-first walk over a comment forest."""
    for node in nodes:
        yield node
        yield from iter_comment_nodes(node['replies'])


# ============================================================================
# COMPANIONS / JOURNAL / PROFILES
# ============================================================================

def list_cats(user_id) -> list[Cat]:
    return list(Cat.objects.filter(user_id=user_id).order_by('created_at', 'id'))


def list_emotions(user_id) -> list[EmotionRecord]:
    """Newest entries first."""
    return list(
        EmotionRecord.objects
        .filter(user_id=user_id)
        .order_by('-created_at', '-id')
    )


def get_profile(user_id) -> Optional[UserProfile]:
    return UserProfile.objects.select_related('user').filter(user_id=user_id).first()
