"""
Tests for the movie community

Focus areas:
1. Like toggles (like_count == len(liked_by), parity, server-decided outcome)
2. Denormalized counters (post comments/views, profile stats, cat experience)
3. Comment forest building (replies nested, orphans surfaced)
4. Transactions (no partial effects when a later step fails)
5. The client-side CommunityStore (state machine, cache follows server)
6. HTTP API and post subscriptions
"""

import base64
import json
from io import StringIO
from unittest.mock import Mock, patch

from django.contrib.admin.sites import site
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APITestCase

from .admin import PostAdmin
from .companions import add_experience, create_cat, update_cat
from .exceptions import (
    AuthorizationRequired,
    AuthorshipViolation,
    ObjectNotFound,
    StateTransitionError,
    UnknownFieldError,
)
from .journal import create_emotion, delete_emotion, update_emotion
from .models import Cat, Comment, EmotionRecord, Post, PostTag, UserProfile, level_for_experience
from .queries import (
    PostFilters,
    build_comment_forest,
    decode_cursor,
    get_post,
    list_comments,
    list_emotions,
    list_filtered_posts,
    list_posts,
)
from .services import (
    add_comment,
    create_post,
    delete_comment,
    delete_post,
    increment_post_views,
    like_post,
    normalize_tags,
    toggle_comment_like,
    toggle_post_like,
    unlike_post,
    update_comment,
    update_post,
    update_profile,
)
from .store import CommunityStore, FamilyState
from .subscriptions import subscribe_to_post


def forest_shape(forest):
    """[(comment id, [reply shapes...]), ...] for easy comparison."""
    return [(node['comment'].id, forest_shape(node['replies'])) for node in forest]


def make_cursor(value, pk):
    payload = json.dumps({'v': value, 'id': pk}).encode()
    return base64.urlsafe_b64encode(payload).decode()


class CommunityTestMixin:

    def make_user(self, username):
        return User.objects.create_user(username, f'{username}@test.com', 'pass')

    def make_post(self, author, post_type='general', **fields):
        draft = {'post_type': post_type, 'title': 'Oppenheimer', 'content': 'Nolan at his best.'}
        draft.update(fields)
        return create_post(author, draft).instance

    def profile(self, user):
        return UserProfile.objects.get(user=user)


# ============================================================================
# POSTS
# ============================================================================

class PostCreationTestCase(CommunityTestMixin, TestCase):

    def setUp(self):
        self.alice = self.make_user('alice')

    def test_created_post_starts_with_empty_counters(self):
        """Whatever the draft, a new post has no likes, comments or views."""
        post = self.make_post(self.alice, 'review', movie_title='Oppenheimer', rating=4)

        stored = get_post(post.id)
        self.assertEqual(stored.author_id, self.alice.id)
        self.assertEqual(stored.title, 'Oppenheimer')
        self.assertEqual(stored.content, 'Nolan at his best.')
        self.assertEqual(stored.like_count, 0)
        self.assertEqual(stored.liked_by, [])
        self.assertEqual(stored.comment_count, 0)
        self.assertEqual(stored.view_count, 0)

    def test_author_snapshot_taken_from_profile(self):
        UserProfile.objects.filter(user=self.alice).update(nickname='CinemaLover')
        post = self.make_post(self.alice)

        self.assertEqual(post.author_name, 'CinemaLover')
        self.assertEqual(post.author_avatar, '👤')

    def test_longest_usernames_can_post_and_comment(self):
        long_name = self.make_user('u' * 150)
        post = self.make_post(long_name)
        comment = add_comment(long_name, post.id, 'Hi').instance

        self.assertEqual(get_post(post.id).author_name, 'u' * 150)
        self.assertEqual(Comment.objects.get(id=comment.id).author_name, 'u' * 150)

    def test_long_full_name_snapshot_is_cut_to_fit(self):
        self.alice.first_name = 'a' * 150
        self.alice.last_name = 'b' * 150
        self.alice.save()

        post = self.make_post(self.alice)

        self.assertEqual(len(post.author_name), 150)
        self.assertTrue(post.author_name.startswith('aaa'))

    def test_profile_counters_bumped_per_type(self):
        self.make_post(self.alice, 'review')
        self.make_post(self.alice, 'discussion')
        self.make_post(self.alice, 'general')

        profile = self.profile(self.alice)
        self.assertEqual(profile.posts_count, 3)
        self.assertEqual(profile.reviews_count, 1)
        self.assertEqual(profile.discussions_count, 1)
        self.assertEqual(profile.emotions_count, 0)

    def test_effects_list_every_side_effect(self):
        cat = Cat.objects.create(user=self.alice, name='Nabi')
        result = create_post(self.alice, {'post_type': 'review', 'title': 'T', 'content': 'C'})

        targets = [(e.target, e.field, e.delta) for e in result.effects]
        self.assertIn(('profile', 'posts_count', 1), targets)
        self.assertIn(('profile', 'reviews_count', 1), targets)
        self.assertIn(('cat', 'experience', 20), targets)
        self.assertEqual(result.effects_for('cat')[0].target_id, cat.id)

    def test_unknown_draft_field_rejected(self):
        with self.assertRaises(UnknownFieldError) as ctx:
            create_post(self.alice, {'title': 'T', 'content': 'C', 'like_count': 99})

        self.assertEqual(ctx.exception.fields, ['like_count'])
        self.assertEqual(Post.objects.count(), 0)

    def test_invalid_rating_rejected(self):
        with self.assertRaises(ValidationError):
            self.make_post(self.alice, 'review', rating=6)

    def test_failed_experience_grant_rolls_back_post(self):
        """Post, profile counters and cat experience commit together or not at all."""
        Cat.objects.create(user=self.alice, name='Nabi')

        with patch('community.services.add_experience', side_effect=DatabaseError('down')):
            with self.assertRaises(DatabaseError):
                self.make_post(self.alice, 'review')

        self.assertEqual(Post.objects.count(), 0)
        self.assertEqual(self.profile(self.alice).posts_count, 0)
        self.assertEqual(Cat.objects.get(user=self.alice).experience, 0)

    def test_tags_normalized_and_indexed(self):
        post = self.make_post(self.alice, tags=['#Nolan', ' IMAX ', 'Nolan', ''])

        self.assertEqual(post.tags, ['Nolan', 'IMAX'])
        self.assertEqual(
            sorted(PostTag.objects.filter(post=post).values_list('name', flat=True)),
            ['IMAX', 'Nolan']
        )


class PostUpdateDeleteTestCase(CommunityTestMixin, TestCase):

    def setUp(self):
        self.alice = self.make_user('alice')
        self.bob = self.make_user('bob')
        self.post = self.make_post(self.alice, 'review', tags=['old'])

    def test_update_merges_fields_and_keeps_counters(self):
        like_post(self.bob, self.post.id)
        updated = update_post(self.post.id, {'title': 'New title', 'tags': ['new']})

        self.assertEqual(updated.title, 'New title')
        self.assertEqual(updated.like_count, 1)
        self.assertEqual(list(PostTag.objects.filter(post=self.post).values_list('name', flat=True)), ['new'])

    def test_update_rejects_counters_and_type(self):
        for fields in ({'like_count': 5}, {'post_type': 'general'}, {'author_name': 'x'}):
            with self.assertRaises(UnknownFieldError):
                update_post(self.post.id, fields)

    def test_update_missing_post(self):
        with self.assertRaises(ObjectNotFound):
            update_post(999999, {'title': 'x'})

    def test_delete_cascades_comments_and_corrects_counters(self):
        """Deleting a post takes its comments and fixes the author's stats."""
        like_post(self.bob, self.post.id)
        like_post(self.alice, self.post.id)  # self-like, never counted as received
        add_comment(self.bob, self.post.id, 'Great review')
        add_comment(self.alice, self.post.id, 'Thanks!')

        profile = self.profile(self.alice)
        self.assertEqual(profile.likes_received, 1)
        self.assertEqual(profile.comments_received, 1)

        delete_post(self.post.id)

        self.assertFalse(Post.objects.filter(id=self.post.id).exists())
        self.assertFalse(Comment.objects.filter(post_id=self.post.id).exists())
        profile = self.profile(self.alice)
        self.assertEqual(profile.posts_count, 0)
        self.assertEqual(profile.reviews_count, 0)
        self.assertEqual(profile.likes_received, 0)
        self.assertEqual(profile.comments_received, 0)

    def test_delete_missing_post(self):
        with self.assertRaises(ObjectNotFound):
            delete_post(999999)


class PostAdminTestCase(CommunityTestMixin, TestCase):
    """Tags edited in the admin must stay searchable."""

    def setUp(self):
        self.post = self.make_post(self.make_user('alice'), tags=['Nolan'])
        self.admin = PostAdmin(Post, site)

    def save_through_admin(self, changed_data):
        form = Mock(instance=self.post, changed_data=changed_data)
        self.admin.save_model(None, self.post, form, True)
        self.admin.save_related(None, form, [], True)

    def test_tag_edit_rewrites_index(self):
        self.post.tags = ['#IMAX', 'Nolan', 'IMAX']
        self.save_through_admin(['tags'])

        self.assertEqual(get_post(self.post.id).tags, ['IMAX', 'Nolan'])
        self.assertEqual(
            sorted(PostTag.objects.filter(post=self.post).values_list('name', flat=True)),
            ['IMAX', 'Nolan']
        )
        self.assertEqual(len(list_filtered_posts(PostFilters(tags=('IMAX',))).items), 1)

    def test_other_edits_leave_index_alone(self):
        self.post.title = 'Renamed'
        self.save_through_admin(['title'])

        self.assertEqual(get_post(self.post.id).title, 'Renamed')
        self.assertEqual(list(PostTag.objects.filter(post=self.post).values_list('name', flat=True)), ['Nolan'])


class ViewCountTestCase(CommunityTestMixin, TestCase):

    def setUp(self):
        self.alice = self.make_user('alice')
        self.post = self.make_post(self.alice)

    def test_two_increments_add_exactly_two(self):
        self.assertTrue(increment_post_views(self.post.id))
        self.assertTrue(increment_post_views(self.post.id))

        self.post.refresh_from_db()
        self.assertEqual(self.post.view_count, 2)

    def test_failure_is_swallowed(self):
        with patch.object(Post.objects, 'filter', side_effect=DatabaseError('timeout')):
            self.assertFalse(increment_post_views(self.post.id))

        # Earlier failure does not affect later increments
        self.assertTrue(increment_post_views(self.post.id))
        self.post.refresh_from_db()
        self.assertEqual(self.post.view_count, 1)

    def test_missing_post_not_counted(self):
        self.assertFalse(increment_post_views(999999))


# ============================================================================
# LIKES
# ============================================================================

class LikeTestCase(CommunityTestMixin, TestCase):
    """
    CRITICAL: These tests verify that:
    1. like_count == len(liked_by) after every toggle
    2. The user is in liked_by iff they toggled an odd number of times
    3. The outcome is decided on the server, not guessed by the caller
    """

    def setUp(self):
        self.author = self.make_user('author')
        self.user = self.make_user('user')
        self.post = self.make_post(self.author)

    def test_toggle_parity(self):
        for toggles in range(1, 6):
            result = toggle_post_like(self.user, self.post.id)
            self.post.refresh_from_db()

            self.assertEqual(self.post.like_count, len(self.post.liked_by))
            self.assertEqual(self.user.id in self.post.liked_by, toggles % 2 == 1)
            self.assertEqual(result.action, 'created' if toggles % 2 else 'removed')

    def test_fourth_liker_scenario(self):
        """likes=3 by a, b, c; d toggles twice -> 4 then back to 3."""
        a, b, c, d = (self.make_user(name) for name in 'abcd')
        for liker in (a, b, c):
            like_post(liker, self.post.id)

        result = toggle_post_like(d, self.post.id)
        self.assertEqual(result.like_count, 4)
        self.assertIn(d.id, result.liked_by)

        result = toggle_post_like(d, self.post.id)
        self.assertEqual(result.like_count, 3)
        self.assertNotIn(d.id, result.liked_by)
        self.assertEqual(sorted(result.liked_by), sorted([a.id, b.id, c.id]))

    def test_cannot_like_twice(self):
        first = like_post(self.user, self.post.id)
        second = like_post(self.user, self.post.id)

        self.assertEqual(first.action, 'created')
        self.assertEqual(second.action, 'already_exists')
        self.assertFalse(second.success)
        self.post.refresh_from_db()
        self.assertEqual(self.post.liked_by, [self.user.id])

    def test_unlike_without_like(self):
        result = unlike_post(self.user, self.post.id)
        self.assertEqual(result.action, 'already_removed')
        self.assertEqual(result.like_count, 0)

    def test_likes_received_skips_self_likes(self):
        like_post(self.user, self.post.id)
        like_post(self.author, self.post.id)
        self.assertEqual(self.profile(self.author).likes_received, 1)

        unlike_post(self.user, self.post.id)
        self.assertEqual(self.profile(self.author).likes_received, 0)

    def test_comment_like_has_no_author_stats(self):
        comment = add_comment(self.user, self.post.id, 'Nice').instance
        result = toggle_comment_like(self.author, comment.id)

        self.assertEqual(result.like_count, 1)
        comment.refresh_from_db()
        self.assertEqual(comment.liked_by, [self.author.id])
        self.assertEqual(self.profile(self.user).likes_received, 0)

    def test_like_missing_post(self):
        with self.assertRaises(ObjectNotFound):
            toggle_post_like(self.user, 999999)


# ============================================================================
# COMMENTS
# ============================================================================

class CommentForestTestCase(SimpleTestCase):
    """build_comment_forest() is pure; no database needed."""

    def comment(self, pk, parent=None):
        return Comment(id=pk, parent_comment_id=parent, content=f'c{pk}')

    def test_replies_nested_under_parent(self):
        flat = [self.comment(1), self.comment(2, parent=1), self.comment(3, parent=2), self.comment(4)]
        forest = build_comment_forest(flat)

        self.assertEqual(forest_shape(forest), [(1, [(2, [(3, [])])]), (4, [])])

    def test_reply_before_parent_still_nested(self):
        forest = build_comment_forest([self.comment(2, parent=1), self.comment(1)])
        self.assertEqual(forest_shape(forest), [(1, [(2, [])])])

    def test_orphans_surface_as_roots(self):
        """A reply whose parent is gone is shown, not lost."""
        forest = build_comment_forest([self.comment(1), self.comment(5, parent=99)])
        self.assertEqual(forest_shape(forest), [(1, []), (5, [])])

    def test_every_comment_exactly_once(self):
        flat = [self.comment(1), self.comment(2, parent=1), self.comment(3, parent=1),
                self.comment(4, parent=77), self.comment(5, parent=5)]
        forest = build_comment_forest(flat)

        def ids(nodes):
            for node in nodes:
                yield node['comment'].id
                yield from ids(node['replies'])

        self.assertEqual(sorted(ids(forest)), [1, 2, 3, 4, 5])

    def test_empty(self):
        self.assertEqual(build_comment_forest([]), [])


class CommentTestCase(CommunityTestMixin, TestCase):

    def setUp(self):
        self.author = self.make_user('author')
        self.reader = self.make_user('reader')
        self.post = self.make_post(self.author)

    def test_root_comment_bumps_counter_by_one(self):
        before = get_post(self.post.id).comment_count
        comment = add_comment(self.reader, self.post.id, 'First!').instance

        self.assertEqual(get_post(self.post.id).comment_count, before + 1)
        self.assertEqual(forest_shape(list_comments(self.post.id)), [(comment.id, [])])

    def test_reply_nested_under_root(self):
        root = add_comment(self.reader, self.post.id, 'Root').instance
        reply = add_comment(self.author, self.post.id, 'Reply', parent_comment_id=root.id).instance

        self.assertEqual(forest_shape(list_comments(self.post.id)), [(root.id, [(reply.id, [])])])

    def test_comments_received_only_from_others(self):
        add_comment(self.reader, self.post.id, 'Nice')
        add_comment(self.author, self.post.id, 'Thanks')
        self.assertEqual(self.profile(self.author).comments_received, 1)

    def test_parent_must_belong_to_same_post(self):
        other_post = self.make_post(self.author)
        parent = add_comment(self.reader, other_post.id, 'Elsewhere').instance

        with self.assertRaises(ValueError):
            add_comment(self.reader, self.post.id, 'Reply', parent_comment_id=parent.id)

    def test_empty_comment_rejected(self):
        with self.assertRaises(ValueError):
            add_comment(self.reader, self.post.id, '   ')
        self.assertEqual(get_post(self.post.id).comment_count, 0)

    def test_comment_on_missing_post(self):
        with self.assertRaises(ObjectNotFound):
            add_comment(self.reader, 999999, 'Hello?')

    def test_deleted_parent_leaves_replies_as_roots(self):
        """Deleting a comment with two replies keeps both, now at root level."""
        root = add_comment(self.reader, self.post.id, 'Root').instance
        first = add_comment(self.author, self.post.id, 'R1', parent_comment_id=root.id).instance
        second = add_comment(self.reader, self.post.id, 'R2', parent_comment_id=root.id).instance

        delete_comment(root.id)

        self.assertEqual(Comment.objects.filter(id__in=[first.id, second.id]).count(), 2)
        self.assertEqual(forest_shape(list_comments(self.post.id)), [(first.id, []), (second.id, [])])
        self.assertEqual(get_post(self.post.id).comment_count, 2)

    def test_delete_reverses_received_counter(self):
        comment = add_comment(self.reader, self.post.id, 'Nice').instance
        delete_comment(comment.id)

        self.assertEqual(self.profile(self.author).comments_received, 0)
        self.assertEqual(get_post(self.post.id).comment_count, 0)

    def test_delete_skips_effect_when_counter_already_zero(self):
        comment = add_comment(self.reader, self.post.id, 'Nice').instance
        Post.objects.filter(id=self.post.id).update(comment_count=0)

        result = delete_comment(comment.id)

        self.assertEqual(result.effects_for('post'), [])
        self.assertEqual(get_post(self.post.id).comment_count, 0)

    def test_update_only_content(self):
        comment = add_comment(self.reader, self.post.id, 'Typo').instance
        self.assertEqual(update_comment(comment.id, {'content': 'Fixed'}).content, 'Fixed')

        with self.assertRaises(UnknownFieldError):
            update_comment(comment.id, {'parent_comment_id': None})

    def test_all_comments_in_single_query(self):
        root = add_comment(self.reader, self.post.id, 'Root').instance
        for i in range(5):
            add_comment(self.author, self.post.id, f'Reply {i}', parent_comment_id=root.id)

        with self.assertNumQueries(1):
            forest = list_comments(self.post.id)
        self.assertEqual(len(forest[0]['replies']), 5)


# ============================================================================
# PAGINATION & FILTERS
# ============================================================================

class PaginationTestCase(CommunityTestMixin, TestCase):

    def setUp(self):
        self.alice = self.make_user('alice')

    def test_full_page_has_more(self):
        for i in range(20):
            self.make_post(self.alice, title=f'Post {i}')
        self.assertTrue(list_posts(20).has_more)

    def test_short_page_is_exhausted(self):
        for i in range(7):
            self.make_post(self.alice, title=f'Post {i}')
        page = list_posts(20)

        self.assertEqual(len(page.items), 7)
        self.assertFalse(page.has_more)

    def test_cursor_walks_every_post_once_newest_first(self):
        posts = [self.make_post(self.alice, title=f'Post {i}') for i in range(25)]

        first = list_posts(20)
        second = list_posts(20, first.next_cursor)

        ids = [p.id for p in first.items + second.items]
        self.assertEqual(len(second.items), 5)
        self.assertEqual(ids, [p.id for p in sorted(posts, key=lambda p: (p.created_at, p.id), reverse=True)])

    def test_empty_page_has_no_cursor(self):
        page = list_posts(20)
        self.assertEqual(page.items, [])
        self.assertIsNone(page.next_cursor)

    def test_invalid_cursor(self):
        with self.assertRaises(ValueError):
            decode_cursor('created_at', 'not-a-cursor')

    def test_counter_cursor_needs_an_integer_value(self):
        for value in ({'x': 1}, [1], '3', True, None):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    decode_cursor('like_count', make_cursor(value, 1))

        self.assertEqual(decode_cursor('like_count', make_cursor(3, 7)), (3, 7))

    def test_filters_combine(self):
        self.make_post(self.alice, 'review', tags=['Nolan'], status='hot')
        self.make_post(self.alice, 'review', tags=['Marvel'])
        self.make_post(self.alice, 'discussion', tags=['Nolan'])

        page = list_filtered_posts(PostFilters(post_type='review', tags=('Nolan', 'Villeneuve')))
        self.assertEqual([p.tags for p in page.items], [['Nolan']])

        page = list_filtered_posts(PostFilters(status='hot'))
        self.assertEqual(len(page.items), 1)

    def test_tag_match_returns_post_once(self):
        self.make_post(self.alice, tags=['Nolan', 'IMAX'])
        page = list_filtered_posts(PostFilters(tags=('Nolan', 'IMAX')))
        self.assertEqual(len(page.items), 1)

    def test_sort_by_likes_paginates_with_ties(self):
        bob = self.make_user('bob')
        posts = [self.make_post(self.alice, title=f'Post {i}') for i in range(5)]
        like_post(bob, posts[2].id)

        filters = PostFilters(sort_by='like_count', sort_order='desc')
        first = list_filtered_posts(filters, page_size=3)
        second = list_filtered_posts(filters, page_size=3, cursor=first.next_cursor)

        self.assertEqual(first.items[0].id, posts[2].id)
        self.assertEqual(len({p.id for p in first.items + second.items}), 5)

    def test_unknown_sort_field(self):
        with self.assertRaises(ValueError):
            list_filtered_posts(PostFilters(sort_by='title'))


# ============================================================================
# COMPANIONS & JOURNAL
# ============================================================================

class CompanionTestCase(CommunityTestMixin, TestCase):

    def setUp(self):
        self.user = self.make_user('owner')

    def test_level_formula(self):
        self.assertEqual(level_for_experience(0), 1)
        self.assertEqual(level_for_experience(99), 1)
        self.assertEqual(level_for_experience(100), 2)
        self.assertEqual(level_for_experience(250), 3)

    def test_experience_fans_out_to_every_cat(self):
        """Both cats get +20 and their own level recomputed."""
        young = Cat.objects.create(user=self.user, name='Nabi')
        old = Cat.objects.create(user=self.user, name='Toto', experience=90)

        effects = add_experience(self.user.id, 'review', 20)

        young.refresh_from_db()
        old.refresh_from_db()
        self.assertEqual((young.experience, young.level, young.review_count), (20, 1, 1))
        self.assertEqual((old.experience, old.level, old.review_count), (110, 2, 1))
        self.assertEqual(len(effects), 4)

    def test_fan_out_is_all_or_nothing(self):
        Cat.objects.create(user=self.user, name='Nabi')
        Cat.objects.create(user=self.user, name='Toto')
        real_save = Cat.save
        calls = []

        def flaky_save(cat, *args, **kwargs):
            calls.append(cat.id)
            if len(calls) == 2:
                raise DatabaseError('disk full')
            return real_save(cat, *args, **kwargs)

        with patch.object(Cat, 'save', autospec=True, side_effect=flaky_save):
            with self.assertRaises(DatabaseError):
                add_experience(self.user.id, 'discussion', 15)

        self.assertEqual(
            list(Cat.objects.filter(user=self.user).values_list('experience', flat=True)),
            [0, 0]
        )

    def test_user_without_cats(self):
        self.assertEqual(add_experience(self.user.id, 'emotion', 10), [])

    def test_invalid_activity(self):
        with self.assertRaises(ValueError):
            add_experience(self.user.id, 'general', 5)

    def test_level_and_experience_not_settable(self):
        cat = create_cat(self.user, {'name': 'Nabi'})

        with self.assertRaises(UnknownFieldError):
            create_cat(self.user, {'name': 'Cheat', 'level': 50})
        with self.assertRaises(UnknownFieldError):
            update_cat(cat.id, {'experience': 1000})

        self.assertEqual(update_cat(cat.id, {'specialty': 'Horror'}).specialty, 'Horror')


class EmotionJournalTestCase(CommunityTestMixin, TestCase):

    def setUp(self):
        self.user = self.make_user('journal')
        self.cat = Cat.objects.create(user=self.user, name='Dalki')
        self.fields = {'movie_title': 'La La Land', 'emotion': 'sad', 'emoji': '😭', 'intensity': 5}

    def test_entry_grows_cats(self):
        result = create_emotion(self.user, self.fields)

        self.cat.refresh_from_db()
        self.assertEqual(self.cat.experience, 10)
        self.assertEqual(self.cat.emotion_count, 1)
        self.assertEqual(result.effects_for('cat')[0].delta, 10)

    def test_entry_and_experience_in_one_transaction(self):
        with patch('community.journal.add_experience', side_effect=DatabaseError('down')):
            with self.assertRaises(DatabaseError):
                create_emotion(self.user, self.fields)

        self.assertEqual(EmotionRecord.objects.count(), 0)

    def test_newest_first(self):
        first = create_emotion(self.user, self.fields).instance
        second = create_emotion(self.user, {**self.fields, 'movie_title': 'Minari'}).instance

        self.assertEqual([r.id for r in list_emotions(self.user.id)], [second.id, first.id])

    def test_update_and_delete_have_no_side_effects(self):
        record = create_emotion(self.user, self.fields).instance
        update_emotion(record.id, {'text': 'Still crying'})
        delete_emotion(record.id)

        self.cat.refresh_from_db()
        self.assertEqual(self.cat.experience, 10)
        with self.assertRaises(ObjectNotFound):
            delete_emotion(record.id)

    def test_intensity_range(self):
        with self.assertRaises(ValidationError):
            create_emotion(self.user, {**self.fields, 'intensity': 9})


class NormalizeTagsTestCase(SimpleTestCase):

    def test_normalize(self):
        self.assertEqual(normalize_tags(['#a', ' a ', 'b', '']), ['a', 'b'])
        self.assertEqual(normalize_tags(None), [])


# ============================================================================
# COMMUNITY STORE
# ============================================================================

class FamilyStateTestCase(SimpleTestCase):

    def test_allowed_path(self):
        state = FamilyState()
        for status in ('loading', 'errored', 'loading', 'loaded', 'loading', 'loaded'):
            state.transition(status)
        self.assertEqual(state.status, 'loaded')

    def test_forbidden_transitions(self):
        for start, target in (('idle', 'loaded'), ('idle', 'errored'), ('loaded', 'errored'), ('loading', 'loading')):
            with self.assertRaises(StateTransitionError):
                FamilyState(status=start).transition(target)


class CommunityStoreTestCase(CommunityTestMixin, TestCase):

    def setUp(self):
        self.user = self.make_user('alice')
        self.other = self.make_user('bob')
        self.store = CommunityStore(lambda: self.user, page_size=20)

    def test_fetch_posts_loads_first_page(self):
        for i in range(20):
            self.make_post(self.other, title=f'Post {i}')
        self.store.fetch_posts()

        self.assertEqual(self.store.state['posts'].status, 'loaded')
        self.assertEqual(len(self.store.posts), 20)
        self.assertTrue(self.store.has_more_posts)
        self.assertIsNotNone(self.store.post_cursor)

    def test_short_page_stops_pagination(self):
        for i in range(7):
            self.make_post(self.other, title=f'Post {i}')
        self.store.fetch_posts()

        self.assertFalse(self.store.has_more_posts)
        with self.assertNumQueries(0):
            self.store.load_more_posts()

    def test_load_more_without_cursor_is_noop(self):
        with self.assertNumQueries(0):
            self.store.load_more_posts()
        self.assertEqual(self.store.state['posts'].status, 'idle')

    def test_load_more_while_loading_is_noop(self):
        self.store.post_cursor = 'anything'
        self.store.is_loading_more = True
        with self.assertNumQueries(0):
            self.store.load_more_posts()

    def test_load_more_reuses_last_filters(self):
        for i in range(25):
            self.make_post(self.other, 'review', title=f'Review {i}')
        for i in range(3):
            self.make_post(self.other, 'general', title=f'Talk {i}')

        self.store.search_posts(PostFilters(post_type='review'))
        self.store.load_more_posts()

        self.assertEqual(len(self.store.posts), 25)
        self.assertTrue(all(p.post_type == 'review' for p in self.store.posts))
        self.assertFalse(self.store.has_more_posts)
        self.assertFalse(self.store.is_loading_more)

    def test_set_filters_applies_to_next_page(self):
        for i in range(25):
            self.make_post(self.other, 'review', title=f'Review {i}')
        for i in range(3):
            self.make_post(self.other, 'general', title=f'Talk {i}')

        self.store.fetch_posts()
        self.assertEqual(len(self.store.posts), 20)

        self.store.set_filters(PostFilters(post_type='general'))
        self.store.load_more_posts()

        # The three newest posts were already on the first page
        self.assertEqual(self.store.filters, PostFilters(post_type='general'))
        self.assertEqual(len(self.store.posts), 20)
        self.assertFalse(self.store.has_more_posts)

    def test_mutations_need_identity(self):
        """No user: fail before touching the database or the cache."""
        store = CommunityStore(lambda: None)
        actions = [
            lambda: store.add_post({'title': 'T', 'content': 'C'}),
            lambda: store.toggle_post_like(1),
            lambda: store.add_comment(1, 'Hi'),
            lambda: store.delete_comment(1),
            lambda: store.add_cat({'name': 'Nabi'}),
            lambda: store.add_emotion({'movie_title': 'M', 'emotion': 'joy'}),
        ]
        with self.assertNumQueries(0):
            for action in actions:
                with self.assertRaises(AuthorizationRequired):
                    action()

        self.assertEqual(store.posts, [])
        self.assertTrue(all(state.error is None for state in store.state.values()))

    def test_add_post_goes_to_front_and_grows_cached_cats(self):
        self.make_post(self.other, title='Older')
        self.store.fetch_posts()
        self.store.add_cat({'name': 'Nabi'})
        self.store.fetch_cats()

        post_id = self.store.add_post({'post_type': 'review', 'title': 'Dune', 'content': 'Sand.'})

        self.assertEqual(self.store.posts[0].id, post_id)
        self.assertEqual(self.store.cats[0].experience, 20)
        self.assertEqual(self.store.cats[0].review_count, 1)

    def test_cached_level_follows_experience(self):
        self.store.add_cat({'name': 'Nabi'})
        for i in range(5):
            self.store.add_post({'post_type': 'review', 'title': f'Review {i}', 'content': 'Good.'})

        cat = self.store.cats[0]
        self.assertEqual((cat.experience, cat.level), (100, 2))
        cat.refresh_from_db()
        self.assertEqual((cat.experience, cat.level), (100, 2))

    def test_toggle_like_uses_server_outcome(self):
        """A stale cached count is replaced by what the server decided."""
        post = self.make_post(self.other)
        self.store.fetch_posts()
        like_post(self.make_user('carol'), post.id)  # cache does not know

        result = self.store.toggle_post_like(post.id)

        self.assertEqual(result.action, 'created')
        cached = self.store.posts[0]
        self.assertEqual(cached.like_count, 2)
        self.assertEqual(cached.like_count, len(cached.liked_by))
        self.assertIn(self.user.id, cached.liked_by)

    def test_toggle_like_updates_list_and_focused_copy(self):
        post = self.make_post(self.other)
        self.store.fetch_posts()
        self.store.fetch_post(post.id)

        self.store.toggle_post_like(post.id)

        self.assertEqual(self.store.posts[0].like_count, 1)
        self.assertEqual(self.store.current_post.like_count, 1)

    def test_update_other_users_post_refused(self):
        post = self.make_post(self.other, title='Mine')
        self.store.fetch_posts()

        with self.assertRaises(AuthorshipViolation):
            self.store.update_post(post.id, {'title': 'Hijacked'})

        self.assertIsNotNone(self.store.state['posts'].error)
        self.assertEqual(get_post(post.id).title, 'Mine')

    def test_update_and_delete_own_post(self):
        post_id = self.store.add_post({'title': 'Draft', 'content': 'C'})
        self.store.fetch_post(post_id)

        self.store.update_post(post_id, {'title': 'Final'})
        self.assertEqual(self.store.posts[0].title, 'Final')
        self.assertEqual(self.store.current_post.title, 'Final')

        self.store.delete_post(post_id)
        self.assertEqual(self.store.posts, [])
        self.assertIsNone(self.store.current_post)

    def test_unknown_field_sets_error_and_raises(self):
        post_id = self.store.add_post({'title': 'Draft', 'content': 'C'})

        with self.assertRaises(UnknownFieldError):
            self.store.update_post(post_id, {'like_count': 1000})

        self.assertIn('like_count', self.store.state['posts'].error)
        self.assertEqual(self.store.state['posts'].status, 'idle')

    def test_comments_spliced_into_cached_forest(self):
        post = self.make_post(self.other)
        self.store.fetch_posts()
        self.store.fetch_comments(post.id)

        root_id = self.store.add_comment(post.id, 'Root')
        reply_id = self.store.add_comment(post.id, 'Reply', parent_comment_id=root_id)
        second_id = self.store.add_comment(post.id, 'Another root')

        self.assertEqual(forest_shape(self.store.comments), [(root_id, [(reply_id, [])]), (second_id, [])])
        self.assertEqual(self.store.posts[0].comment_count, 3)
        self.assertEqual(forest_shape(self.store.comments), forest_shape(list_comments(post.id)))

    def test_deleted_comment_replies_move_to_root(self):
        post = self.make_post(self.other)
        self.store.fetch_posts()
        self.store.fetch_comments(post.id)
        root_id = self.store.add_comment(post.id, 'Root')
        self.store.add_comment(post.id, 'R1', parent_comment_id=root_id)
        self.store.add_comment(post.id, 'R2', parent_comment_id=root_id)

        self.store.delete_comment(root_id)

        self.assertEqual(len(self.store.comments), 2)
        self.assertEqual(forest_shape(self.store.comments), forest_shape(list_comments(post.id)))
        self.assertEqual(self.store.posts[0].comment_count, 2)

    def test_toggle_comment_like(self):
        post = self.make_post(self.other)
        comment = add_comment(self.other, post.id, 'Hello').instance
        self.store.fetch_comments(post.id)

        self.store.toggle_comment_like(comment.id)

        cached = self.store.comments[0]['comment']
        self.assertEqual((cached.like_count, cached.liked_by), (1, [self.user.id]))

    def test_views_never_set_error(self):
        post = self.make_post(self.other)
        self.store.fetch_posts()

        self.store.increment_post_views(post.id)
        self.assertEqual(self.store.posts[0].view_count, 1)

        with patch.object(Post.objects, 'filter', side_effect=DatabaseError('timeout')):
            self.store.increment_post_views(post.id)

        self.assertEqual(self.store.posts[0].view_count, 1)
        self.assertIsNone(self.store.state['posts'].error)

    def test_fetch_failure_is_isolated_and_retryable(self):
        self.store.fetch_posts()

        with patch('community.queries.list_cats', side_effect=DatabaseError('down')):
            with self.assertRaises(DatabaseError):
                self.store.fetch_cats()

        self.assertEqual(self.store.state['cats'].status, 'errored')
        self.assertEqual(self.store.state['cats'].error, 'Failed to load cats.')
        self.assertEqual(self.store.state['posts'].status, 'loaded')

        self.store.fetch_cats()
        self.assertEqual(self.store.state['cats'].status, 'loaded')
        self.assertIsNone(self.store.state['cats'].error)

    def test_clear_errors_keeps_status_and_data(self):
        self.store.add_cat({'name': 'Nabi'})
        with patch('community.queries.list_emotions', side_effect=DatabaseError('down')):
            with self.assertRaises(DatabaseError):
                self.store.fetch_emotions()

        self.store.clear_errors()

        self.assertIsNone(self.store.state['emotions'].error)
        self.assertEqual(self.store.state['emotions'].status, 'errored')
        self.assertEqual(len(self.store.cats), 1)

    def test_emotion_journal_actions(self):
        self.store.add_cat({'name': 'Dalki'})
        self.store.fetch_emotions()
        record_id = self.store.add_emotion({'movie_title': 'Minari', 'emotion': 'nostalgic', 'emoji': '🥺'})

        self.assertEqual(self.store.emotions[0].id, record_id)
        self.assertEqual(self.store.cats[0].emotion_count, 1)

        self.store.update_emotion(record_id, {'intensity': 4})
        self.assertEqual(self.store.emotions[0].intensity, 4)

        self.store.delete_emotion(record_id)
        self.assertEqual(self.store.emotions, [])

    def test_other_users_cats_readable(self):
        Cat.objects.create(user=self.other, name='Toto')
        self.store.fetch_cats(user_id=self.other.id)
        self.assertEqual([cat.name for cat in self.store.cats], ['Toto'])

    def test_update_cat_replaces_cached_copy(self):
        cat_id = self.store.add_cat({'name': 'Nabi'})
        self.store.update_cat(cat_id, {'name': 'Nabi II'})
        self.assertEqual(self.store.cats[0].name, 'Nabi II')


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================

class PostSubscriptionTestCase(CommunityTestMixin, TestCase):

    def setUp(self):
        self.author = self.make_user('author')
        self.reader = self.make_user('reader')
        self.post = self.make_post(self.author)
        self.received = []
        self.unsubscribe = subscribe_to_post(self.post.id, self.received.append)
        self.addCleanup(self.unsubscribe)

    def test_receives_fresh_post_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            like_post(self.reader, self.post.id)

        self.assertEqual(len(self.received), 1)
        self.assertEqual(self.received[0].like_count, 1)

    def test_comments_and_views_notify(self):
        with self.captureOnCommitCallbacks(execute=True):
            add_comment(self.reader, self.post.id, 'Hi')
        with self.captureOnCommitCallbacks(execute=True):
            increment_post_views(self.post.id)

        self.assertEqual([(p.comment_count, p.view_count) for p in self.received], [(1, 0), (1, 1)])

    def test_other_posts_ignored(self):
        other = self.make_post(self.author)
        with self.captureOnCommitCallbacks(execute=True):
            like_post(self.reader, other.id)
        self.assertEqual(self.received, [])

    def test_deletion_delivers_none(self):
        with self.captureOnCommitCallbacks(execute=True):
            delete_post(self.post.id)
        self.assertEqual(self.received, [None])

    def test_unsubscribe_stops_delivery(self):
        self.unsubscribe()
        with self.captureOnCommitCallbacks(execute=True):
            like_post(self.reader, self.post.id)
        self.assertEqual(self.received, [])

    def subscribe_broken_callback(self):
        def broken(post):
            raise RuntimeError('subscriber bug')
        self.addCleanup(subscribe_to_post(self.post.id, broken))

    def test_failing_subscriber_never_reaches_the_writer(self):
        self.subscribe_broken_callback()

        with self.assertLogs('community.signals', level='ERROR'):
            with self.captureOnCommitCallbacks(execute=True):
                counted = increment_post_views(self.post.id)

        self.assertTrue(counted)
        self.assertEqual(get_post(self.post.id).view_count, 1)
        # Other subscribers still hear about the write
        self.assertEqual([p.view_count for p in self.received], [1])

    def test_failing_subscriber_leaves_store_in_sync(self):
        self.subscribe_broken_callback()
        store = CommunityStore(lambda: self.reader)
        store.fetch_posts()

        with self.assertLogs('community.signals', level='ERROR'):
            with self.captureOnCommitCallbacks(execute=True):
                store.toggle_post_like(self.post.id)

        self.assertEqual(get_post(self.post.id).like_count, 1)
        self.assertEqual(store.posts[0].like_count, 1)
        self.assertIsNone(store.state['posts'].error)


# ============================================================================
# HTTP API
# ============================================================================

class PostAPITestCase(CommunityTestMixin, APITestCase):

    def setUp(self):
        self.alice = self.make_user('alice')
        self.bob = self.make_user('bob')
        self.client.force_authenticate(self.alice)

    def test_create_post(self):
        response = self.client.post('/api/posts/', {
            'post_type': 'review',
            'title': 'Dune: Part Two',
            'content': 'Spectacular.',
            'rating': 5,
            'tags': ['Villeneuve'],
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['like_count'], 0)
        self.assertEqual(response.data['author']['username'], 'alice')
        self.assertEqual(self.profile(self.alice).reviews_count, 1)

    def test_create_rejects_unknown_and_server_fields(self):
        for extra in ({'likes': 3}, {'like_count': 3}, {'view_count': 9}):
            response = self.client.post(
                '/api/posts/', {'title': 'T', 'content': 'C', **extra}, format='json'
            )
            self.assertEqual(response.status_code, 400)
        self.assertEqual(Post.objects.count(), 0)

    def test_anonymous_cannot_post(self):
        self.client.force_authenticate(None)
        response = self.client.post('/api/posts/', {'title': 'T', 'content': 'C'}, format='json')
        self.assertIn(response.status_code, (401, 403))

    def test_list_paginates_with_cursor(self):
        for i in range(3):
            self.make_post(self.bob, title=f'Post {i}')

        response = self.client.get('/api/posts/', {'page_size': 2})
        self.assertEqual(len(response.data['results']), 2)
        self.assertTrue(response.data['has_more'])

        response = self.client.get('/api/posts/', {'page_size': 2, 'cursor': response.data['next_cursor']})
        self.assertEqual(len(response.data['results']), 1)
        self.assertFalse(response.data['has_more'])

    def test_list_filters(self):
        self.make_post(self.bob, 'review', tags=['Nolan'])
        self.make_post(self.bob, 'discussion', tags=['Marvel'])

        response = self.client.get('/api/posts/', {'type': 'review'})
        self.assertEqual([p['post_type'] for p in response.data['results']], ['review'])

        response = self.client.get('/api/posts/', {'tags': 'Marvel,Pixar'})
        self.assertEqual([p['post_type'] for p in response.data['results']], ['discussion'])

    def test_bad_cursor_is_400(self):
        response = self.client.get('/api/posts/', {'cursor': '!!!'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.data)

    def test_counter_cursor_with_object_value_is_400(self):
        self.make_post(self.alice)
        response = self.client.get('/api/posts/', {
            'sort_by': 'like_count',
            'cursor': make_cursor({'x': 1}, 1),
        })
        self.assertEqual(response.status_code, 400)

    def test_detail_includes_comment_forest(self):
        post = self.make_post(self.bob)
        root = add_comment(self.alice, post.id, 'Root').instance
        add_comment(self.bob, post.id, 'Reply', parent_comment_id=root.id)

        response = self.client.get(f'/api/posts/{post.id}/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data['comments']), 1)
        self.assertEqual(response.data['comments'][0]['replies'][0]['comment']['content'], 'Reply')

    def test_missing_post_is_404(self):
        self.assertEqual(self.client.get('/api/posts/999999/').status_code, 404)

    def test_only_author_can_edit_or_delete(self):
        post = self.make_post(self.bob, title='Bob')

        response = self.client.patch(f'/api/posts/{post.id}/', {'title': 'Alice'}, format='json')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.client.delete(f'/api/posts/{post.id}/').status_code, 403)

        self.client.force_authenticate(self.bob)
        response = self.client.patch(f'/api/posts/{post.id}/', {'title': 'Bob edited'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['title'], 'Bob edited')

    def test_post_type_cannot_change(self):
        post = self.make_post(self.alice, 'review')
        response = self.client.patch(f'/api/posts/{post.id}/', {'post_type': 'general'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_like_toggle_and_view(self):
        post = self.make_post(self.bob)

        response = self.client.post(f'/api/posts/{post.id}/like/')
        self.assertEqual(response.data['action'], 'created')
        self.assertTrue(response.data['user_liked'])

        response = self.client.post(f'/api/posts/{post.id}/like/')
        self.assertEqual(response.data['like_count'], 0)

        response = self.client.post(f'/api/posts/{post.id}/view/')
        self.assertTrue(response.data['counted'])

    def test_delete_post(self):
        post = self.make_post(self.alice)
        self.assertEqual(self.client.delete(f'/api/posts/{post.id}/').status_code, 204)
        self.assertFalse(Post.objects.filter(id=post.id).exists())


class CommentAPITestCase(CommunityTestMixin, APITestCase):

    def setUp(self):
        self.alice = self.make_user('alice')
        self.bob = self.make_user('bob')
        self.post = self.make_post(self.bob)
        self.client.force_authenticate(self.alice)

    def test_add_reply_and_list(self):
        url = f'/api/posts/{self.post.id}/comments/'
        root = self.client.post(url, {'content': 'Root'}, format='json')
        self.assertEqual(root.status_code, 201)

        reply = self.client.post(url, {'content': 'Reply', 'parent_comment_id': root.data['id']}, format='json')
        self.assertEqual(reply.data['parent_comment_id'], root.data['id'])

        forest = self.client.get(url).data
        self.assertEqual(len(forest), 1)
        self.assertEqual(forest[0]['replies'][0]['comment']['id'], reply.data['id'])

    def test_empty_comment_rejected(self):
        response = self.client.post(f'/api/posts/{self.post.id}/comments/', {'content': '  '}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_comment_on_missing_post(self):
        response = self.client.post('/api/posts/999999/comments/', {'content': 'Hi'}, format='json')
        self.assertEqual(response.status_code, 404)

    def test_edit_like_delete(self):
        comment = add_comment(self.alice, self.post.id, 'Typo').instance

        response = self.client.patch(f'/api/comments/{comment.id}/', {'content': 'Fixed'}, format='json')
        self.assertEqual(response.data['content'], 'Fixed')

        response = self.client.post(f'/api/comments/{comment.id}/like/')
        self.assertEqual(response.data['like_count'], 1)

        self.assertEqual(self.client.delete(f'/api/comments/{comment.id}/').status_code, 204)
        self.assertEqual(get_post(self.post.id).comment_count, 0)

    def test_cannot_edit_others_comment(self):
        comment = add_comment(self.bob, self.post.id, 'Mine').instance
        response = self.client.patch(f'/api/comments/{comment.id}/', {'content': 'Not yours'}, format='json')
        self.assertEqual(response.status_code, 403)


class CompanionAPITestCase(CommunityTestMixin, APITestCase):

    def setUp(self):
        self.alice = self.make_user('alice')
        self.client.force_authenticate(self.alice)

    def test_adopt_and_grow(self):
        response = self.client.post('/api/cats/', {'name': 'Nabi', 'emoji': '😺'}, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['level'], 1)

        response = self.client.post('/api/emotions/', {
            'movie_title': 'About Time', 'emotion': 'warm', 'emoji': '💖', 'intensity': 4,
        }, format='json')
        self.assertEqual(response.status_code, 201)

        cats = self.client.get('/api/cats/').data
        self.assertEqual(cats[0]['experience'], 10)
        self.assertEqual(cats[0]['stats'], {'reviews': 0, 'discussions': 0, 'emotions': 1})

    def test_level_not_writable(self):
        response = self.client.post('/api/cats/', {'name': 'Cheat', 'level': 99}, format='json')
        self.assertEqual(response.status_code, 400)

        cat = create_cat(self.alice, {'name': 'Nabi'})
        response = self.client.patch(f'/api/cats/{cat.id}/', {'experience': 500}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_anonymous_cat_list_needs_user_param(self):
        create_cat(self.alice, {'name': 'Nabi'})
        self.client.force_authenticate(None)

        self.assertEqual(self.client.get('/api/cats/').status_code, 401)
        response = self.client.get('/api/cats/', {'user': self.alice.id})
        self.assertEqual([cat['name'] for cat in response.data], ['Nabi'])

    def test_emotion_edit_and_delete(self):
        record = create_emotion(self.alice, {'movie_title': 'Parasite', 'emotion': 'anxious'}).instance

        response = self.client.patch(f'/api/emotions/{record.id}/', {'intensity': 5}, format='json')
        self.assertEqual(response.data['intensity'], 5)
        self.assertEqual(self.client.delete(f'/api/emotions/{record.id}/').status_code, 204)


class ProfileAndAuthAPITestCase(CommunityTestMixin, APITestCase):

    def test_profile_created_with_user(self):
        user = self.make_user('newbie')
        response = self.client.get(f'/api/users/{user.id}/profile/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['display_name'], 'newbie')
        self.assertEqual(response.data['stats']['posts_count'], 0)

    def test_missing_profile(self):
        self.assertEqual(self.client.get('/api/users/999999/profile/').status_code, 404)

    def test_edit_own_profile(self):
        user = self.make_user('newbie')
        self.client.force_authenticate(user)

        response = self.client.patch(f'/api/users/{user.id}/profile/', {
            'nickname': 'CinemaLover',
            'bio': 'Mostly Nolan.',
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['display_name'], 'CinemaLover')
        self.assertEqual(response.data['bio'], 'Mostly Nolan.')
        # New writes pick up the nickname
        self.assertEqual(self.make_post(user).author_name, 'CinemaLover')

    def test_cannot_edit_others_profile(self):
        owner = self.make_user('owner')
        self.client.force_authenticate(self.make_user('intruder'))

        response = self.client.patch(f'/api/users/{owner.id}/profile/', {'nickname': 'Hacked'}, format='json')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.profile(owner).nickname, '')

    def test_profile_stats_not_editable(self):
        user = self.make_user('newbie')
        self.client.force_authenticate(user)

        response = self.client.patch(f'/api/users/{user.id}/profile/', {'posts_count': 99}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.profile(user).posts_count, 0)
        with self.assertRaises(UnknownFieldError):
            update_profile(user, {'likes_received': 5})

    def test_mock_login_then_whoami(self):
        response = self.client.post('/api/auth/mock-login/', {'username': 'moviefan'}, format='json')
        self.assertTrue(response.data['created'])

        response = self.client.get('/api/auth/whoami/')
        self.assertTrue(response.data['authenticated'])
        self.assertEqual(response.data['username'], 'moviefan')


# ============================================================================
# SEEDING
# ============================================================================

class SeedCommandTestCase(TestCase):

    def test_seed_keeps_counters_consistent(self):
        call_command('seed_community', comments=10, stdout=StringIO())

        self.assertEqual(Post.objects.count(), 4)
        self.assertEqual(EmotionRecord.objects.count(), 5)
        for post in Post.objects.all():
            self.assertEqual(post.like_count, len(post.liked_by))
            self.assertEqual(post.comment_count, Comment.objects.filter(post=post).count())

        nabi = Cat.objects.get(name='Nabi')
        self.assertEqual((nabi.experience, nabi.review_count), (20, 1))
