"""
Management command to seed the database with sample community data.

Usage: python manage.py seed_community [--clear] [--comments 30]

Everything goes through the services, so profile stats, cat
experience and comment counters come out consistent.
"""

import random

from django.core.management.base import BaseCommand
from django.contrib.auth.models import User

from community import companions, journal, services
from community.models import Cat, Comment, EmotionRecord, Post, UserProfile

SAMPLE_USERS = [
    ('user1', 'CinemaLover'),
    ('user2', 'DramaQueen'),
    ('user3', 'MovieCritic'),
    ('user4', 'FeelItAll'),
]

SAMPLE_CATS = [
    ('user1', {
        'name': 'Nabi',
        'emoji': '🐱',
        'cat_type': 'Film critic',
        'description': 'A clever cat that grows by writing reviews',
        'specialty': 'In-depth film analysis',
        'achievements': ['First review', 'Rating king', 'Best reviewer'],
    }),
    ('user2', {
        'name': 'Toto',
        'emoji': '😺',
        'cat_type': 'Debate champion',
        'description': 'Levels up through passionate discussions',
        'specialty': 'Lively community participation',
        'achievements': ['Debate master', 'Comment king', 'Popular author'],
    }),
    ('user3', {
        'name': 'Dalki',
        'emoji': '😸',
        'cat_type': 'Emotion artist',
        'description': 'Growing slowly through its emotion journal',
        'specialty': 'Delicate emotional expression',
        'achievements': ['Journal keeper', 'Empath'],
    }),
]

SAMPLE_POSTS = [
    ('user1', {
        'post_type': 'review',
        'title': 'Oppenheimer',
        'content': (
            "Another Nolan masterpiece. The most impressive historical biopic I have seen. "
            "The visuals and the sound design are overwhelming. Watch it in IMAX."
        ),
        'movie_title': 'Oppenheimer',
        'rating': 4,
        'tags': ['ChristopherNolan', 'History', 'Biopic', 'IMAX'],
        'status': 'hot',
    }),
    ('user2', {
        'post_type': 'discussion',
        'title': 'What did you think of The Glory season 2?',
        'content': (
            "It felt even more intense than season 1. How complete was the revenge for you? "
            "The last episode really stayed with me."
        ),
        'movie_title': 'The Glory',
        'tags': ['TheGlory', 'KDrama', 'Revenge'],
        'is_active': True,
        'status': 'hot',
    }),
    ('user3', {
        'post_type': 'review',
        'title': 'Spider-Man: Across the Spider-Verse',
        'content': (
            "Visually groundbreaking but the story gets a bit tangled. The animation is "
            "astonishing, it just does not beat the first one."
        ),
        'movie_title': 'Spider-Man: Across the Spider-Verse',
        'rating': 3,
        'tags': ['Animation', 'SpiderMan', 'Marvel', 'Multiverse'],
        'status': 'new',
    }),
    ('user4', {
        'post_type': 'emotion',
        'title': 'La La Land',
        'content': (
            "😭 Sad | I cried so much at the final scene. Choosing between love and dreams "
            "felt painfully real."
        ),
        'movie_title': 'La La Land',
        'emotion': 'sad',
        'emotion_emoji': '😭',
        'emotion_intensity': 5,
        'tags': ['LaLaLand', 'Musical', 'Romance'],
        'status': 'new',
    }),
]

SAMPLE_EMOTIONS = [
    {
        'movie_title': 'La La Land',
        'emotion': 'sad',
        'emoji': '😭',
        'text': 'The final scene broke me. Love versus dreams felt far too real.',
        'intensity': 5,
        'tags': ['Musical', 'Romance', 'DreamsAndReality'],
    },
    {
        'movie_title': 'Top Gun: Maverick',
        'emotion': 'excited',
        'emoji': '🔥',
        'text': 'Breathless action. My palms were sweating through the final mission.',
        'intensity': 4,
        'tags': ['Action', 'Adrenaline', 'TomCruise'],
    },
    {
        'movie_title': 'About Time',
        'emotion': 'warm',
        'emoji': '💖',
        'text': 'A reminder of how precious ordinary days are.',
        'intensity': 4,
        'tags': ['Family', 'Everyday', 'TimeTravel'],
    },
    {
        'movie_title': 'Parasite',
        'emotion': 'anxious',
        'emoji': '😰',
        'text': 'Uncomfortably honest about class. Bong Joon-ho at his best.',
        'intensity': 5,
        'tags': ['SocialCritique', 'Class', 'BongJoonHo'],
    },
    {
        'movie_title': 'Minari',
        'emotion': 'nostalgic',
        'emoji': '🥺',
        'text': 'Made me think of my grandmother. A beautiful film about family and home.',
        'intensity': 4,
        'tags': ['Family', 'Immigration', 'Grandmother'],
    },
]

COMMENT_TEXTS = [
    "Great point! I totally agree.",
    "Hmm, I'm not sure about this...",
    "Thanks for sharing!",
    "Can you elaborate on this?",
    "I have a different take on the ending.",
    "The soundtrack alone is worth it.",
    "Adding this to my watchlist.",
    "Well said!",
]


class Command(BaseCommand):
    help = 'Seed the database with sample posts, cats and emotion records'

    def add_arguments(self, parser):
        parser.add_argument(
            '--comments',
            type=int,
            default=20,
            help='Number of comments to create'
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing community data before seeding'
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            Comment.objects.all().delete()
            Post.objects.all().delete()
            Cat.objects.all().delete()
            EmotionRecord.objects.all().delete()
            User.objects.filter(is_superuser=False).delete()

        self.stdout.write('Creating users...')
        users = self._create_users()

        # Cats first, so the posts and journal below grow them
        self.stdout.write('Adopting cats...')
        for username, fields in SAMPLE_CATS:
            companions.create_cat(users[username], fields)

        self.stdout.write('Creating posts...')
        posts = [
            services.create_post(users[username], draft).instance
            for username, draft in SAMPLE_POSTS
        ]

        self.stdout.write('Creating emotion records...')
        for fields in SAMPLE_EMOTIONS:
            journal.create_emotion(users['user4'], fields)

        self.stdout.write('Creating comments and likes...')
        comments = self._create_comments(list(users.values()), posts, options['comments'])
        self._create_likes(list(users.values()), posts, comments)

        self.stdout.write(self.style.SUCCESS(
            f'Successfully created:\n'
            f'  - {len(users)} users\n'
            f'  - {len(SAMPLE_CATS)} cats\n'
            f'  - {len(posts)} posts\n'
            f'  - {len(SAMPLE_EMOTIONS)} emotion records\n'
            f'  - {len(comments)} comments'
        ))

    def _create_users(self):
        users = {}
        for username, nickname in SAMPLE_USERS:
            user, created = User.objects.get_or_create(
                username=username,
                defaults={'email': f'{username}@example.com'}
            )
            if created:
                user.set_password('password123')
                user.save()
            UserProfile.objects.filter(user=user).update(nickname=nickname)
            users[username] = user
        return users

    def _create_comments(self, users, posts, count):
        comments = []
        for _ in range(count):
            post = random.choice(posts)

            # 30% chance of being a reply to an existing comment
            parent_id = None
            existing = [c for c in comments if c.post_id == post.id]
            if existing and random.random() < 0.3:
                parent_id = random.choice(existing).id

            result = services.add_comment(
                random.choice(users),
                post.id,
                random.choice(COMMENT_TEXTS),
                parent_id
            )
            comments.append(result.instance)
        return comments

    def _create_likes(self, users, posts, comments):
        for post in posts:
            for liker in random.sample(users, k=len(users) // 2):
                services.like_post(liker, post.id)

        for comment in comments:
            if random.random() < 0.3:
                services.like_comment(random.choice(users), comment.id)
