"""
Emotion journal: personal mood logs per movie.

Creating an entry feeds the owner's cats (+10 emotion experience).
Entry and experience are written in one transaction, so a journal
entry never exists without its grant. Edits and deletes have no
side effects.
"""

import logging

from django.db import transaction

from .companions import add_experience
from .effects import WriteResult
from .exceptions import ObjectNotFound, check_fields
from .models import EmotionRecord, EXPERIENCE_EMOTION_RECORD
from .services import normalize_tags

logger = logging.getLogger(__name__)

EMOTION_FIELDS = frozenset({'movie_title', 'emotion', 'emoji', 'text', 'intensity', 'tags'})


def create_emotion(user, fields: dict) -> WriteResult:
    check_fields('emotion', fields, EMOTION_FIELDS)

    with transaction.atomic():
        record = EmotionRecord(user=user, **fields)
        record.tags = normalize_tags(record.tags)
        record.full_clean()
        record.save()
        effects = add_experience(user.id, 'emotion', EXPERIENCE_EMOTION_RECORD)

    logger.info("User %s logged %s for %r", user.id, record.emotion, record.movie_title)
    return WriteResult(record, effects)


def update_emotion(record_id, fields: dict) -> EmotionRecord:
    check_fields('emotion', fields, EMOTION_FIELDS)

    record = EmotionRecord.objects.filter(id=record_id).first()
    if record is None:
        raise ObjectNotFound(f"Emotion record {record_id} does not exist")
    for name, value in fields.items():
        setattr(record, name, value)
    if 'tags' in fields:
        record.tags = normalize_tags(record.tags)
    record.full_clean()
    record.save(update_fields=[*fields, 'updated_at'])
    return record


def delete_emotion(record_id) -> None:
    deleted, _ = EmotionRecord.objects.filter(id=record_id).delete()
    if not deleted:
        raise ObjectNotFound(f"Emotion record {record_id} does not exist")
