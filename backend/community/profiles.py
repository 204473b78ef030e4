"""
Profile & Follow Graph Repository
=================================

REGISTRATION:
-------------
There is no sign-up endpoint. The identity provider is trusted, and
ensure_profile() runs on every authenticated request (see
authentication.py). First request for a uid creates the profile with
empty defaults; every later request is a cheap get.

FOLLOW GRAPH:
-------------
A follows B is stored as ONE Follow row (A -> B).
    followers(B) = SELECT follower FROM follow WHERE followed = B
    following(A) = SELECT followed FROM follow WHERE follower = A

Both sides are views of the same row, so a partial write can't leave the
graph asymmetric: the insert either happened or it didn't.

follow/unfollow are idempotent, like set union/difference:
- follow twice -> one row
- unfollow when not following -> no-op
"""

import logging
from typing import Optional, TypedDict

from django.db import transaction

from .activity import record_action
from .exceptions import ProfileNotFound, SelfFollow
from .models import Profile, Follow, UserAction

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'display_name', 'photo_url', 'header_url', 'bio', 'headline', 'location',
    'contact_info', 'tech_stack', 'education', 'experience', 'languages',
    'linkedin', 'github', 'twitter', 'instagram',
)


class Identity(TypedDict, total=False):
    """What the identity provider hands us for an authenticated user."""
    uid: str
    email: str
    display_name: str


def ensure_profile(identity: Identity) -> tuple[Profile, bool]:
    """
    Get or lazily create the profile for an authenticated identity.

    Safe to call on every request. Existing profiles are never modified.
    """
    profile, created = Profile.objects.get_or_create(
        uid=identity['uid'],
        defaults={
            'email': identity.get('email') or '',
            'display_name': identity.get('display_name') or '',
        }
    )
    if created:
        logger.info("Created profile for %s", profile.uid)
    return profile, created


def get_profile(uid: str) -> Optional[Profile]:
    return (
        Profile.objects
        .prefetch_related('follower_edges', 'following_edges')
        .filter(uid=uid)
        .first()
    )


def list_profiles() -> list[Profile]:
    return list(
        Profile.objects
        .prefetch_related('follower_edges', 'following_edges')
        .order_by('uid')
    )


def update_profile(uid: str, data: dict) -> Profile:
    """Partial update of editable profile fields. Unknown keys are ignored."""
    profile = Profile.objects.filter(uid=uid).first()
    if profile is None:
        raise ProfileNotFound(uid)
    changed = [key for key in EDITABLE_FIELDS if key in data]
    for key in changed:
        setattr(profile, key, data[key])
    profile.save(update_fields=changed + ['updated_at'])
    return profile


def add_achievement(uid: str, achievement: str) -> list[str]:
    """Union `achievement` into the profile's badges. Idempotent."""
    with transaction.atomic():
        profile = Profile.objects.select_for_update().filter(uid=uid).first()
        if profile is None:
            raise ProfileNotFound(uid)
        if achievement not in profile.achievements:
            profile.achievements = profile.achievements + [achievement]
            profile.save(update_fields=['achievements', 'updated_at'])
    return profile.achievements


def follow(target_uid: str, self_uid: str) -> bool:
    """
    self_uid starts following target_uid.

    Returns True if a new edge was created, False if it already existed.
    """
    if target_uid == self_uid:
        raise SelfFollow()
    target = Profile.objects.filter(uid=target_uid).first()
    if target is None:
        raise ProfileNotFound(target_uid)

    with transaction.atomic():
        _, created = Follow.objects.get_or_create(
            follower_id=self_uid,
            followed_id=target_uid
        )
        if created:
            record_action(
                self_uid,
                UserAction.ActionType.FOLLOW_USER,
                f'Started following {target}'
            )
    return created


def unfollow(target_uid: str, self_uid: str) -> bool:
    """Returns True if an edge was removed."""
    with transaction.atomic():
        deleted_count, _ = Follow.objects.filter(
            follower_id=self_uid,
            followed_id=target_uid
        ).delete()
        if deleted_count:
            record_action(
                self_uid,
                UserAction.ActionType.UNFOLLOW_USER,
                f'Stopped following {target_uid}'
            )
    return deleted_count > 0


def followers_of(uid: str) -> list[str]:
    return list(
        Follow.objects.filter(followed_id=uid)
        .order_by('created_at', 'id')
        .values_list('follower_id', flat=True)
    )


def following_of(uid: str) -> list[str]:
    return list(
        Follow.objects.filter(follower_id=uid)
        .order_by('created_at', 'id')
        .values_list('followed_id', flat=True)
    )
