"""
Group Repository
================

Groups, their members, associated projects, and the append-only
discussion threads inside them.

MEMBERSHIP & ASSOCIATIONS:
--------------------------
members and associated_projects are edge tables with unique constraints.
join/associate use get_or_create, leave/remove use filter().delete(), so
every operation is idempotent:
- join twice -> member exactly once
- leave as a non-member -> nothing changes

associate_project() does not check that the project exists or is visible;
group detail views simply skip ids that no longer resolve.

PERMISSIONS:
------------
The repository functions do not check who is calling; the HTTP layer does:
- discussions, replies and project associations need membership
- members may only associate projects they authored
- a project leaves a group at the request of its author or the group creator

GROUP IDS:
----------
The id is the slug of the name. Collisions are NOT checked: creating a
group whose slug already exists replaces it (name, description, creator,
members reset to the creator, associations cleared). Discussions survive
because they live under the id, not the replaced fields.
"""

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from .activity import record_action
from .exceptions import GroupNotFound, DiscussionNotFound, NotGroupMember
from .models import (
    Group, GroupMembership, GroupProject, Discussion, DiscussionComment,
    UserAction
)

logger = logging.getLogger(__name__)


def group_slug(name: str) -> str:
    return slugify(name.strip())


def create_group(group_id: Optional[str], name: str, description: str, creator_id: str) -> Group:
    """
    Create (or overwrite) a group. The creator becomes its only member.
    """
    group_id = group_id or group_slug(name)
    if not group_id:
        raise ValueError("Group name must contain at least one letter or digit")

    with transaction.atomic():
        group, created = Group.objects.update_or_create(
            id=group_id,
            defaults={
                'name': name.strip(),
                'description': description.strip(),
                'created_by_id': creator_id,
                'created_at': timezone.now(),
            }
        )
        if not created:
            logger.warning("Group %s already existed and was overwritten by %s", group_id, creator_id)
            GroupMembership.objects.filter(group=group).delete()
            GroupProject.objects.filter(group=group).delete()

        GroupMembership.objects.create(group=group, user_id=creator_id)
        record_action(
            creator_id,
            UserAction.ActionType.CREATE_GROUP,
            f'Created group "{group.name}"'
        )
    return group


def get_all_groups() -> list[Group]:
    return list(Group.objects.prefetch_related('memberships', 'project_links'))


def get_group(group_id: str) -> Optional[Group]:
    return (
        Group.objects
        .prefetch_related('memberships', 'project_links')
        .filter(pk=group_id)
        .first()
    )


def _require_group(group_id: str) -> Group:
    group = Group.objects.filter(pk=group_id).first()
    if group is None:
        raise GroupNotFound(group_id)
    return group


def join_group(group_id: str, user_id: str) -> bool:
    """Add user_id to members. Returns False if already a member."""
    with transaction.atomic():
        group = _require_group(group_id)
        _, created = GroupMembership.objects.get_or_create(group=group, user_id=user_id)
        if created:
            record_action(
                user_id,
                UserAction.ActionType.JOIN_GROUP,
                f'Joined group "{group.name}"'
            )
    return created


def leave_group(group_id: str, user_id: str) -> bool:
    """Remove user_id from members. Returns False if they weren't one."""
    with transaction.atomic():
        group = _require_group(group_id)
        deleted_count, _ = GroupMembership.objects.filter(group=group, user_id=user_id).delete()
        if deleted_count:
            record_action(
                user_id,
                UserAction.ActionType.LEAVE_GROUP,
                f'Left group "{group.name}"'
            )
    return deleted_count > 0


def is_member(group_id: str, user_id: Optional[str]) -> bool:
    if user_id is None:
        return False
    return GroupMembership.objects.filter(group_id=group_id, user_id=user_id).exists()


def require_member(group_id: str, user_id: Optional[str]) -> None:
    """Raises NotGroupMember unless user_id belongs to the group."""
    if not is_member(group_id, user_id):
        raise NotGroupMember()


def associate_project(group_id: str, project_id: int) -> bool:
    group = _require_group(group_id)
    _, created = GroupProject.objects.get_or_create(group=group, project_id=project_id)
    return created


def remove_project(group_id: str, project_id: int) -> bool:
    group = _require_group(group_id)
    deleted_count, _ = GroupProject.objects.filter(group=group, project_id=project_id).delete()
    return deleted_count > 0


# ============================================================================
# DISCUSSIONS
# ============================================================================

def create_discussion(group_id: str, title: str, content: str, author_id: str, author_name: str) -> Discussion:
    with transaction.atomic():
        group = _require_group(group_id)
        discussion = Discussion.objects.create(
            group=group,
            title=title,
            content=content,
            author_id=author_id,
            author_name=author_name
        )
        record_action(
            author_id,
            UserAction.ActionType.CREATE_DISCUSSION,
            f'Started discussion "{title}" in group "{group.name}"'
        )
    return discussion


def list_discussions(group_id: str) -> list[Discussion]:
    """Whole history, newest first. No pagination."""
    return list(
        Discussion.objects
        .filter(group_id=group_id)
        .order_by('-created_at', '-id')
    )


def get_discussion(group_id: str, discussion_id: int) -> Discussion:
    discussion = Discussion.objects.filter(group_id=group_id, pk=discussion_id).first()
    if discussion is None:
        raise DiscussionNotFound(discussion_id)
    return discussion


def add_discussion_comment(group_id: str, discussion_id: int, content: str,
                           author_id: str, author_name: str) -> DiscussionComment:
    with transaction.atomic():
        discussion = get_discussion(group_id, discussion_id)
        comment = DiscussionComment.objects.create(
            discussion=discussion,
            content=content,
            author_id=author_id,
            author_name=author_name
        )
        record_action(
            author_id,
            UserAction.ActionType.ADD_DISCUSSION_COMMENT,
            f'Replied to discussion "{discussion.title}"'
        )
    return comment


def list_discussion_comments(group_id: str, discussion_id: int) -> list[DiscussionComment]:
    """Oldest first."""
    discussion = get_discussion(group_id, discussion_id)
    return list(discussion.comments.order_by('created_at', 'id'))
