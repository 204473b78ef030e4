"""
Project Repository & Engagement Service
=======================================

CRUD over projects plus the like/save/comment mutations.

CONCURRENCY STRATEGY:
---------------------
Problem: Two sessions click "like" on the same project at the same moment
Naive: Check membership -> insert -> counter += 1 in Python -> RACE CONDITION!

What we do instead, per engagement call, inside ONE transaction:
1. SELECT ... FOR UPDATE on the project row
   - Concurrent likers of the same project queue up here
   - The membership check that follows is therefore race-free
2. Check the edge table (ProjectLike / ProjectSave)
   - Present on like -> AlreadyLiked, absent on unlike -> NotLiked
3. Insert/delete the edge row
4. Counter update with F() - computed by the DB, never read-modify-write
5. Schedule the activity log entry for after commit

The unique constraint on the edge table is a second line of defence: if
the row lock is unavailable (SQLite ignores FOR UPDATE), a duplicate insert
still fails with IntegrityError and is reported as AlreadyLiked.

INVARIANT:
----------
likes == |liked_by| and saves == |saved_by|, because steps 3 and 4 commit
or roll back together. A failed call leaves the project untouched.
"""

import logging
from typing import Optional

from django.db import transaction, IntegrityError
from django.db.models import F
from django.utils import timezone

from .activity import record_action
from .exceptions import (
    ProjectNotFound, AlreadyLiked, NotLiked, AlreadySaved, NotSaved
)
from .models import Project, ProjectLike, ProjectSave, ProjectComment, UserAction
from .queries import all_projects, author_projects

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('title', 'description', 'category', 'visible')


# ============================================================================
# CRUD
# ============================================================================

def create_project(data: dict, author_id: str, author_name: str) -> Project:
    """
    Create a project owned by author_id.

    Server assigns id, timestamps and zeroed counters. author_name is stored
    as given (denormalized).
    """
    now = timezone.now()
    with transaction.atomic():
        project = Project.objects.create(
            title=data['title'],
            description=data['description'],
            category=data.get('category') or Project.Category.OTHER,
            visible=data.get('visible', True),
            author_id=author_id,
            author_name=author_name,
            created_at=now,
            updated_at=now,
        )
        record_action(
            author_id,
            UserAction.ActionType.CREATE_PROJECT,
            f'Created project "{project.title}"'
        )
    logger.info("Project %s created by %s", project.pk, author_id)
    return project


def update_project(project_id: int, data: dict) -> None:
    """
    Partial update of the editable fields. Unknown keys are ignored.
    """
    changes = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
    with transaction.atomic():
        updated = Project.objects.filter(pk=project_id).update(
            **changes,
            updated_at=timezone.now()
        )
        if not updated:
            raise ProjectNotFound(project_id)
        author_id, title = Project.objects.values_list('author_id', 'title').get(pk=project_id)
        record_action(
            author_id,
            UserAction.ActionType.UPDATE_PROJECT,
            f'Updated project "{title}"'
        )


def delete_project(project_id: int) -> None:
    """
    Hard delete.

    Like/save edges go with the project. Comments and group links do NOT:
    they keep the dangling id (see models.ProjectComment).
    """
    with transaction.atomic():
        project = Project.objects.filter(pk=project_id).first()
        if project is None:
            raise ProjectNotFound(project_id)
        author_id, title = project.author_id, project.title
        project.delete()
        record_action(
            author_id,
            UserAction.ActionType.DELETE_PROJECT,
            f'Deleted project "{title}"'
        )
    logger.info("Project %s deleted", project_id)


def get_project(project_id: int) -> Optional[Project]:
    return all_projects().filter(pk=project_id).first()


def get_projects(project_ids) -> list[Project]:
    """The projects among `project_ids` that still exist, newest first."""
    return list(all_projects().filter(pk__in=project_ids))


def list_projects_by_author(author_id: str, with_comment_counts: bool = False) -> list[Project]:
    """
    The author's projects, newest first, hidden ones included.

    with_comment_counts=True is the owner's dashboard view: each project
    gets `comment_total`, counted live from the comments table rather
    than read from the denormalized counter.
    """
    return list(author_projects(author_id, include_hidden=True, with_comment_counts=with_comment_counts))


def list_all_projects() -> list[Project]:
    """Every project, newest first. Callers filter on `visible`."""
    return list(all_projects())


# ============================================================================
# ENGAGEMENT
# ============================================================================

def _lock_project(project_id: int) -> Project:
    """Must be called inside transaction.atomic()."""
    try:
        return Project.objects.select_for_update().get(pk=project_id)
    except Project.DoesNotExist:
        raise ProjectNotFound(project_id)


def _add_edge(edge_model, counter: str, conflict, project_id: int, user_id: str) -> Project:
    with transaction.atomic():
        project = _lock_project(project_id)

        if edge_model.objects.filter(project_id=project_id, user_id=user_id).exists():
            raise conflict(project_id, user_id)

        try:
            # Savepoint so an IntegrityError leaves the outer transaction usable
            with transaction.atomic():
                edge_model.objects.create(project_id=project_id, user_id=user_id)
        except IntegrityError:
            raise conflict(project_id, user_id)

        Project.objects.filter(pk=project_id).update(**{counter: F(counter) + 1})
    return project


def _remove_edge(edge_model, counter: str, conflict, project_id: int, user_id: str) -> Project:
    with transaction.atomic():
        project = _lock_project(project_id)

        deleted_count, _ = edge_model.objects.filter(
            project_id=project_id,
            user_id=user_id
        ).delete()
        if deleted_count == 0:
            raise conflict(project_id, user_id)

        # Guarded so a drifted counter can't go negative
        Project.objects.filter(pk=project_id, **{f'{counter}__gt': 0}).update(
            **{counter: F(counter) - 1}
        )
    return project


def like_project(project_id: int, user_id: str) -> None:
    """
    Add user_id to liked_by and increment likes, atomically.

    Raises:
    - ProjectNotFound if the project doesn't exist
    - AlreadyLiked if user_id is already in liked_by (state unchanged)
    """
    with transaction.atomic():
        project = _add_edge(ProjectLike, 'likes', AlreadyLiked, project_id, user_id)
        record_action(
            user_id,
            UserAction.ActionType.LIKED_PROJECT,
            f'Liked project "{project.title}"'
        )


def unlike_project(project_id: int, user_id: str) -> None:
    """Mirror of like_project. Raises NotLiked if user_id isn't in liked_by."""
    with transaction.atomic():
        project = _remove_edge(ProjectLike, 'likes', NotLiked, project_id, user_id)
        record_action(
            user_id,
            UserAction.ActionType.UNLIKED_PROJECT,
            f'Removed like from project "{project.title}"'
        )


def save_project(project_id: int, user_id: str) -> None:
    """Same pattern as like_project against saved_by/saves."""
    with transaction.atomic():
        project = _add_edge(ProjectSave, 'saves', AlreadySaved, project_id, user_id)
        record_action(
            user_id,
            UserAction.ActionType.SAVED_PROJECT,
            f'Saved project "{project.title}"'
        )


def unsave_project(project_id: int, user_id: str) -> None:
    with transaction.atomic():
        project = _remove_edge(ProjectSave, 'saves', NotSaved, project_id, user_id)
        record_action(
            user_id,
            UserAction.ActionType.UNSAVED_PROJECT,
            f'Removed project "{project.title}" from saved'
        )


# ============================================================================
# COMMENTS
# ============================================================================

def add_comment(project_id: int, author_id: str, author_name: str, content: str) -> ProjectComment:
    """
    Append a comment. No content validation happens here.

    comments_count is bumped by the post_save signal (signals.py) in the
    same transaction.
    """
    with transaction.atomic():
        project = Project.objects.filter(pk=project_id).only('id', 'title').first()
        if project is None:
            raise ProjectNotFound(project_id)

        comment = ProjectComment.objects.create(
            project_id=project_id,
            author_id=author_id,
            author_name=author_name,
            content=content
        )
        record_action(
            author_id,
            UserAction.ActionType.ADD_COMMENT,
            f'Commented on project "{project.title}"'
        )
    return comment


def list_comments(project_id: int) -> list[ProjectComment]:
    """Oldest first."""
    return list(
        ProjectComment.objects
        .filter(project_id=project_id)
        .order_by('created_at', 'id')
    )


def get_comment(comment_id: int) -> Optional[ProjectComment]:
    """Point read. Works for comments whose project has been deleted."""
    return ProjectComment.objects.filter(pk=comment_id).first()
