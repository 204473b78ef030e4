"""
Domain Errors and the DRF Exception Handler

Repositories raise the plain exceptions below; the handler turns them
into the API's single error shape: {"error": "<message>"}.

TAXONOMY:
- Precondition violations (already liked, not saved, ...) -> 409 / 400
- Not found -> 404
- Not the owner -> 403
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django.db import IntegrityError
import logging

logger = logging.getLogger(__name__)


class CommunityError(Exception):
    """Base class for errors the API reports with a specific message."""
    status_code = status.HTTP_400_BAD_REQUEST
    message = 'Invalid operation.'

    def __init__(self, message=None):
        super().__init__(message or self.message)


# --- Not found ---------------------------------------------------------------

class NotFoundError(CommunityError):
    status_code = status.HTTP_404_NOT_FOUND
    message = 'Not found.'


class ProjectNotFound(NotFoundError):
    def __init__(self, project_id):
        super().__init__(f"Project {project_id} does not exist")
        self.project_id = project_id


class ProfileNotFound(NotFoundError):
    def __init__(self, uid):
        super().__init__(f"Profile {uid} does not exist")
        self.uid = uid


class GroupNotFound(NotFoundError):
    def __init__(self, group_id):
        super().__init__(f"Group {group_id} does not exist")
        self.group_id = group_id


class DiscussionNotFound(NotFoundError):
    def __init__(self, discussion_id):
        super().__init__(f"Discussion {discussion_id} does not exist")
        self.discussion_id = discussion_id


# --- Preconditions -----------------------------------------------------------

class EngagementConflict(CommunityError):
    """The engagement edge is already in (or already out of) the set."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, project_id, user_id):
        super().__init__(self.message)
        self.project_id = project_id
        self.user_id = user_id


class AlreadyLiked(EngagementConflict):
    message = 'You already liked this project.'


class NotLiked(EngagementConflict):
    message = 'You have not liked this project.'


class AlreadySaved(EngagementConflict):
    message = 'You already saved this project.'


class NotSaved(EngagementConflict):
    message = 'You have not saved this project.'


class SelfFollow(CommunityError):
    message = 'You cannot follow yourself.'


# --- Ownership ---------------------------------------------------------------

class OwnershipError(CommunityError):
    status_code = status.HTTP_403_FORBIDDEN


class NotProjectAuthor(OwnershipError):
    message = 'Only the author can modify this project.'


class NotGroupCreator(OwnershipError):
    message = 'Only the group creator or the project author can remove it from the group.'


class NotGroupMember(OwnershipError):
    message = 'Join the group first.'


def custom_exception_handler(exc, context):
    """
    Custom exception handler that:
    1. Renders domain errors with their own status and message
    2. Converts Django exceptions to DRF responses
    3. Logs anything unexpected and hides its details
    """
    if isinstance(exc, CommunityError):
        logger.info("%s: %s", exc.__class__.__name__, exc)
        return Response({'error': str(exc)}, status=exc.status_code)

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': str(exc),
                'details': response.data
            }
        return response

    if isinstance(exc, IntegrityError):
        logger.warning("IntegrityError: %s", exc)
        return Response(
            {'error': 'Data integrity error. This may be a duplicate entry.'},
            status=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, ValueError):
        return Response(
            {'error': str(exc)},
            status=status.HTTP_400_BAD_REQUEST
        )

    logger.exception("Unhandled exception: %s", exc)

    return Response(
        {'error': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
