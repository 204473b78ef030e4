"""
DRF Views
=========

API endpoints for Mi OpenLab.

AUTHENTICATION NOTE:
--------------------
Identity comes from the upstream identity provider via headers
(authentication.IdentityHeaderAuthentication). Reads are public; every
write needs an identity, and the acting user is always request.user,
never a body field.

ERRORS:
-------
Views don't catch domain errors. Repositories raise them and
exceptions.custom_exception_handler renders {"error": "..."} with the
right status.
"""

from rest_framework import status, permissions
from rest_framework.views import APIView
from rest_framework.response import Response

from . import groups as group_repo
from . import profiles as profile_repo
from . import services
from .activity import recent_actions
from .exceptions import (
    ProjectNotFound, ProfileNotFound, GroupNotFound, NotProjectAuthor,
    NotGroupCreator
)
from .models import Project, Profile
from .queries import (
    explore_projects, following_feed, saved_projects, projects_of, can_view
)
from .ranking import get_ranking, get_user_standing
from .serializers import (
    ProfileSerializer,
    ProfileSummarySerializer,
    ProfileUpdateSerializer,
    ProjectSerializer,
    ProjectCreateSerializer,
    ProjectUpdateSerializer,
    ProjectCommentSerializer,
    ContentSerializer,
    GroupSerializer,
    GroupCreateSerializer,
    AssociateProjectSerializer,
    DiscussionSerializer,
    DiscussionCommentSerializer,
    UserActionSerializer,
    RankingEntrySerializer,
)


def viewer_uid(request):
    """uid of the caller, or None when anonymous."""
    return getattr(request.user, 'uid', None)


def author_label(profile: Profile) -> str:
    return str(profile)


def load_project(project_id, request) -> Project:
    """
    Fetch a project the caller is allowed to see.

    Hidden projects 404 for everyone but their author, same as missing ones.
    """
    project = services.get_project(project_id)
    if project is None or not can_view(project, viewer_uid(request)):
        raise ProjectNotFound(project_id)
    return project


# ============================================================================
# PROJECTS
# ============================================================================

class ProjectListView(APIView):
    """
    GET  /api/projects/?q=<search>&category=<category>
         Explore: visible projects, newest first.
    POST /api/projects/
         Create a project authored by the caller.
    """

    def get(self, request):
        projects = explore_projects(
            search=request.query_params.get('q', '').strip() or None,
            category=request.query_params.get('category') or None
        )
        return Response(ProjectSerializer(projects, many=True).data)

    def post(self, request):
        serializer = ProjectCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = services.create_project(
            serializer.validated_data,
            author_id=request.user.uid,
            author_name=author_label(request.user)
        )
        project = load_project(project.pk, request)
        return Response(ProjectSerializer(project).data, status=status.HTTP_201_CREATED)


class ProjectDetailView(APIView):
    """
    GET    /api/projects/<id>/
    PATCH  /api/projects/<id>/   (author only)
    DELETE /api/projects/<id>/   (author only, hard delete)
    """

    def _load_owned(self, request, project_id) -> Project:
        project = load_project(project_id, request)
        if project.author_id != request.user.uid:
            raise NotProjectAuthor()
        return project

    def get(self, request, project_id):
        return Response(ProjectSerializer(load_project(project_id, request)).data)

    def patch(self, request, project_id):
        self._load_owned(request, project_id)
        serializer = ProjectUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        services.update_project(project_id, serializer.validated_data)
        return Response(ProjectSerializer(load_project(project_id, request)).data)

    def delete(self, request, project_id):
        self._load_owned(request, project_id)
        services.delete_project(project_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ProjectLikeView(APIView):
    """
    POST   /api/projects/<id>/like/   -> 409 if already liked
    DELETE /api/projects/<id>/like/   -> 409 if not liked
    """

    def post(self, request, project_id):
        load_project(project_id, request)
        services.like_project(project_id, request.user.uid)
        project = load_project(project_id, request)
        return Response({'success': True, 'action': 'created', 'likes': project.likes})

    def delete(self, request, project_id):
        load_project(project_id, request)
        services.unlike_project(project_id, request.user.uid)
        project = load_project(project_id, request)
        return Response({'success': True, 'action': 'removed', 'likes': project.likes})


class ProjectSaveView(APIView):
    """
    POST   /api/projects/<id>/save/
    DELETE /api/projects/<id>/save/
    """

    def post(self, request, project_id):
        load_project(project_id, request)
        services.save_project(project_id, request.user.uid)
        project = load_project(project_id, request)
        return Response({'success': True, 'action': 'created', 'saves': project.saves})

    def delete(self, request, project_id):
        load_project(project_id, request)
        services.unsave_project(project_id, request.user.uid)
        project = load_project(project_id, request)
        return Response({'success': True, 'action': 'removed', 'saves': project.saves})


class ProjectCommentsView(APIView):
    """
    GET  /api/projects/<id>/comments/   oldest first
    POST /api/projects/<id>/comments/   { "content": "..." }
    """

    def get(self, request, project_id):
        load_project(project_id, request)
        comments = services.list_comments(project_id)
        return Response(ProjectCommentSerializer(comments, many=True).data)

    def post(self, request, project_id):
        load_project(project_id, request)
        serializer = ContentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = services.add_comment(
            project_id,
            author_id=request.user.uid,
            author_name=author_label(request.user),
            content=serializer.validated_data['content']
        )
        return Response(ProjectCommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class FollowingFeedView(APIView):
    """
    GET /api/feed/

    Visible projects from the people the caller follows.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        projects = following_feed(request.user.uid)
        return Response(ProjectSerializer(projects, many=True).data)


class RankingView(APIView):
    """
    GET /api/ranking/

    Every user ordered by reputation. Recomputed on each call.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        ranking = get_ranking()

        user_stats = None
        uid = viewer_uid(request)
        if uid is not None:
            user_stats = next((entry for entry in ranking if entry['user_id'] == uid), None)

        return Response({
            'ranking': RankingEntrySerializer(ranking, many=True).data,
            'user_stats': RankingEntrySerializer(user_stats).data if user_stats else None,
        })


# ============================================================================
# PROFILES & FOLLOW GRAPH
# ============================================================================

def load_profile(uid) -> Profile:
    profile = profile_repo.get_profile(uid)
    if profile is None:
        raise ProfileNotFound(uid)
    return profile


class OwnProfileView(APIView):
    """
    GET   /api/profile/
    PATCH /api/profile/
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response(ProfileSerializer(load_profile(request.user.uid)).data)

    def patch(self, request):
        serializer = ProfileUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        profile_repo.update_profile(request.user.uid, serializer.validated_data)
        return Response(ProfileSerializer(load_profile(request.user.uid)).data)


class SavedProjectsView(APIView):
    """GET /api/profile/saved/"""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        projects = saved_projects(request.user.uid)
        return Response(ProjectSerializer(projects, many=True).data)


class ProfileListView(APIView):
    """GET /api/users/"""

    def get(self, request):
        return Response(ProfileSerializer(profile_repo.list_profiles(), many=True).data)


class ProfileDetailView(APIView):
    """GET /api/users/<uid>/ with the user's ranking standing."""

    def get(self, request, uid):
        data = ProfileSerializer(load_profile(uid)).data
        standing = get_user_standing(uid)
        data['reputation'] = standing['reputation'] if standing else 0
        return Response(data)


class UserProjectsView(APIView):
    """
    GET /api/users/<uid>/projects/

    The owner sees hidden projects and live comment totals.
    """

    def get(self, request, uid):
        load_profile(uid)
        projects = projects_of(uid, viewer_uid(request))
        return Response(ProjectSerializer(projects, many=True).data)


class UserActionsView(APIView):
    """GET /api/users/<uid>/actions/ (10 most recent)"""

    def get(self, request, uid):
        actions = recent_actions(uid)
        return Response(UserActionSerializer(actions, many=True).data)


class FollowView(APIView):
    """
    POST   /api/users/<uid>/follow/
    DELETE /api/users/<uid>/follow/

    Both are idempotent; `changed` tells whether anything happened.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, uid):
        changed = profile_repo.follow(uid, request.user.uid)
        return Response({'following': True, 'changed': changed})

    def delete(self, request, uid):
        changed = profile_repo.unfollow(uid, request.user.uid)
        return Response({'following': False, 'changed': changed})


# ============================================================================
# GROUPS
# ============================================================================

def load_group(group_id):
    group = group_repo.get_group(group_id)
    if group is None:
        raise GroupNotFound(group_id)
    return group


class GroupListView(APIView):
    """
    GET  /api/groups/
    POST /api/groups/   { "name", "description", "id"? }
    """

    def get(self, request):
        return Response(GroupSerializer(group_repo.get_all_groups(), many=True).data)

    def post(self, request):
        serializer = GroupCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        group = group_repo.create_group(
            serializer.validated_data.get('id'),
            serializer.validated_data['name'],
            serializer.validated_data['description'],
            request.user.uid
        )
        return Response(GroupSerializer(load_group(group.pk)).data, status=status.HTTP_201_CREATED)


class GroupDetailView(APIView):
    """
    GET /api/groups/<id>/

    Group plus member profiles and the associated projects that still
    exist and that the caller may see.
    """

    def get(self, request, group_id):
        group = load_group(group_id)
        members = Profile.objects.filter(uid__in=group.members).order_by('uid')
        projects = [
            project for project in services.get_projects(group.associated_projects)
            if can_view(project, viewer_uid(request))
        ]
        data = GroupSerializer(group).data
        data['member_profiles'] = ProfileSummarySerializer(members, many=True).data
        data['projects'] = ProjectSerializer(projects, many=True).data
        return Response(data)


class GroupMembershipView(APIView):
    """
    POST   /api/groups/<id>/membership/   join
    DELETE /api/groups/<id>/membership/   leave
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, group_id):
        changed = group_repo.join_group(group_id, request.user.uid)
        return Response({'member': True, 'changed': changed})

    def delete(self, request, group_id):
        changed = group_repo.leave_group(group_id, request.user.uid)
        return Response({'member': False, 'changed': changed})


class GroupProjectsView(APIView):
    """
    POST /api/groups/<id>/projects/   { "project_id": 1 }

    Members only, and only for projects the caller authored.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, group_id):
        load_group(group_id)
        group_repo.require_member(group_id, request.user.uid)
        serializer = AssociateProjectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        project = load_project(serializer.validated_data['project_id'], request)
        if project.author_id != request.user.uid:
            raise NotProjectAuthor('Only the author can add this project to a group.')

        group_repo.associate_project(group_id, project.id)
        return Response(GroupSerializer(load_group(group_id)).data)


class GroupProjectDetailView(APIView):
    """
    DELETE /api/groups/<id>/projects/<project_id>/

    Allowed for the group creator and for the project's author.
    """
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, group_id, project_id):
        group = load_group(group_id)
        project = services.get_project(project_id)
        is_author = project is not None and project.author_id == request.user.uid
        if not is_author and group.created_by_id != request.user.uid:
            raise NotGroupCreator()
        group_repo.remove_project(group_id, project_id)
        return Response(GroupSerializer(load_group(group_id)).data)


class DiscussionListView(APIView):
    """
    GET  /api/groups/<id>/discussions/   newest first
    POST /api/groups/<id>/discussions/   { "title", "content" }
    """

    def get(self, request, group_id):
        load_group(group_id)
        return Response(DiscussionSerializer(group_repo.list_discussions(group_id), many=True).data)

    def post(self, request, group_id):
        load_group(group_id)
        group_repo.require_member(group_id, request.user.uid)
        serializer = DiscussionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        discussion = group_repo.create_discussion(
            group_id,
            serializer.validated_data['title'],
            serializer.validated_data['content'],
            request.user.uid,
            author_label(request.user)
        )
        return Response(DiscussionSerializer(discussion).data, status=status.HTTP_201_CREATED)


class DiscussionCommentsView(APIView):
    """
    GET  /api/groups/<id>/discussions/<discussion_id>/comments/   oldest first
    POST /api/groups/<id>/discussions/<discussion_id>/comments/
    """

    def get(self, request, group_id, discussion_id):
        comments = group_repo.list_discussion_comments(group_id, discussion_id)
        return Response(DiscussionCommentSerializer(comments, many=True).data)

    def post(self, request, group_id, discussion_id):
        load_group(group_id)
        group_repo.require_member(group_id, request.user.uid)
        serializer = ContentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = group_repo.add_discussion_comment(
            group_id,
            discussion_id,
            serializer.validated_data['content'],
            request.user.uid,
            author_label(request.user)
        )
        return Response(DiscussionCommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class WhoAmIView(APIView):
    """
    GET /api/auth/whoami/

    Returns current authenticated identity.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        if request.user.is_authenticated:
            return Response({
                'authenticated': True,
                'uid': request.user.uid,
                'display_name': request.user.display_name,
                'email': request.user.email,
            })
        return Response({
            'authenticated': False,
            'uid': None,
            'display_name': None,
            'email': None,
        })
