"""
Community App URL Configuration
"""
from django.urls import path
from .views import (
    ProjectListView,
    ProjectDetailView,
    ProjectLikeView,
    ProjectSaveView,
    ProjectCommentsView,
    FollowingFeedView,
    RankingView,
    OwnProfileView,
    SavedProjectsView,
    ProfileListView,
    ProfileDetailView,
    UserProjectsView,
    UserActionsView,
    FollowView,
    GroupListView,
    GroupDetailView,
    GroupMembershipView,
    GroupProjectsView,
    GroupProjectDetailView,
    DiscussionListView,
    DiscussionCommentsView,
    WhoAmIView,
)

urlpatterns = [
    # Projects
    path('projects/', ProjectListView.as_view(), name='project-list'),
    path('projects/<int:project_id>/', ProjectDetailView.as_view(), name='project-detail'),
    path('projects/<int:project_id>/like/', ProjectLikeView.as_view(), name='project-like'),
    path('projects/<int:project_id>/save/', ProjectSaveView.as_view(), name='project-save'),
    path('projects/<int:project_id>/comments/', ProjectCommentsView.as_view(), name='project-comments'),

    # Feed & ranking
    path('feed/', FollowingFeedView.as_view(), name='feed'),
    path('ranking/', RankingView.as_view(), name='ranking'),

    # Own profile
    path('profile/', OwnProfileView.as_view(), name='own-profile'),
    path('profile/saved/', SavedProjectsView.as_view(), name='saved-projects'),

    # Users
    path('users/', ProfileListView.as_view(), name='profile-list'),
    path('users/<str:uid>/', ProfileDetailView.as_view(), name='profile-detail'),
    path('users/<str:uid>/projects/', UserProjectsView.as_view(), name='user-projects'),
    path('users/<str:uid>/actions/', UserActionsView.as_view(), name='user-actions'),
    path('users/<str:uid>/follow/', FollowView.as_view(), name='follow'),

    # Groups
    path('groups/', GroupListView.as_view(), name='group-list'),
    path('groups/<slug:group_id>/', GroupDetailView.as_view(), name='group-detail'),
    path('groups/<slug:group_id>/membership/', GroupMembershipView.as_view(), name='group-membership'),
    path('groups/<slug:group_id>/projects/', GroupProjectsView.as_view(), name='group-projects'),
    path('groups/<slug:group_id>/projects/<int:project_id>/', GroupProjectDetailView.as_view(),
         name='group-project-detail'),
    path('groups/<slug:group_id>/discussions/', DiscussionListView.as_view(), name='discussion-list'),
    path('groups/<slug:group_id>/discussions/<int:discussion_id>/comments/', DiscussionCommentsView.as_view(),
         name='discussion-comments'),

    # Auth
    path('auth/whoami/', WhoAmIView.as_view(), name='whoami'),
]
