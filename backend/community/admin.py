"""
Django Admin Configuration for Community Models
"""
from django.contrib import admin
from .models import (
    Profile, Follow, Project, ProjectComment, Group, Discussion, UserAction
)


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['uid', 'display_name', 'email', 'created_at']
    search_fields = ['uid', 'display_name', 'email']
    readonly_fields = ['uid', 'created_at', 'updated_at']


@admin.register(Follow)
class FollowAdmin(admin.ModelAdmin):
    list_display = ['follower', 'followed', 'created_at']
    search_fields = ['follower__uid', 'followed__uid']


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ['title', 'author_name', 'category', 'visible', 'likes', 'saves', 'comments_count', 'created_at']
    list_filter = ['category', 'visible', 'created_at']
    search_fields = ['title', 'description', 'author_name']
    # Counters only change through services.py / reconcile_counters
    readonly_fields = ['likes', 'saves', 'comments_count', 'created_at', 'updated_at']


@admin.register(ProjectComment)
class ProjectCommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'project_id', 'author_name', 'created_at']
    list_filter = ['created_at']
    search_fields = ['content', 'author_name']
    readonly_fields = ['created_at']


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'created_by', 'created_at']
    search_fields = ['id', 'name']


@admin.register(Discussion)
class DiscussionAdmin(admin.ModelAdmin):
    list_display = ['title', 'group', 'author_name', 'created_at']
    list_filter = ['created_at']
    search_fields = ['title', 'content']


@admin.register(UserAction)
class UserActionAdmin(admin.ModelAdmin):
    list_display = ['user_id', 'action_type', 'description', 'timestamp']
    list_filter = ['action_type', 'timestamp']
    search_fields = ['user_id', 'description']
    readonly_fields = ['user_id', 'action_type', 'description', 'timestamp']

    def has_add_permission(self, request):
        # Entries are only written by the system
        return False

    def has_change_permission(self, request, obj=None):
        # Append-only log
        return False
