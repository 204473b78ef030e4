"""
DRF Serializers
===============

Serializers handle:
1. Validation of incoming data
2. Transformation of model instances to JSON

DESIGN DECISIONS:
-----------------
1. Separate serializers for reading vs writing projects
2. liked_by / saved_by / followers / members read from prefetch caches
   (see queries.with_engagement) so lists don't go N+1
3. Author ids always come from request.user, never from the body
"""

from rest_framework import serializers

from .models import (
    Profile, Project, ProjectComment, Group, Discussion, DiscussionComment,
    UserAction
)


class ProfileSummarySerializer(serializers.ModelSerializer):
    """Minimal profile representation for member lists."""

    class Meta:
        model = Profile
        fields = ['uid', 'display_name', 'email', 'photo_url', 'headline']
        read_only_fields = fields


class ProfileSerializer(serializers.ModelSerializer):
    followers = serializers.ListField(child=serializers.CharField(), read_only=True)
    following = serializers.ListField(child=serializers.CharField(), read_only=True)

    class Meta:
        model = Profile
        fields = [
            'uid', 'email', 'display_name', 'photo_url', 'header_url', 'bio',
            'headline', 'location', 'contact_info', 'tech_stack',
            'education', 'experience', 'languages', 'achievements',
            'linkedin', 'github', 'twitter', 'instagram',
            'followers', 'following', 'created_at', 'updated_at',
        ]
        read_only_fields = ['uid', 'email', 'achievements', 'created_at', 'updated_at']


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """Partial profile edits. Image URLs come from the external upload service."""
    education = serializers.ListField(child=serializers.JSONField(), required=False)
    experience = serializers.ListField(child=serializers.JSONField(), required=False)
    languages = serializers.ListField(child=serializers.JSONField(), required=False)

    class Meta:
        model = Profile
        fields = [
            'display_name', 'photo_url', 'header_url', 'bio', 'headline',
            'location', 'contact_info', 'tech_stack', 'education',
            'experience', 'languages', 'linkedin', 'github', 'twitter',
            'instagram',
        ]


class ProjectSerializer(serializers.ModelSerializer):
    """
    Read serializer for project cards and detail.

    comment_total is only present on the owner's dashboard listing
    (queries.with_comment_totals); elsewhere the field is skipped.
    """
    author_id = serializers.CharField(read_only=True)
    liked_by = serializers.ListField(child=serializers.CharField(), read_only=True)
    saved_by = serializers.ListField(child=serializers.CharField(), read_only=True)
    comment_total = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Project
        fields = [
            'id',
            'title',
            'description',
            'category',
            'author_id',
            'author_name',
            'visible',
            'likes',
            'liked_by',
            'saves',
            'saved_by',
            'comments_count',
            'comment_total',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ProjectCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=300)
    description = serializers.CharField()
    category = serializers.ChoiceField(
        choices=Project.Category.choices,
        default=Project.Category.OTHER
    )
    visible = serializers.BooleanField(default=True)

    def validate_title(self, value):
        if not value.strip():
            raise serializers.ValidationError("Title cannot be empty.")
        return value.strip()

    def validate_description(self, value):
        if not value.strip():
            raise serializers.ValidationError("Description cannot be empty.")
        return value.strip()


class ProjectUpdateSerializer(ProjectCreateSerializer):
    """Same fields as create, all optional (PATCH)."""
    title = serializers.CharField(max_length=300, required=False)
    description = serializers.CharField(required=False)
    category = serializers.ChoiceField(choices=Project.Category.choices, required=False)
    visible = serializers.BooleanField(required=False)


class ProjectCommentSerializer(serializers.ModelSerializer):
    author_id = serializers.CharField(read_only=True)

    class Meta:
        model = ProjectComment
        fields = ['id', 'project_id', 'author_id', 'author_name', 'content', 'created_at']
        read_only_fields = ['id', 'project_id', 'author_id', 'author_name', 'created_at']


class ContentSerializer(serializers.Serializer):
    """Body of a comment or discussion reply. Only blank input is rejected."""
    content = serializers.CharField()


class GroupSerializer(serializers.ModelSerializer):
    created_by = serializers.CharField(source='created_by_id', read_only=True)
    members = serializers.ListField(child=serializers.CharField(), read_only=True)
    associated_projects = serializers.ListField(child=serializers.IntegerField(), read_only=True)

    class Meta:
        model = Group
        fields = ['id', 'name', 'description', 'members', 'created_by', 'created_at', 'associated_projects']
        read_only_fields = fields


class GroupCreateSerializer(serializers.Serializer):
    """
    `id` is optional; it defaults to the slug of `name`.

    An existing id is overwritten, not rejected.
    """
    id = serializers.SlugField(max_length=120, required=False)
    name = serializers.CharField(max_length=120)
    description = serializers.CharField()

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Name cannot be empty.")
        return value.strip()


class AssociateProjectSerializer(serializers.Serializer):
    project_id = serializers.IntegerField(min_value=1)


class DiscussionSerializer(serializers.ModelSerializer):
    author_id = serializers.CharField(read_only=True)

    class Meta:
        model = Discussion
        fields = ['id', 'group_id', 'title', 'content', 'author_id', 'author_name', 'created_at']
        read_only_fields = ['id', 'group_id', 'author_id', 'author_name', 'created_at']


class DiscussionCommentSerializer(serializers.ModelSerializer):
    author_id = serializers.CharField(read_only=True)

    class Meta:
        model = DiscussionComment
        fields = ['id', 'discussion_id', 'content', 'author_id', 'author_name', 'created_at']
        read_only_fields = fields


class UserActionSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserAction
        fields = ['id', 'user_id', 'action_type', 'description', 'timestamp']
        read_only_fields = fields


class RankingEntrySerializer(serializers.Serializer):
    """Serializer for ranking entries."""
    rank = serializers.IntegerField()
    user_id = serializers.CharField()
    display_name = serializers.CharField()
    likes = serializers.IntegerField()
    saves = serializers.IntegerField()
    comments = serializers.IntegerField()
    followers = serializers.IntegerField()
    reputation = serializers.IntegerField()
