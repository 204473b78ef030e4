"""
Data Models for Mi OpenLab
==========================

Design Philosophy:
------------------
1. Set-valued fields (liked_by, saved_by, members, ...) are edge tables
   - One row per (document, user) pair with a unique constraint
   - Set union = insert, set difference = delete, membership = exists()
   - The constraint gives set semantics at DB level, even under races

2. Engagement counters are denormalized next to their edge tables
   - Project.likes mirrors |liked_by|, Project.saves mirrors |saved_by|
   - Both are written in the SAME transaction as the edge row
   - reconcile_counters recomputes them if anything ever drifts

3. Follow graph is ONE edge table, not two arrays
   - followers(B) and following(A) read the same Follow(A -> B) row
   - Asymmetric graphs are impossible by construction

4. Deleting a project does not cascade to comments or group associations
   - Those FKs use db_constraint=False + DO_NOTHING
   - Orphaned comments stay queryable by id

5. UserAction is an append-only activity log
   - Written after commit, best-effort (see activity.py)

Indexes Strategy:
-----------------
- project.created_at: explore/home ordering
- project.author + created_at: per-author listings
- comment.project + created_at: comment threads
- useraction.user_id + timestamp: recent activity on profile pages
"""

from django.db import models
from django.utils import timezone


class Profile(models.Model):
    """
    User profile keyed by the identity provider's uid.

    Created lazily on first authenticated request (profiles.ensure_profile).
    Also serves as request.user for DRF, hence the auth flags below.
    """
    uid = models.CharField(max_length=128, primary_key=True)
    email = models.EmailField(blank=True, default='')
    display_name = models.CharField(max_length=150, blank=True, default='')
    photo_url = models.URLField(max_length=500, blank=True, default='')
    header_url = models.URLField(max_length=500, blank=True, default='')
    bio = models.TextField(blank=True, default='')
    headline = models.CharField(max_length=200, blank=True, default='')
    location = models.CharField(max_length=200, blank=True, default='')
    contact_info = models.CharField(max_length=200, blank=True, default='')
    tech_stack = models.TextField(blank=True, default='')

    education = models.JSONField(default=list, blank=True)
    experience = models.JSONField(default=list, blank=True)
    languages = models.JSONField(default=list, blank=True)
    achievements = models.JSONField(default=list, blank=True)

    linkedin = models.CharField(max_length=300, blank=True, default='')
    github = models.CharField(max_length=300, blank=True, default='')
    twitter = models.CharField(max_length=300, blank=True, default='')
    instagram = models.CharField(max_length=300, blank=True, default='')

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    # DRF permission classes only look at these two
    is_authenticated = True
    is_anonymous = False

    class Meta:
        ordering = ['uid']

    def __str__(self):
        return self.display_name or self.email or self.uid

    @property
    def followers(self) -> list[str]:
        return [edge.follower_id for edge in self.follower_edges.all()]

    @property
    def following(self) -> list[str]:
        return [edge.followed_id for edge in self.following_edges.all()]


class Follow(models.Model):
    """
    Directed follow edge: follower -> followed.

    WHY A SINGLE TABLE:
    - The relation is symmetric by definition (A follows B <=> B is
      followed by A); storing it twice invites partial writes
    - One insert/delete is atomic on its own, no cross-row transaction needed
    """
    follower = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='following_edges'
    )
    followed = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='follower_edges'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['follower', 'followed'],
                name='unique_follow_edge'
            )
        ]
        indexes = [
            models.Index(fields=['followed', 'follower']),
        ]

    def __str__(self):
        return f"{self.follower_id} -> {self.followed_id}"


class Project(models.Model):
    """
    A published maker project.

    Engagement counters (likes, saves, comments_count) are denormalized.
    likes/saves are only ever changed together with their edge rows
    inside services.py, using F() so concurrent writers can't lose updates.
    """

    class Category(models.TextChoices):
        TECHNOLOGY = 'technology', 'Technology'
        SCIENCE = 'science', 'Science'
        ART = 'art', 'Art'
        DESIGN = 'design', 'Design'
        ENGINEERING = 'engineering', 'Engineering'
        EDUCATION = 'education', 'Education'
        MUSIC = 'music', 'Music'
        HEALTH = 'health', 'Health'
        BUSINESS = 'business', 'Business'
        SOCIAL = 'social', 'Social'
        OTHER = 'other', 'Other'

    title = models.CharField(max_length=300)
    description = models.TextField()
    category = models.CharField(
        max_length=20,
        choices=Category.choices,
        default=Category.OTHER
    )
    author = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='projects',
        db_index=True
    )
    # Copied from the profile at creation time; may go stale
    author_name = models.CharField(max_length=150, blank=True, default='')
    visible = models.BooleanField(default=True, db_index=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(default=timezone.now)

    likes = models.PositiveIntegerField(default=0)
    saves = models.PositiveIntegerField(default=0)
    comments_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['author', '-created_at']),
        ]

    def __str__(self):
        return f"{self.title[:50]} by {self.author_name or self.author_id}"

    @property
    def liked_by(self) -> list[str]:
        # Uses the prefetch cache when queries.with_engagement() was applied
        return [row.user_id for row in self.like_records.all()]

    @property
    def saved_by(self) -> list[str]:
        return [row.user_id for row in self.save_records.all()]


class ProjectLike(models.Model):
    """One member of Project.liked_by."""
    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='like_records'
    )
    user = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='liked_projects'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['project', 'user'],
                name='unique_like_per_user_per_project'
            )
        ]


class ProjectSave(models.Model):
    """One member of Project.saved_by."""
    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='save_records'
    )
    user = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='saved_projects'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['project', 'user'],
                name='unique_save_per_user_per_project'
            )
        ]


class ProjectComment(models.Model):
    """
    Append-only comment on a project.

    NOT cascaded on project delete: the FK carries no DB constraint and
    DO_NOTHING, so the row survives with a dangling project_id.
    """
    project = models.ForeignKey(
        Project,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name='comments'
    )
    author = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='project_comments'
    )
    author_name = models.CharField(max_length=150, blank=True, default='')
    content = models.TextField()
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['project', 'created_at']),
        ]

    def __str__(self):
        return f"Comment by {self.author_name or self.author_id} on {self.project_id}"


class Group(models.Model):
    """
    Topical group. The id is a slug of the name, supplied by the caller.

    Creating a group with an id that already exists overwrites it
    (see groups.create_group).
    """
    id = models.SlugField(max_length=120, primary_key=True)
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='created_groups'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def members(self) -> list[str]:
        return [row.user_id for row in self.memberships.all()]

    @property
    def associated_projects(self) -> list[int]:
        return [row.project_id for row in self.project_links.all()]


class GroupMembership(models.Model):
    """One member of Group.members."""
    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    user = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='group_memberships'
    )
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['group', 'user'],
                name='unique_membership'
            )
        ]


class GroupProject(models.Model):
    """
    One member of Group.associated_projects.

    The project reference is a bare id: associating does not check the
    project exists, and deleting the project leaves the link behind.
    """
    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name='project_links'
    )
    project = models.ForeignKey(
        Project,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name='group_links'
    )
    added_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['group', 'project'],
                name='unique_group_project'
            )
        ]


class Discussion(models.Model):
    """Append-only discussion thread inside a group."""
    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name='discussions'
    )
    title = models.CharField(max_length=300)
    content = models.TextField()
    author = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='discussions'
    )
    author_name = models.CharField(max_length=150, blank=True, default='')
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['group', '-created_at']),
        ]

    def __str__(self):
        return self.title[:50]


class DiscussionComment(models.Model):
    """Append-only reply to a discussion."""
    discussion = models.ForeignKey(
        Discussion,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    content = models.TextField()
    author = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='discussion_comments'
    )
    author_name = models.CharField(max_length=150, blank=True, default='')
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'id']


class UserAction(models.Model):
    """
    Activity log entry.

    Append-only. user_id is a plain string (not an FK) so a logging write
    never fails on a missing profile and never blocks profile changes.
    """

    class ActionType(models.TextChoices):
        CREATE_PROJECT = 'create_project', 'Created project'
        UPDATE_PROJECT = 'update_project', 'Updated project'
        DELETE_PROJECT = 'delete_project', 'Deleted project'
        LIKED_PROJECT = 'liked_project', 'Liked project'
        UNLIKED_PROJECT = 'unliked_project', 'Unliked project'
        SAVED_PROJECT = 'saved_project', 'Saved project'
        UNSAVED_PROJECT = 'unsaved_project', 'Unsaved project'
        ADD_COMMENT = 'add_comment', 'Commented'
        FOLLOW_USER = 'follow_user', 'Followed user'
        UNFOLLOW_USER = 'unfollow_user', 'Unfollowed user'
        CREATE_GROUP = 'create_group', 'Created group'
        JOIN_GROUP = 'join_group', 'Joined group'
        LEAVE_GROUP = 'leave_group', 'Left group'
        CREATE_DISCUSSION = 'create_discussion', 'Started discussion'
        ADD_DISCUSSION_COMMENT = 'add_discussion_comment', 'Replied to discussion'

    user_id = models.CharField(max_length=128)
    action_type = models.CharField(max_length=40, choices=ActionType.choices)
    description = models.CharField(max_length=500)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-timestamp', '-id']
        indexes = [
            models.Index(fields=['user_id', '-timestamp']),
        ]

    def __str__(self):
        return f"{self.user_id} {self.action_type}"


# ============================================================================
# REPUTATION WEIGHTS
# ============================================================================
# Per-unit contribution to ranking.reputation
REPUTATION_FOLLOWER = 20
REPUTATION_COMMENT = 1
REPUTATION_SAVE = 3
REPUTATION_LIKE = 10
