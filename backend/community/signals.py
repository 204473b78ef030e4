"""
Django Signals for maintaining denormalized counters.

Project.comments_count is bumped here whenever a ProjectComment is created.

IMPORTANT: Signals do NOT fire on:
- bulk_create()
- QuerySet.update()

Comments are only ever created one at a time through
services.add_comment(), so the counter stays in step. Anything that
slips through is repaired by the reconcile_counters command.

likes/saves are NOT handled here: services.py updates them with
QuerySet.update(F(...)) in the same transaction as the edge row.
"""

from django.db.models.signals import post_save
from django.dispatch import receiver
from django.db.models import F

from .models import Project, ProjectComment


@receiver(post_save, sender=ProjectComment)
def increment_comment_count(sender, instance, created, **kwargs):
    """
    When a new comment is created, increment the project's comment count.

    Comments are append-only, so there is no matching decrement.
    """
    if created:
        Project.objects.filter(id=instance.project_id).update(
            comments_count=F('comments_count') + 1
        )
