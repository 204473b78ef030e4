"""
Management command to repair denormalized project fields.

Usage: python manage.py reconcile_counters [--dry-run]

Recomputes, for every project:
- likes          := |liked_by|
- saves          := |saved_by|
- comments_count := number of comments
- author_name    := current profile label (display name, email or uid)

The engagement services keep these in step on their own; this is the
self-healing pass for anything written around them (bulk imports, admin
edits, renamed profiles).
"""

from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import Count

from community.models import Project


class Command(BaseCommand):
    help = 'Recompute project counters and denormalized author names'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report drift without writing'
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        projects = (
            Project.objects
            .select_related('author')
            .annotate(
                like_total=Count('like_records', distinct=True),
                save_total=Count('save_records', distinct=True),
                comment_total=Count('comments', distinct=True),
            )
        )

        repaired = 0
        for project in projects.iterator():
            expected = {
                'likes': project.like_total,
                'saves': project.save_total,
                'comments_count': project.comment_total,
                'author_name': str(project.author),
            }
            drift = {
                field: value for field, value in expected.items()
                if getattr(project, field) != value
            }
            if not drift:
                continue

            repaired += 1
            self.stdout.write(
                f'Project {project.pk}: ' + ', '.join(
                    f'{field} {getattr(project, field)!r} -> {value!r}'
                    for field, value in drift.items()
                )
            )
            if not dry_run:
                with transaction.atomic():
                    Project.objects.filter(pk=project.pk).update(**drift)

        verb = 'would repair' if dry_run else 'repaired'
        self.stdout.write(self.style.SUCCESS(f'{verb} {repaired} project(s)'))
