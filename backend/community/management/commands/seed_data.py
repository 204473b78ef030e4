"""
Management command to seed the database with sample data.

Usage: python manage.py seed_data
"""

import random
from datetime import timedelta
from django.core.management.base import BaseCommand
from django.utils import timezone

from community.exceptions import AlreadyLiked, AlreadySaved
from community.models import (
    Profile, Follow, Project, ProjectLike, ProjectSave, ProjectComment,
    Group, UserAction
)
from community import groups as group_repo
from community import profiles as profile_repo
from community import services


class Command(BaseCommand):
    help = 'Seed the database with sample data for testing'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            type=int,
            default=10,
            help='Number of profiles to create'
        )
        parser.add_argument(
            '--projects',
            type=int,
            default=20,
            help='Number of projects to create'
        )
        parser.add_argument(
            '--comments',
            type=int,
            default=60,
            help='Number of comments to create'
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding'
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            UserAction.objects.all().delete()
            ProjectComment.objects.all().delete()
            ProjectLike.objects.all().delete()
            ProjectSave.objects.all().delete()
            Project.objects.all().delete()
            Group.objects.all().delete()
            Follow.objects.all().delete()
            Profile.objects.all().delete()

        self.stdout.write('Creating profiles...')
        profiles = self._create_profiles(options['users'])

        self.stdout.write('Creating projects...')
        projects = self._create_projects(profiles, options['projects'])

        self.stdout.write('Creating comments...')
        self._create_comments(profiles, projects, options['comments'])

        self.stdout.write('Creating likes, saves and follows...')
        self._create_engagement(profiles, projects)

        self.stdout.write('Creating groups...')
        self._create_groups(profiles, projects)

        self.stdout.write(self.style.SUCCESS(
            f'Successfully created:\n'
            f'  - {len(profiles)} profiles\n'
            f'  - {len(projects)} projects\n'
            f'  - Comments, likes, saves, follows and groups'
        ))

    def _create_profiles(self, count):
        profiles = []
        for i in range(count):
            profile, _ = profile_repo.ensure_profile({
                'uid': f'seed-user-{i+1}',
                'email': f'user{i+1}@example.com',
                'display_name': f'Maker {i+1}',
            })
            profiles.append(profile)
        return profiles

    def _create_projects(self, profiles, count):
        titles = [
            "Weather station with ESP32",
            "Line-following robot",
            "Solar-powered phone charger",
            "Pixel art generator",
            "Plant watering automation",
            "Mechanical keyboard build",
            "Open source synth module",
            "Campus map app",
            "3D printed prosthetic hand",
            "Air quality dashboard",
        ]
        descriptions = [
            "Built over a couple of weekends with parts from the lab.",
            "Looking for feedback on the enclosure design.",
            "All code and schematics are documented in the repo.",
            "First prototype works, second revision in progress.",
            "Started as a class assignment and kept growing.",
        ]

        projects = []
        for i in range(count):
            author = random.choice(profiles)
            project = services.create_project(
                {
                    'title': f"{random.choice(titles)} #{i+1}",
                    'description': random.choice(descriptions),
                    'category': random.choice(Project.Category.values),
                    'visible': random.random() > 0.15,
                },
                author_id=author.uid,
                author_name=str(author)
            )
            Project.objects.filter(pk=project.pk).update(
                created_at=timezone.now() - timedelta(hours=random.randint(0, 240))
            )
            projects.append(project)
        return projects

    def _create_comments(self, profiles, projects, count):
        texts = [
            "Great build! Which sensor did you use?",
            "Love the finish on this.",
            "Could you share the wiring diagram?",
            "We tried something similar last semester.",
            "This deserves more attention.",
        ]
        for _ in range(count):
            author = random.choice(profiles)
            services.add_comment(
                random.choice(projects).pk,
                author_id=author.uid,
                author_name=str(author),
                content=random.choice(texts)
            )

    def _create_engagement(self, profiles, projects):
        for project in projects:
            for profile in random.sample(profiles, k=len(profiles) // 2):
                try:
                    services.like_project(project.pk, profile.uid)
                except AlreadyLiked:
                    pass
            for profile in random.sample(profiles, k=len(profiles) // 4):
                try:
                    services.save_project(project.pk, profile.uid)
                except AlreadySaved:
                    pass

        for profile in profiles:
            others = [p for p in profiles if p.uid != profile.uid]
            for target in random.sample(others, k=min(3, len(others))):
                profile_repo.follow(target.uid, profile.uid)

    def _create_groups(self, profiles, projects):
        for name in ['Robotics Club', 'Digital Art', 'Green Energy']:
            creator = random.choice(profiles)
            group = group_repo.create_group(None, name, f'{name} makers', creator.uid)
            for profile in random.sample(profiles, k=len(profiles) // 2):
                group_repo.join_group(group.pk, profile.uid)
            for project in random.sample(projects, k=min(3, len(projects))):
                group_repo.associate_project(group.pk, project.pk)
            group_repo.create_discussion(
                group.pk,
                f'Welcome to {name}',
                'Introduce yourself and share what you are building.',
                creator.uid,
                str(creator)
            )
