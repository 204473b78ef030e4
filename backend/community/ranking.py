"""
Reputation Ranking
==================

REQUIREMENTS:
- Every user, ordered by reputation (highest first)
- reputation = followers*20 + comments*1 + saves*3 + likes*10
- likes/saves/comments are summed over the user's projects
- Recomputed in full on every request (nothing persisted)
- Ties keep input order -> stable sort

STRATEGY:
---------
Two queries, then a pure fold in Python:
1. Profiles annotated with their follower count
2. (author, likes, saves, comments_count) for every project

build_ranking() is a pure function over those rows, so the arithmetic and
the ordering are testable without a database.

HIDDEN PROJECTS:
----------------
Whether invisible projects count toward public reputation is a setting,
RANKING_INCLUDE_HIDDEN_PROJECTS. Default True keeps the historical
behaviour (they count).
"""

from collections import defaultdict
from typing import Iterable, Mapping, Optional, TypedDict

from django.conf import settings
from django.db.models import Count

from .models import (
    Profile, Project,
    REPUTATION_FOLLOWER, REPUTATION_COMMENT, REPUTATION_SAVE, REPUTATION_LIKE
)


class ProjectStats(TypedDict):
    likes: int
    saves: int
    comments: int


class RankingEntry(TypedDict):
    """Type hint for ranking entries."""
    rank: int
    user_id: str
    display_name: str
    likes: int
    saves: int
    comments: int
    followers: int
    reputation: int


def compute_reputation(likes: int, saves: int, comments: int, followers: int) -> int:
    return (
        followers * REPUTATION_FOLLOWER +
        comments * REPUTATION_COMMENT +
        saves * REPUTATION_SAVE +
        likes * REPUTATION_LIKE
    )


def user_stats(followers: int, projects: Iterable[Mapping]) -> dict:
    """Fold one user's projects into totals plus reputation."""
    likes = saves = comments = 0
    for project in projects:
        likes += project.get('likes') or 0
        saves += project.get('saves') or 0
        comments += project.get('comments') or 0
    return {
        'likes': likes,
        'saves': saves,
        'comments': comments,
        'followers': followers,
        'reputation': compute_reputation(likes, saves, comments, followers),
    }


def build_ranking(users: Iterable[Mapping], projects_by_user: Mapping[str, list]) -> list[RankingEntry]:
    """
    Pure ranking over pre-fetched data.

    `users` is an ordered iterable of {'user_id', 'display_name',
    'followers'}; `projects_by_user` maps user_id to that user's
    ProjectStats rows. sorted() is stable, so equal reputations keep the
    order they had in `users`.
    """
    rows = []
    for user in users:
        stats = user_stats(user.get('followers') or 0, projects_by_user.get(user['user_id'], []))
        rows.append({
            'user_id': user['user_id'],
            'display_name': user.get('display_name') or '',
            **stats,
        })

    ordered = sorted(rows, key=lambda row: -row['reputation'])
    return [
        RankingEntry(rank=rank, **row)
        for rank, row in enumerate(ordered, start=1)
    ]


def get_ranking(include_hidden: Optional[bool] = None) -> list[RankingEntry]:
    """
    Load every profile and project and rank them.

    QUERIES: 2
    - profiles + COUNT(follower edges)
    - projects (only the counter columns)
    """
    if include_hidden is None:
        include_hidden = getattr(settings, 'RANKING_INCLUDE_HIDDEN_PROJECTS', True)

    profiles = (
        Profile.objects
        .annotate(follower_total=Count('follower_edges', distinct=True))
        .order_by('uid')
        .values('uid', 'display_name', 'email', 'follower_total')
    )
    users = [
        {
            'user_id': profile['uid'],
            'display_name': profile['display_name'] or profile['email'],
            'followers': profile['follower_total'],
        }
        for profile in profiles
    ]

    projects = Project.objects.all()
    if not include_hidden:
        projects = projects.filter(visible=True)

    projects_by_user: dict[str, list[ProjectStats]] = defaultdict(list)
    for author_id, likes, saves, comments in projects.values_list(
        'author_id', 'likes', 'saves', 'comments_count'
    ):
        projects_by_user[author_id].append(
            ProjectStats(likes=likes, saves=saves, comments=comments)
        )

    return build_ranking(users, projects_by_user)


def get_user_standing(user_id: str, include_hidden: Optional[bool] = None) -> Optional[RankingEntry]:
    """A single user's entry (with rank), or None if they have no profile."""
    for entry in get_ranking(include_hidden=include_hidden):
        if entry['user_id'] == user_id:
            return entry
    return None
