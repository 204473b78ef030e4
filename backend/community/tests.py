"""
Tests for Mi OpenLab

Focus areas:
1. Engagement invariants (likes == |liked_by|, saves == |saved_by|)
2. Follow graph symmetry and idempotent set semantics
3. Reputation ranking arithmetic and ordering
4. Visibility on discovery surfaces
5. Best-effort activity log
6. HTTP error mapping
"""

from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.test.utils import CaptureQueriesContext
from rest_framework import status
from rest_framework.test import APIClient

from . import groups as group_repo
from . import profiles as profile_repo
from . import services
from .activity import log_user_action, recent_actions
from .exceptions import (
    AlreadyLiked, NotLiked, AlreadySaved, NotSaved, ProjectNotFound,
    ProfileNotFound, GroupNotFound, DiscussionNotFound, SelfFollow, NotGroupMember
)
from .models import (
    Profile, Follow, Project, ProjectLike, ProjectSave, ProjectComment,
    Group, Discussion, UserAction,
    REPUTATION_FOLLOWER, REPUTATION_COMMENT, REPUTATION_SAVE, REPUTATION_LIKE
)
from .queries import explore_projects, following_feed, saved_projects, projects_of
from .ranking import build_ranking, compute_reputation, get_ranking, get_user_standing


def make_profile(uid, name=None):
    return Profile.objects.create(uid=uid, display_name=name or uid.upper())


def make_project(author, title='Project', visible=True, **counters):
    return Project.objects.create(
        author=author,
        author_name=str(author),
        title=title,
        description='Description',
        visible=visible,
        **counters
    )


class EngagementTestCase(TestCase):
    """
    Like/save mutations.

    CRITICAL: after every call, successful or not, the counter equals the
    size of the corresponding set.
    """

    def setUp(self):
        self.author = make_profile('author')
        self.users = [make_profile(f'u{i}') for i in range(1, 6)]
        self.project = make_project(self.author)

    def assertLikesConsistent(self):
        self.project.refresh_from_db()
        self.assertEqual(self.project.likes, len(self.project.liked_by))

    def test_like_adds_user_and_increments(self):
        services.like_project(self.project.id, 'u1')

        self.project.refresh_from_db()
        self.assertEqual(self.project.likes, 1)
        self.assertEqual(self.project.liked_by, ['u1'])

    def test_cannot_like_twice(self):
        """Second like raises AlreadyLiked and leaves the project untouched."""
        services.like_project(self.project.id, 'u1')

        with self.assertRaises(AlreadyLiked):
            services.like_project(self.project.id, 'u1')

        self.assertEqual(ProjectLike.objects.filter(project=self.project, user_id='u1').count(), 1)
        self.assertLikesConsistent()
        self.assertEqual(self.project.likes, 1)

    def test_unlike_without_like_raises(self):
        with self.assertRaises(NotLiked):
            services.unlike_project(self.project.id, 'u1')

        self.project.refresh_from_db()
        self.assertEqual(self.project.likes, 0)

    def test_unlike_one_of_five(self):
        """likes=5 over u1..u5; unliking u3 leaves 4 likes and no u3."""
        for user in self.users:
            services.like_project(self.project.id, user.uid)

        services.unlike_project(self.project.id, 'u3')

        self.project.refresh_from_db()
        self.assertEqual(self.project.likes, 4)
        self.assertEqual(len(self.project.liked_by), 4)
        self.assertNotIn('u3', self.project.liked_by)

    def test_like_unlike_like(self):
        services.like_project(self.project.id, 'u1')
        services.unlike_project(self.project.id, 'u1')
        services.like_project(self.project.id, 'u1')

        self.assertLikesConsistent()
        self.assertEqual(self.project.likes, 1)

    def test_like_missing_project(self):
        with self.assertRaises(ProjectNotFound):
            services.like_project(999999, 'u1')

    def test_save_and_unsave(self):
        services.save_project(self.project.id, 'u1')
        services.save_project(self.project.id, 'u2')
        with self.assertRaises(AlreadySaved):
            services.save_project(self.project.id, 'u2')

        services.unsave_project(self.project.id, 'u1')
        with self.assertRaises(NotSaved):
            services.unsave_project(self.project.id, 'u1')

        self.project.refresh_from_db()
        self.assertEqual(self.project.saves, 1)
        self.assertEqual(self.project.saved_by, ['u2'])

    def test_likes_and_saves_are_independent(self):
        services.like_project(self.project.id, 'u1')
        services.save_project(self.project.id, 'u2')

        self.project.refresh_from_db()
        self.assertEqual((self.project.likes, self.project.saves), (1, 1))
        self.assertEqual(self.project.liked_by, ['u1'])
        self.assertEqual(self.project.saved_by, ['u2'])

    def test_unlike_never_goes_negative(self):
        """A drifted counter is clamped at zero."""
        ProjectLike.objects.create(project=self.project, user_id='u1')

        services.unlike_project(self.project.id, 'u1')

        self.project.refresh_from_db()
        self.assertEqual(self.project.likes, 0)


class EngagementTransactionTestCase(TransactionTestCase):
    """
    Same invariants with real commits, so on_commit callbacks fire as in
    production.
    """

    def setUp(self):
        self.author = make_profile('author')
        self.user = make_profile('user')
        self.project = make_project(self.author)

    def test_activity_written_after_commit(self):
        services.like_project(self.project.id, 'user')

        actions = recent_actions('user')
        self.assertEqual(len(actions), 1)
        self.assertEqual(actions[0].action_type, UserAction.ActionType.LIKED_PROJECT)

    def test_failed_mutation_not_logged(self):
        services.like_project(self.project.id, 'user')

        with self.assertRaises(AlreadyLiked):
            services.like_project(self.project.id, 'user')

        self.assertEqual(UserAction.objects.filter(user_id='user').count(), 1)

    def test_count_updated_with_f_expression(self):
        services.like_project(self.project.id, 'user')
        services.save_project(self.project.id, 'user')

        self.project.refresh_from_db()
        self.assertEqual(self.project.likes, 1)
        self.assertEqual(self.project.saves, 1)

        services.unlike_project(self.project.id, 'user')
        services.unsave_project(self.project.id, 'user')

        self.project.refresh_from_db()
        self.assertEqual(self.project.likes, 0)
        self.assertEqual(self.project.saves, 0)


class ProjectRepositoryTestCase(TestCase):

    def setUp(self):
        self.author = make_profile('author', 'Ada')
        self.reader = make_profile('reader')

    def test_create_assigns_server_fields(self):
        project = services.create_project(
            {'title': 'Rover', 'description': 'Mars rover model', 'category': 'engineering'},
            author_id='author',
            author_name='Ada'
        )

        project.refresh_from_db()
        self.assertEqual(project.author_id, 'author')
        self.assertEqual(project.author_name, 'Ada')
        self.assertEqual((project.likes, project.saves, project.comments_count), (0, 0, 0))
        self.assertTrue(project.visible)
        self.assertEqual(project.liked_by, [])
        self.assertEqual(project.created_at, project.updated_at)

    def test_update_ignores_unknown_fields(self):
        project = make_project(self.author, title='Old')

        services.update_project(project.id, {'title': 'New', 'likes': 100, 'author_id': 'reader'})

        project.refresh_from_db()
        self.assertEqual(project.title, 'New')
        self.assertEqual(project.likes, 0)
        self.assertEqual(project.author_id, 'author')
        self.assertGreaterEqual(project.updated_at, project.created_at)

    def test_update_missing_project(self):
        with self.assertRaises(ProjectNotFound):
            services.update_project(999999, {'title': 'x'})

    def test_delete_leaves_orphaned_comments(self):
        """Comments survive their project and stay readable by id."""
        project = make_project(self.author)
        comment = services.add_comment(project.id, 'reader', 'reader', 'Nice!')

        services.delete_project(project.id)

        self.assertIsNone(services.get_project(project.id))
        orphan = services.get_comment(comment.id)
        self.assertIsNotNone(orphan)
        self.assertEqual(orphan.content, 'Nice!')
        self.assertEqual(orphan.project_id, project.id)

    def test_delete_missing_project(self):
        with self.assertRaises(ProjectNotFound):
            services.delete_project(999999)

    def test_comments_count_follows_comments(self):
        project = make_project(self.author)

        first = services.add_comment(project.id, 'reader', 'reader', 'First')
        second = services.add_comment(project.id, 'author', 'Ada', 'Second')

        project.refresh_from_db()
        self.assertEqual(project.comments_count, 2)
        self.assertEqual([c.id for c in services.list_comments(project.id)], [first.id, second.id])

    def test_comment_on_missing_project(self):
        with self.assertRaises(ProjectNotFound):
            services.add_comment(999999, 'reader', 'reader', 'Hello')

    def test_list_by_author_includes_hidden(self):
        make_project(self.author, title='Public')
        make_project(self.author, title='Draft', visible=False)
        make_project(self.reader, title='Other')

        titles = {p.title for p in services.list_projects_by_author('author')}
        self.assertEqual(titles, {'Public', 'Draft'})

    def test_list_by_author_with_comment_counts(self):
        project = make_project(self.author)
        services.add_comment(project.id, 'reader', 'reader', 'One')
        services.add_comment(project.id, 'reader', 'reader', 'Two')

        [listed] = services.list_projects_by_author('author', with_comment_counts=True)
        self.assertEqual(listed.comment_total, 2)

    def test_get_projects_skips_missing(self):
        first = make_project(self.author, title='First')
        second = make_project(self.author, title='Second')
        services.delete_project(first.id)

        self.assertEqual([p.id for p in services.get_projects([first.id, second.id, 999999])], [second.id])
        self.assertEqual(services.get_project(second.id).liked_by, [])

    def test_list_all_newest_first(self):
        first = make_project(self.author, title='First')
        second = make_project(self.author, title='Second')

        self.assertEqual([p.id for p in services.list_all_projects()], [second.id, first.id])


class VisibilityTestCase(TestCase):
    """Hidden projects never reach discovery surfaces but stay with their author."""

    def setUp(self):
        self.author = make_profile('author')
        self.reader = make_profile('reader')
        self.public = make_project(self.author, title='Public robot')
        self.hidden = make_project(self.author, title='Hidden robot', visible=False)

    def test_explore_excludes_hidden(self):
        ids = [p.id for p in explore_projects()]
        self.assertIn(self.public.id, ids)
        self.assertNotIn(self.hidden.id, ids)

    def test_explore_search_and_category(self):
        make_project(self.reader, title='Watercolour set')
        Project.objects.filter(pk=self.public.pk).update(category=Project.Category.ENGINEERING)

        self.assertEqual([p.id for p in explore_projects(search='ROBOT')], [self.public.id])
        self.assertEqual([p.id for p in explore_projects(category='engineering')], [self.public.id])
        self.assertEqual(explore_projects(search='nothing matches'), [])

    def test_projects_of_owner_sees_hidden(self):
        self.assertEqual(
            {p.id for p in projects_of('author', viewer_uid='author')},
            {self.public.id, self.hidden.id}
        )
        self.assertEqual([p.id for p in projects_of('author', viewer_uid='reader')], [self.public.id])
        self.assertEqual([p.id for p in projects_of('author')], [self.public.id])

    def test_following_feed(self):
        make_project(self.reader, title='Not followed')
        profile_repo.follow('author', 'reader')

        self.assertEqual([p.id for p in following_feed('reader')], [self.public.id])
        self.assertEqual(following_feed('author'), [])

    def test_saved_projects_drop_hidden_from_others(self):
        services.save_project(self.public.id, 'reader')
        services.save_project(self.hidden.id, 'reader')
        services.save_project(self.hidden.id, 'author')

        self.assertEqual([p.id for p in saved_projects('reader')], [self.public.id])
        self.assertEqual([p.id for p in saved_projects('author')], [self.hidden.id])

    def test_explore_has_no_n_plus_one(self):
        for i in range(20):
            project = make_project(self.author, title=f'P{i}')
            ProjectLike.objects.create(project=project, user=self.reader)

        with CaptureQueriesContext(connection) as context:
            projects = explore_projects()
            for project in projects:
                project.liked_by
                project.saved_by

        self.assertLessEqual(len(context), 3)


class FollowGraphTestCase(TestCase):
    """A follows B <=> A in followers(B) <=> B in following(A)."""

    def setUp(self):
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')

    def test_follow_is_symmetric(self):
        self.assertTrue(profile_repo.follow('bob', 'alice'))

        self.assertEqual(profile_repo.get_profile('bob').followers, ['alice'])
        self.assertEqual(profile_repo.get_profile('alice').following, ['bob'])
        self.assertEqual(profile_repo.followers_of('bob'), ['alice'])
        self.assertEqual(profile_repo.following_of('alice'), ['bob'])
        self.assertEqual(profile_repo.get_profile('bob').following, [])

    def test_follow_twice_is_idempotent(self):
        profile_repo.follow('bob', 'alice')
        self.assertFalse(profile_repo.follow('bob', 'alice'))

        self.assertEqual(Follow.objects.count(), 1)

    def test_follow_then_unfollow_restores_state(self):
        profile_repo.follow('bob', 'alice')
        self.assertTrue(profile_repo.unfollow('bob', 'alice'))

        self.assertEqual(profile_repo.followers_of('bob'), [])
        self.assertEqual(profile_repo.following_of('alice'), [])

    def test_unfollow_when_not_following(self):
        self.assertFalse(profile_repo.unfollow('bob', 'alice'))

    def test_cannot_follow_self(self):
        with self.assertRaises(SelfFollow):
            profile_repo.follow('alice', 'alice')
        self.assertEqual(Follow.objects.count(), 0)

    def test_follow_unknown_profile(self):
        with self.assertRaises(ProfileNotFound):
            profile_repo.follow('nobody', 'alice')


class ProfileRepositoryTestCase(TestCase):

    def test_ensure_profile_creates_once(self):
        profile, created = profile_repo.ensure_profile(
            {'uid': 'new', 'email': 'new@example.com', 'display_name': 'Newcomer'}
        )
        self.assertTrue(created)
        self.assertEqual(profile.display_name, 'Newcomer')
        self.assertEqual(profile.followers, [])
        self.assertEqual(profile.achievements, [])

        again, created = profile_repo.ensure_profile({'uid': 'new', 'display_name': 'Renamed'})
        self.assertFalse(created)
        self.assertEqual(again.display_name, 'Newcomer')

    def test_update_profile(self):
        make_profile('maker')

        profile_repo.update_profile('maker', {'bio': 'I build robots', 'uid': 'hijack'})

        profile = profile_repo.get_profile('maker')
        self.assertEqual(profile.bio, 'I build robots')
        self.assertIsNone(profile_repo.get_profile('hijack'))

    def test_update_missing_profile(self):
        with self.assertRaises(ProfileNotFound):
            profile_repo.update_profile('nobody', {'bio': 'x'})

    def test_add_achievement_is_idempotent(self):
        make_profile('maker')

        profile_repo.add_achievement('maker', 'first-project')
        badges = profile_repo.add_achievement('maker', 'first-project')

        self.assertEqual(badges, ['first-project'])


class GroupTestCase(TestCase):

    def setUp(self):
        self.creator = make_profile('creator')
        self.member = make_profile('member')
        self.group = group_repo.create_group(None, 'Robotics Club', 'Robots!', 'creator')

    def test_create_group_slug_and_creator_membership(self):
        self.assertEqual(self.group.pk, 'robotics-club')
        group = group_repo.get_group('robotics-club')
        self.assertEqual(group.members, ['creator'])
        self.assertEqual(group.associated_projects, [])

    def test_empty_slug_rejected(self):
        with self.assertRaises(ValueError):
            group_repo.create_group(None, '!!!', 'desc', 'creator')

    def test_join_twice_is_single_membership(self):
        self.assertTrue(group_repo.join_group('robotics-club', 'member'))
        self.assertFalse(group_repo.join_group('robotics-club', 'member'))

        members = group_repo.get_group('robotics-club').members
        self.assertEqual(sorted(members), ['creator', 'member'])

    def test_leave_as_non_member_is_noop(self):
        self.assertFalse(group_repo.leave_group('robotics-club', 'member'))
        self.assertEqual(group_repo.get_group('robotics-club').members, ['creator'])

    def test_membership_check(self):
        self.assertTrue(group_repo.is_member('robotics-club', 'creator'))
        self.assertFalse(group_repo.is_member('robotics-club', 'member'))
        self.assertFalse(group_repo.is_member('robotics-club', None))

        with self.assertRaises(NotGroupMember):
            group_repo.require_member('robotics-club', 'member')
        group_repo.join_group('robotics-club', 'member')
        group_repo.require_member('robotics-club', 'member')

    def test_join_missing_group(self):
        with self.assertRaises(GroupNotFound):
            group_repo.join_group('nope', 'member')

    def test_associate_and_remove_project(self):
        project = make_project(self.creator)

        self.assertTrue(group_repo.associate_project('robotics-club', project.id))
        self.assertFalse(group_repo.associate_project('robotics-club', project.id))
        self.assertEqual(group_repo.get_group('robotics-club').associated_projects, [project.id])

        self.assertTrue(group_repo.remove_project('robotics-club', project.id))
        self.assertFalse(group_repo.remove_project('robotics-club', project.id))

    def test_existing_id_is_overwritten(self):
        """Same slug replaces the group; discussions survive."""
        group_repo.join_group('robotics-club', 'member')
        group_repo.associate_project('robotics-club', 42)
        group_repo.create_discussion('robotics-club', 'Hello', 'First post', 'creator', 'creator')

        with self.assertLogs('community.groups', level='WARNING'):
            group_repo.create_group(None, 'Robotics  club', 'Take two', 'member')

        group = group_repo.get_group('robotics-club')
        self.assertEqual(group.created_by_id, 'member')
        self.assertEqual(group.description, 'Take two')
        self.assertEqual(group.members, ['member'])
        self.assertEqual(group.associated_projects, [])
        self.assertEqual(Group.objects.count(), 1)
        self.assertEqual(Discussion.objects.filter(group_id='robotics-club').count(), 1)

    def test_discussions_and_replies(self):
        first = group_repo.create_discussion('robotics-club', 'One', 'a', 'creator', 'creator')
        second = group_repo.create_discussion('robotics-club', 'Two', 'b', 'member', 'member')

        self.assertEqual(
            [d.id for d in group_repo.list_discussions('robotics-club')],
            [second.id, first.id]
        )

        reply1 = group_repo.add_discussion_comment('robotics-club', first.id, 'Agreed', 'member', 'member')
        reply2 = group_repo.add_discussion_comment('robotics-club', first.id, 'Thanks', 'creator', 'creator')
        self.assertEqual(
            [c.id for c in group_repo.list_discussion_comments('robotics-club', first.id)],
            [reply1.id, reply2.id]
        )

    def test_discussion_must_belong_to_group(self):
        group_repo.create_group(None, 'Digital Art', 'Pixels', 'creator')
        discussion = group_repo.create_discussion('digital-art', 'Hi', 'x', 'creator', 'creator')

        with self.assertRaises(DiscussionNotFound):
            group_repo.get_discussion('robotics-club', discussion.id)


class RankingTestCase(TestCase):
    """
    reputation = followers*20 + comments*1 + saves*3 + likes*10

    CRITICAL: sums over every project the user authored, ties keep order.
    """

    def test_weights(self):
        self.assertEqual(compute_reputation(likes=1, saves=0, comments=0, followers=0), REPUTATION_LIKE)
        self.assertEqual(compute_reputation(likes=0, saves=1, comments=0, followers=0), REPUTATION_SAVE)
        self.assertEqual(compute_reputation(likes=0, saves=0, comments=1, followers=0), REPUTATION_COMMENT)
        self.assertEqual(compute_reputation(likes=0, saves=0, comments=0, followers=1), REPUTATION_FOLLOWER)

    def test_two_projects_and_ten_followers(self):
        """likes 3+7, saves 1+2, comments 0+4, 10 followers -> 313."""
        maker = make_profile('maker')
        make_project(maker, likes=3, saves=1, comments_count=0)
        make_project(maker, likes=7, saves=2, comments_count=4)
        for i in range(10):
            Follow.objects.create(follower=make_profile(f'fan{i:02d}'), followed=maker)

        standing = get_user_standing('maker')

        self.assertEqual(standing['likes'], 10)
        self.assertEqual(standing['saves'], 3)
        self.assertEqual(standing['comments'], 4)
        self.assertEqual(standing['followers'], 10)
        self.assertEqual(standing['reputation'], 313)
        self.assertEqual(standing['rank'], 1)

    def test_every_user_is_ranked(self):
        make_profile('a')
        make_profile('b')
        make_project(make_profile('c'), likes=1)

        ranking = get_ranking()

        self.assertEqual([entry['user_id'] for entry in ranking], ['c', 'a', 'b'])
        self.assertEqual([entry['rank'] for entry in ranking], [1, 2, 3])
        self.assertEqual(ranking[1]['reputation'], 0)

    def test_hidden_projects_setting(self):
        maker = make_profile('maker')
        make_project(maker, likes=2)
        make_project(maker, likes=5, visible=False)

        self.assertEqual(get_user_standing('maker')['likes'], 7)
        with override_settings(RANKING_INCLUDE_HIDDEN_PROJECTS=False):
            self.assertEqual(get_user_standing('maker')['likes'], 2)

    def test_unknown_user_has_no_standing(self):
        self.assertIsNone(get_user_standing('ghost'))

    def test_build_ranking_is_stable(self):
        users = [
            {'user_id': 'z', 'display_name': 'Zed', 'followers': 0},
            {'user_id': 'a', 'display_name': 'Amy', 'followers': 0},
            {'user_id': 'm', 'display_name': 'Max', 'followers': 1},
        ]
        projects = {
            'z': [{'likes': 2, 'saves': 0, 'comments': 0}],
            'a': [{'likes': 1, 'saves': 3, 'comments': 1}],
        }

        ranking = build_ranking(users, projects)

        # m: 20, z: 20, a: 10 + 9 + 1 = 20 -> all tied, input order kept
        self.assertEqual([entry['user_id'] for entry in ranking], ['z', 'a', 'm'])
        self.assertEqual({entry['reputation'] for entry in ranking}, {20})

    def test_build_ranking_orders_descending(self):
        users = [
            {'user_id': 'low', 'display_name': 'Low', 'followers': 0},
            {'user_id': 'high', 'display_name': 'High', 'followers': 2},
        ]

        ranking = build_ranking(users, {})

        self.assertEqual(ranking[0]['user_id'], 'high')
        self.assertEqual(ranking[0]['reputation'], 40)
        self.assertEqual(ranking[1]['rank'], 2)


class ActivityLogTestCase(TestCase):

    def setUp(self):
        self.author = make_profile('author')
        self.project = make_project(self.author)

    def test_recent_is_bounded_and_newest_first(self):
        for i in range(12):
            log_user_action('author', UserAction.ActionType.ADD_COMMENT, f'Comment {i}')

        actions = recent_actions('author')

        self.assertEqual(len(actions), 10)
        self.assertEqual(actions[0].description, 'Comment 11')
        self.assertEqual(actions[-1].description, 'Comment 2')

    @override_settings(ACTIVITY_RECENT_LIMIT=3)
    def test_recent_limit_setting(self):
        for i in range(5):
            log_user_action('author', UserAction.ActionType.ADD_COMMENT, f'Comment {i}')

        self.assertEqual(len(recent_actions('author')), 3)

    def test_recent_only_for_user(self):
        log_user_action('author', UserAction.ActionType.CREATE_PROJECT, 'mine')
        log_user_action('other', UserAction.ActionType.CREATE_PROJECT, 'theirs')

        self.assertEqual([a.description for a in recent_actions('author')], ['mine'])

    def test_mutations_record_actions_on_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            services.like_project(self.project.id, 'author')
            services.add_comment(self.project.id, 'author', 'author', 'hi')

        self.assertEqual(len(callbacks), 2)
        self.assertEqual(
            [a.action_type for a in recent_actions('author')],
            [UserAction.ActionType.ADD_COMMENT, UserAction.ActionType.LIKED_PROJECT]
        )

    def test_log_failure_does_not_break_mutation(self):
        with patch.object(UserAction.objects, 'create', side_effect=DatabaseError('log table down')):
            with self.assertLogs('community.activity', level='WARNING'):
                with self.captureOnCommitCallbacks(execute=True):
                    services.like_project(self.project.id, 'author')

        self.project.refresh_from_db()
        self.assertEqual(self.project.likes, 1)
        self.assertEqual(UserAction.objects.count(), 0)

    def test_log_user_action_returns_none_on_failure(self):
        with patch.object(UserAction.objects, 'create', side_effect=DatabaseError('down')):
            with self.assertLogs('community.activity', level='WARNING'):
                result = log_user_action('author', UserAction.ActionType.FOLLOW_USER, 'x')

        self.assertIsNone(result)


class ReconcileCountersTestCase(TestCase):

    def setUp(self):
        self.author = make_profile('author', 'Ada')
        self.reader = make_profile('reader')
        self.project = make_project(self.author)
        services.like_project(self.project.id, 'reader')
        services.add_comment(self.project.id, 'reader', 'reader', 'Hi')

    def test_repairs_drift(self):
        Project.objects.filter(pk=self.project.pk).update(likes=9, saves=4, comments_count=0)
        ProjectSave.objects.create(project=self.project, user=self.author)

        out = StringIO()
        call_command('reconcile_counters', stdout=out)

        self.project.refresh_from_db()
        self.assertEqual(self.project.likes, 1)
        self.assertEqual(self.project.saves, 1)
        self.assertEqual(self.project.comments_count, 1)
        self.assertIn('repaired 1 project(s)', out.getvalue())

    def test_refreshes_author_name(self):
        Profile.objects.filter(pk='author').update(display_name='Ada Lovelace')

        call_command('reconcile_counters', stdout=StringIO())

        self.project.refresh_from_db()
        self.assertEqual(self.project.author_name, 'Ada Lovelace')

    def test_dry_run_writes_nothing(self):
        Project.objects.filter(pk=self.project.pk).update(likes=9)

        out = StringIO()
        call_command('reconcile_counters', '--dry-run', stdout=out)

        self.project.refresh_from_db()
        self.assertEqual(self.project.likes, 9)
        self.assertIn('would repair 1 project(s)', out.getvalue())

    def test_consistent_data_needs_no_repair(self):
        out = StringIO()
        call_command('reconcile_counters', stdout=out)

        self.assertIn('repaired 0 project(s)', out.getvalue())


class SeedDataTestCase(TestCase):

    def test_seeded_data_is_consistent(self):
        call_command('seed_data', users=4, projects=5, comments=6, stdout=StringIO())

        self.assertEqual(Profile.objects.count(), 4)
        self.assertEqual(Project.objects.count(), 5)
        self.assertEqual(ProjectComment.objects.count(), 6)
        self.assertEqual(Group.objects.count(), 3)

        out = StringIO()
        call_command('reconcile_counters', '--dry-run', stdout=out)
        self.assertIn('would repair 0 project(s)', out.getvalue())


class APITestCase(TestCase):
    """HTTP surface: identity headers, status codes and the error shape."""

    def setUp(self):
        self.client = APIClient()
        self.author = make_profile('author', 'Ada')
        self.reader = make_profile('reader', 'Rex')
        self.project = make_project(self.author, title='Rover')

    def as_user(self, uid):
        return {'HTTP_X_USER_ID': uid}

    def test_anonymous_write_is_401(self):
        response = self.client.post('/api/projects/', {'title': 't', 'description': 'd'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_anonymous_read_is_allowed(self):
        response = self.client.get('/api/projects/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['id'] for p in response.data], [self.project.id])

    def test_first_request_creates_profile(self):
        response = self.client.get(
            '/api/auth/whoami/',
            HTTP_X_USER_ID='newbie',
            HTTP_X_USER_EMAIL='newbie@example.com',
            HTTP_X_USER_NAME='Newbie'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['authenticated'])
        self.assertEqual(Profile.objects.get(uid='newbie').display_name, 'Newbie')

    def test_create_project(self):
        response = self.client.post(
            '/api/projects/',
            {'title': '  Drone  ', 'description': 'Quadcopter', 'category': 'technology'},
            format='json',
            **self.as_user('reader')
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['title'], 'Drone')
        self.assertEqual(response.data['author_id'], 'reader')
        self.assertEqual(response.data['author_name'], 'Rex')
        self.assertEqual(response.data['likes'], 0)

    def test_like_conflicts_are_409(self):
        url = f'/api/projects/{self.project.id}/like/'

        first = self.client.post(url, **self.as_user('reader'))
        second = self.client.post(url, **self.as_user('reader'))

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first.data, {'success': True, 'action': 'created', 'likes': 1})
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('error', second.data)

        removed = self.client.delete(url, **self.as_user('reader'))
        self.assertEqual(removed.data['likes'], 0)
        again = self.client.delete(url, **self.as_user('reader'))
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)

    def test_save_endpoint(self):
        url = f'/api/projects/{self.project.id}/save/'

        response = self.client.post(url, **self.as_user('reader'))

        self.assertEqual(response.data['saves'], 1)
        saved = self.client.get('/api/profile/saved/', **self.as_user('reader'))
        self.assertEqual([p['id'] for p in saved.data], [self.project.id])

    def test_missing_project_is_404(self):
        response = self.client.get('/api/projects/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn('error', response.data)

    def test_hidden_project_only_visible_to_author(self):
        Project.objects.filter(pk=self.project.pk).update(visible=False)
        url = f'/api/projects/{self.project.id}/'

        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(url, **self.as_user('reader')).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(url, **self.as_user('author')).status_code, status.HTTP_200_OK)

    def test_only_author_can_edit_or_delete(self):
        url = f'/api/projects/{self.project.id}/'

        patch_response = self.client.patch(url, {'title': 'Mine now'}, format='json', **self.as_user('reader'))
        delete_response = self.client.delete(url, **self.as_user('reader'))

        self.assertEqual(patch_response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(delete_response.status_code, status.HTTP_403_FORBIDDEN)

        ok = self.client.patch(url, {'visible': False}, format='json', **self.as_user('author'))
        self.assertEqual(ok.status_code, status.HTTP_200_OK)
        self.assertFalse(ok.data['visible'])

        gone = self.client.delete(url, **self.as_user('author'))
        self.assertEqual(gone.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Project.objects.filter(pk=self.project.pk).exists())

    def test_comments(self):
        url = f'/api/projects/{self.project.id}/comments/'

        blank = self.client.post(url, {'content': '   '}, format='json', **self.as_user('reader'))
        created = self.client.post(url, {'content': 'Great build'}, format='json', **self.as_user('reader'))
        listed = self.client.get(url)

        self.assertEqual(blank.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        self.assertEqual(created.data['author_name'], 'Rex')
        self.assertEqual([c['content'] for c in listed.data], ['Great build'])

    def test_follow_endpoints(self):
        url = '/api/users/author/follow/'

        followed = self.client.post(url, **self.as_user('reader'))
        repeated = self.client.post(url, **self.as_user('reader'))
        feed = self.client.get('/api/feed/', **self.as_user('reader'))
        profile = self.client.get('/api/users/author/')

        self.assertEqual(followed.data, {'following': True, 'changed': True})
        self.assertEqual(repeated.data, {'following': True, 'changed': False})
        self.assertEqual([p['id'] for p in feed.data], [self.project.id])
        self.assertEqual(profile.data['followers'], ['reader'])
        self.assertEqual(profile.data['reputation'], REPUTATION_FOLLOWER)

        unfollowed = self.client.delete(url, **self.as_user('reader'))
        self.assertEqual(unfollowed.data, {'following': False, 'changed': True})

    def test_self_follow_is_400(self):
        response = self.client.post('/api/users/author/follow/', **self.as_user('author'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_follow_unknown_user_is_404(self):
        response = self.client.post('/api/users/ghost/follow/', **self.as_user('reader'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_feed_requires_identity(self):
        response = self.client.get('/api/feed/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_ranking(self):
        services.like_project(self.project.id, 'reader')

        response = self.client.get('/api/ranking/', **self.as_user('reader'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['ranking'][0]['user_id'], 'author')
        self.assertEqual(response.data['ranking'][0]['reputation'], REPUTATION_LIKE)
        self.assertEqual(response.data['user_stats']['user_id'], 'reader')
        self.assertIsNone(self.client.get('/api/ranking/').data['user_stats'])

    def test_user_projects_owner_view(self):
        make_project(self.author, title='Draft', visible=False)

        public_view = self.client.get('/api/users/author/projects/')
        owner_view = self.client.get('/api/users/author/projects/', **self.as_user('author'))

        self.assertEqual(len(public_view.data), 1)
        self.assertNotIn('comment_total', public_view.data[0])
        self.assertEqual(len(owner_view.data), 2)
        self.assertIn('comment_total', owner_view.data[0])

    def test_own_profile_update(self):
        response = self.client.patch(
            '/api/profile/',
            {'headline': 'Hardware hacker', 'languages': ['English', 'Spanish']},
            format='json',
            **self.as_user('reader')
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['headline'], 'Hardware hacker')
        self.assertEqual(response.data['languages'], ['English', 'Spanish'])

    def test_user_actions(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.client.post(f'/api/projects/{self.project.id}/like/', **self.as_user('reader'))

        response = self.client.get('/api/users/reader/actions/')

        self.assertEqual([a['action_type'] for a in response.data], ['liked_project'])

    def test_group_flow(self):
        created = self.client.post(
            '/api/groups/',
            {'name': 'Robotics Club', 'description': 'Robots'},
            format='json',
            **self.as_user('author')
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        self.assertEqual(created.data['id'], 'robotics-club')
        self.assertEqual(created.data['members'], ['author'])

        joined = self.client.post('/api/groups/robotics-club/membership/', **self.as_user('reader'))
        self.assertEqual(joined.data, {'member': True, 'changed': True})

        doomed = make_project(self.author, title='Doomed')
        for project in (self.project, doomed):
            response = self.client.post(
                '/api/groups/robotics-club/projects/',
                {'project_id': project.id},
                format='json',
                **self.as_user('author')
            )
            self.assertEqual(response.status_code, status.HTTP_200_OK)
        services.delete_project(doomed.id)

        detail = self.client.get('/api/groups/robotics-club/')
        self.assertEqual(sorted(detail.data['associated_projects']), sorted([self.project.id, doomed.id]))
        self.assertEqual([p['id'] for p in detail.data['projects']], [self.project.id])
        self.assertEqual(len(detail.data['member_profiles']), 2)

        removed = self.client.delete(
            f'/api/groups/robotics-club/projects/{doomed.id}/', **self.as_user('author')
        )
        self.assertEqual(removed.status_code, status.HTTP_200_OK)
        self.assertEqual(removed.data['associated_projects'], [self.project.id])

    def test_group_discussions(self):
        group_repo.create_group(None, 'Robotics Club', 'Robots', 'author')
        group_repo.join_group('robotics-club', 'reader')

        started = self.client.post(
            '/api/groups/robotics-club/discussions/',
            {'title': 'Motors', 'content': 'Which ones?'},
            format='json',
            **self.as_user('reader')
        )
        self.assertEqual(started.status_code, status.HTTP_201_CREATED)

        url = f"/api/groups/robotics-club/discussions/{started.data['id']}/comments/"
        replied = self.client.post(url, {'content': 'Steppers'}, format='json', **self.as_user('author'))
        self.assertEqual(replied.status_code, status.HTTP_201_CREATED)

        self.assertEqual([c['content'] for c in self.client.get(url).data], ['Steppers'])
        self.assertEqual(self.client.get('/api/groups/nope/discussions/').status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(
            self.client.get('/api/groups/robotics-club/discussions/999999/comments/').status_code,
            status.HTTP_404_NOT_FOUND
        )


class GroupPermissionsAPITestCase(TestCase):
    """
    Group rules enforced at the HTTP layer:
    1. Discussions, replies and associations are for members only
    2. Members associate only projects they authored
    3. The project author or the group creator may remove an association
    """

    def setUp(self):
        self.client = APIClient()
        self.creator = make_profile('creator')
        self.member = make_profile('member')
        self.outsider = make_profile('outsider')
        group_repo.create_group(None, 'Robotics Club', 'Robots', 'creator')
        group_repo.join_group('robotics-club', 'member')
        self.creator_project = make_project(self.creator, title='Arm')
        self.member_project = make_project(self.member, title='Rover')

    def as_user(self, uid):
        return {'HTTP_X_USER_ID': uid}

    def associate(self, uid, project_id):
        return self.client.post(
            '/api/groups/robotics-club/projects/',
            {'project_id': project_id},
            format='json',
            **self.as_user(uid)
        )

    def test_non_member_cannot_start_discussion(self):
        response = self.client.post(
            '/api/groups/robotics-club/discussions/',
            {'title': 'Hi', 'content': 'Let me in'},
            format='json',
            **self.as_user('outsider')
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)
        self.assertEqual(Discussion.objects.count(), 0)

    def test_non_member_cannot_reply(self):
        discussion = group_repo.create_discussion('robotics-club', 'Motors', 'Which?', 'member', 'member')

        response = self.client.post(
            f'/api/groups/robotics-club/discussions/{discussion.id}/comments/',
            {'content': 'Steppers'},
            format='json',
            **self.as_user('outsider')
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(group_repo.list_discussion_comments('robotics-club', discussion.id), [])

    def test_non_member_cannot_associate(self):
        own = make_project(self.outsider, title='Mine')

        response = self.associate('outsider', own.id)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(group_repo.get_group('robotics-club').associated_projects, [])

    def test_member_associates_only_own_projects(self):
        others = self.associate('member', self.creator_project.id)
        missing = self.associate('member', 999999)
        own = self.associate('member', self.member_project.id)

        self.assertEqual(others.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(own.status_code, status.HTTP_200_OK)
        self.assertEqual(own.data['associated_projects'], [self.member_project.id])

    def test_project_author_can_remove_association(self):
        self.associate('member', self.member_project.id)
        url = f'/api/groups/robotics-club/projects/{self.member_project.id}/'

        forbidden = self.client.delete(url, **self.as_user('outsider'))
        removed = self.client.delete(url, **self.as_user('member'))

        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(removed.status_code, status.HTTP_200_OK)
        self.assertEqual(removed.data['associated_projects'], [])

    def test_group_creator_can_remove_any_association(self):
        self.associate('member', self.member_project.id)

        response = self.client.delete(
            f'/api/groups/robotics-club/projects/{self.member_project.id}/', **self.as_user('creator')
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['associated_projects'], [])


class AppWiringTestCase(TestCase):
    """The app must load through DRF settings and Django's system checks."""

    def test_authentication_class_resolves(self):
        from rest_framework.settings import api_settings
        from .authentication import IdentityHeaderAuthentication

        self.assertEqual(api_settings.DEFAULT_AUTHENTICATION_CLASSES, [IdentityHeaderAuthentication])

    def test_exception_handler_resolves(self):
        from rest_framework.settings import api_settings
        from .exceptions import custom_exception_handler

        self.assertIs(api_settings.EXCEPTION_HANDLER, custom_exception_handler)

    def test_authentication_module_does_not_import_repositories(self):
        """Loaded while rest_framework.views initialises, so it stays light."""
        from . import authentication

        self.assertFalse(hasattr(authentication, 'ensure_profile'))

    def test_system_check_passes(self):
        call_command('check', stdout=StringIO())
