"""Tests for the analytics aggregator."""
from datetime import datetime, timedelta

import pytest
from taskflow_core import models
from taskflow_core.analytics import compute_analytics, completion_rate


class TestCompletionRate:
    @pytest.mark.parametrize("completed,total,expected", [
        (4, 10, 40),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),  # 12.5 rounds half up
        (0, 5, 0),
        (5, 5, 100),
        (0, 0, 0),
    ])
    def test_rounding(self, completed, total, expected):
        assert completion_rate(completed, total) == expected


class TestComputeAnalytics:
    def test_ten_tasks_four_completed(self, db, make_user, make_task):
        """10 tasks with 4 completed gives a 40% completion rate."""
        alice = make_user("alice@example.com")
        for _ in range(4):
            make_task(alice, status=models.TaskStatus.COMPLETED)
        for _ in range(6):
            make_task(alice)

        analytics = compute_analytics(db, alice)
        assert analytics.total_tasks == 10
        assert analytics.completed_tasks == 4
        assert analytics.completion_rate == 40

    def test_distributions_and_overdue(self, db, make_user, make_task):
        alice = make_user("alice@example.com")
        past = datetime.utcnow() - timedelta(days=2)
        make_task(alice, status=models.TaskStatus.IN_PROGRESS, priority=models.TaskPriority.HIGH, due_date=past)
        make_task(alice, status=models.TaskStatus.COMPLETED, priority=models.TaskPriority.HIGH, due_date=past)
        make_task(alice, priority=models.TaskPriority.LOW)

        analytics = compute_analytics(db, alice)
        # Completed tasks are never overdue
        assert analytics.overdue_tasks == 1
        assert analytics.status_distribution.pending == 1
        assert analytics.status_distribution.in_progress == 1
        assert analytics.status_distribution.completed == 1
        assert analytics.priority_distribution.high == 2
        assert analytics.priority_distribution.medium == 0
        assert analytics.priority_distribution.low == 1

    def test_top_categories(self, db, make_user, make_task):
        alice = make_user("alice@example.com")
        for category, count in [("ops", 3), ("docs", 2), ("api", 2), ("ui", 1), ("qa", 1), ("web", 1), ("", 4)]:
            for _ in range(count):
                make_task(alice, category=category)

        top = compute_analytics(db, alice).top_categories
        assert [(c.category, c.count) for c in top] == [
            ("ops", 3),
            ("api", 2),
            ("docs", 2),
            ("qa", 1),
            ("ui", 1),
        ]

    def test_scope_excludes_foreign_tasks(self, db, make_user, make_task):
        alice = make_user("alice@example.com")
        bob = make_user("bob@example.com")
        admin = make_user("admin@example.com", models.UserRole.ADMIN)
        make_task(alice)
        make_task(bob)
        make_task(bob, [bob, alice])

        assert compute_analytics(db, alice).total_tasks == 2
        assert compute_analytics(db, admin).total_tasks == 3

    def test_no_tasks(self, db, make_user):
        analytics = compute_analytics(db, make_user("alice@example.com"))
        assert analytics.total_tasks == 0
        assert analytics.completion_rate == 0
        assert analytics.top_categories == []
