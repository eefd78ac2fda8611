"""Unit tests for app.utils.task_status and app.utils.recurrence."""

from datetime import datetime, timedelta
from types import SimpleNamespace

from app.constants.constants import RecurrencePattern, TaskStatus
from app.utils.recurrence import advance_recurrence, next_due_date
from app.utils.task_status import (
    apply_save_rules,
    effective_status,
    progress_percent,
    time_remaining_days,
)

NOW = datetime(2024, 6, 15, 12, 0, 0)


def make_task(**overrides):
    fields = dict(
        status=TaskStatus.in_progress,
        due=NOW + timedelta(days=2),
        created_at=NOW - timedelta(days=1),
        completed_at=None,
        completion_time=None,
        actual_time=0,
        subtasks=[],
        time_entries=[],
        recurring_enabled=False,
        recurring_pattern=None,
        recurring_interval=1,
        recurring_end_date=None,
        recurring_next_due=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestEffectiveStatus:

    def test_in_progress_before_due(self):
        assert effective_status(make_task(), NOW) == TaskStatus.in_progress

    def test_due_exactly_now_is_not_failed(self):
        assert effective_status(make_task(due=NOW), NOW) == TaskStatus.in_progress

    def test_in_progress_past_due_reads_failed(self):
        task = make_task(due=NOW - timedelta(minutes=1))
        assert effective_status(task, NOW) == TaskStatus.failed
        assert task.status == TaskStatus.in_progress

    def test_completed_stays_completed_past_due(self):
        task = make_task(status=TaskStatus.completed, due=NOW - timedelta(days=3))
        assert effective_status(task, NOW) == TaskStatus.completed

    def test_stored_failed_in_future_stays_failed(self):
        task = make_task(status=TaskStatus.failed)
        assert effective_status(task, NOW) == TaskStatus.failed

    def test_accepts_raw_string_status(self):
        task = make_task(status="in-progress", due=NOW - timedelta(days=1))
        assert effective_status(task, NOW) == TaskStatus.failed


class TestDerivedFields:

    def test_progress_without_subtasks(self):
        assert progress_percent(make_task()) == 0
        assert progress_percent(make_task(status=TaskStatus.completed)) == 100

    def test_progress_rounds_subtask_share(self):
        subtasks = [SimpleNamespace(completed=True), SimpleNamespace(completed=False), SimpleNamespace(completed=False)]
        assert progress_percent(make_task(subtasks=subtasks)) == 33

    def test_time_remaining(self):
        assert time_remaining_days(make_task(), NOW) == 2
        assert time_remaining_days(make_task(due=NOW - timedelta(days=2)), NOW) == -2
        assert time_remaining_days(make_task(status=TaskStatus.completed), NOW) is None


class TestApplySaveRules:

    def test_unchanged_status_materializes_failed(self):
        task = make_task(due=NOW - timedelta(hours=1))
        apply_save_rules(task, status_changed=False, now=NOW)
        assert task.status == TaskStatus.failed

    def test_unchanged_status_restores_in_progress_when_due_moves_out(self):
        task = make_task(status=TaskStatus.failed, due=NOW + timedelta(days=1))
        apply_save_rules(task, status_changed=False, now=NOW)
        assert task.status == TaskStatus.in_progress

    def test_completed_is_never_rederived(self):
        task = make_task(status=TaskStatus.completed, due=NOW - timedelta(days=5), completed_at=NOW)
        apply_save_rules(task, status_changed=False, now=NOW)
        assert task.status == TaskStatus.completed

    def test_completing_sets_bookkeeping(self):
        entries = [SimpleNamespace(duration=30), SimpleNamespace(duration=15)]
        task = make_task(status=TaskStatus.completed, time_entries=entries)
        apply_save_rules(task, status_changed=True, now=NOW)
        assert task.completed_at == NOW
        assert task.completion_time == 24 * 60
        assert task.actual_time == 45

    def test_explicit_status_wins_over_due_date(self):
        task = make_task(status=TaskStatus.in_progress, due=NOW - timedelta(days=1))
        apply_save_rules(task, status_changed=True, now=NOW)
        assert task.status == TaskStatus.in_progress

    def test_reopening_clears_completion(self):
        task = make_task(status=TaskStatus.in_progress, completed_at=NOW, completion_time=10)
        apply_save_rules(task, status_changed=True, now=NOW)
        assert task.completed_at is None
        assert task.completion_time is None

    def test_completing_recurring_task_schedules_next(self):
        task = make_task(
            status=TaskStatus.completed,
            recurring_enabled=True,
            recurring_pattern=RecurrencePattern.weekly,
        )
        apply_save_rules(task, status_changed=True, now=NOW)
        assert task.recurring_next_due == task.due + timedelta(weeks=1)


class TestRecurrence:

    def test_daily_and_weekly_steps(self):
        due = datetime(2024, 1, 10, 9, 0)
        assert next_due_date(due, RecurrencePattern.daily, 3) == datetime(2024, 1, 13, 9, 0)
        assert next_due_date(due, "weekly", 2) == datetime(2024, 1, 24, 9, 0)

    def test_monthly_clamps_to_month_end(self):
        assert next_due_date(datetime(2024, 1, 31), RecurrencePattern.monthly) == datetime(2024, 2, 29)
        assert next_due_date(datetime(2023, 1, 31), RecurrencePattern.monthly) == datetime(2023, 2, 28)

    def test_yearly_from_leap_day(self):
        assert next_due_date(datetime(2024, 2, 29), RecurrencePattern.yearly) == datetime(2025, 2, 28)

    def test_interval_below_one_is_treated_as_one(self):
        assert next_due_date(datetime(2024, 1, 1), RecurrencePattern.daily, 0) == datetime(2024, 1, 2)

    def test_stops_after_end_date(self):
        task = make_task(
            due=datetime(2024, 1, 10),
            recurring_enabled=True,
            recurring_pattern=RecurrencePattern.monthly,
            recurring_end_date=datetime(2024, 2, 1),
        )
        assert advance_recurrence(task) is False
        assert task.recurring_enabled is False
        assert task.recurring_next_due is None

    def test_disabled_recurrence_is_left_alone(self):
        task = make_task()
        assert advance_recurrence(task) is False
        assert task.recurring_next_due is None
