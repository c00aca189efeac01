"""Tests for the in-process change feed"""

import threading

from salesflow.domain.enums import ChangeEventType
from salesflow.realtime.change_feed import ChangeFeed


def test_filter_and_event_type(feed):
    seen = []
    feed.subscribe("task_assignments", seen.append, event_type=ChangeEventType.INSERT, filter={"user_id": "u1"})

    feed.publish_change("task_assignments", ChangeEventType.INSERT, new={"id": "1", "user_id": "u1"})
    feed.publish_change("task_assignments", ChangeEventType.INSERT, new={"id": "2", "user_id": "u2"})
    feed.publish_change("task_assignments", ChangeEventType.DELETE, old={"id": "1", "user_id": "u1"})
    feed.publish_change("task_comments", ChangeEventType.INSERT, new={"id": "3", "user_id": "u1"})

    assert [e.row["id"] for e in seen] == ["1"]


def test_update_leaving_the_filter_is_delivered(feed):
    seen = []
    feed.subscribe("commission_flow_tasks", seen.append, filter={"assignee_id": "u1"})

    feed.publish_change(
        "commission_flow_tasks", ChangeEventType.UPDATE,
        old={"id": "t", "assignee_id": "u1"}, new={"id": "t", "assignee_id": None}
    )

    assert len(seen) == 1
    assert seen[0].new["assignee_id"] is None


def test_failing_subscriber_does_not_block_others(feed):
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    feed.subscribe("reservation_flows", broken)
    feed.subscribe("reservation_flows", seen.append)

    feed.publish_change("reservation_flows", ChangeEventType.UPDATE, new={"id": "f"})

    assert len(seen) == 1


def test_unsubscribe(feed):
    seen = []
    subscription = feed.subscribe("collapsed_tasks", seen.append)
    assert feed.subscriber_count("collapsed_tasks") == 1

    feed.unsubscribe(subscription)
    feed.unsubscribe(subscription)
    feed.publish_change("collapsed_tasks", ChangeEventType.INSERT, new={"id": "c"})

    assert seen == []
    assert feed.subscriber_count() == 0


def test_slow_subscriber_is_bounded_by_delivery_timeout():
    feed = ChangeFeed(delivery_timeout_seconds=0.05, max_workers=1)
    release = threading.Event()
    try:
        feed.subscribe("profiles", lambda event: release.wait(2))
        feed.publish_change("profiles", ChangeEventType.UPDATE, new={"id": "p"})
        assert not release.is_set()
    finally:
        release.set()
        feed.close()
