from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from dm_service.domain.value_objects.timeline import MessageTimeline
from tests.conftest import BASE_TIME, make_message


def test_add_is_idempotent_by_id():
    conv_id = uuid.uuid4()
    timeline = MessageTimeline(conv_id)
    msg = make_message(conv_id)

    assert timeline.add(msg) is True
    assert timeline.add(msg) is False
    assert len(timeline) == 1
    assert msg.id in timeline


def test_keeps_created_at_then_id_order():
    conv_id = uuid.uuid4()
    timeline = MessageTimeline(conv_id)
    late = make_message(conv_id, created_at=BASE_TIME + timedelta(seconds=10))
    same_a = make_message(conv_id, created_at=BASE_TIME)
    same_b = make_message(conv_id, created_at=BASE_TIME)

    timeline.merge([late, same_a, same_b])

    ties = sorted([same_a, same_b], key=lambda m: m.id)
    assert timeline.messages == [*ties, late]


def test_merge_counts_only_new():
    conv_id = uuid.uuid4()
    timeline = MessageTimeline(conv_id)
    live = [make_message(conv_id, created_at=BASE_TIME + timedelta(seconds=i)) for i in range(3)]
    timeline.merge(live[1:])

    assert timeline.merge(live) == 1
    assert timeline.messages == live


def test_rejects_message_from_other_conversation():
    timeline = MessageTimeline(uuid.uuid4())

    with pytest.raises(ValueError):
        timeline.add(make_message(uuid.uuid4()))


def test_by_day_groups_consecutive_days():
    conv_id = uuid.uuid4()
    timeline = MessageTimeline(conv_id)
    day1 = [make_message(conv_id, created_at=BASE_TIME + timedelta(hours=h)) for h in (0, 1)]
    day2 = [make_message(conv_id, created_at=BASE_TIME + timedelta(days=1))]
    timeline.merge(day2 + day1)

    groups = timeline.by_day()

    assert [d for d, _ in groups] == [BASE_TIME.date(), (BASE_TIME + timedelta(days=1)).date()]
    assert groups[0][1] == day1
    assert groups[1][1] == day2
