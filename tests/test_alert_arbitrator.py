"""Tests for announcement selection and alarm level arbitration."""

from __future__ import annotations

import itertools

from vision.arbitration import (
    AlarmState,
    AlertArbitrator,
    AlertConfig,
    resolve_nearest_distance,
)
from vision.detections import Detection, Position, ScoredObject
from vision.distance import FAR_DISTANCE_M
from vision.perception import PerceptionFilter


def _obj(label: str, distance: float, position: Position = Position.FRONT) -> ScoredObject:
    return ScoredObject(
        detection=Detection(label=label, confidence=0.9, bbox=(0.0, 0.0, 10.0, 10.0)),
        distance_m=distance,
        position=position,
    )


def test_person_at_reference_width_raises_alert_and_is_announced() -> None:
    perception = PerceptionFilter(threshold=0.3)
    detections = [Detection(label="person", confidence=0.9, bbox=(0, 0, 160, 100))]

    objects = perception.filter(detections, frame_width=160)
    decision = AlertArbitrator().arbitrate(objects)

    assert objects[0].distance_m == 0.45
    assert decision.alarm is AlarmState.ALERT
    assert decision.announcements == ["person front at 0.5 meters"]
    assert decision.nearest_distance_m == 0.45


def test_low_confidence_person_is_safe_and_silent() -> None:
    perception = PerceptionFilter(threshold=0.3)
    detections = [Detection(label="person", confidence=0.2, bbox=(0, 0, 160, 100))]

    objects = perception.filter(detections, frame_width=160)
    decision = AlertArbitrator().arbitrate(objects)

    assert objects == []
    assert decision.alarm is AlarmState.SAFE
    assert decision.announcements == []
    assert decision.nearest_distance_m == FAR_DISTANCE_M


def test_never_more_than_two_announcements_and_nearest_win() -> None:
    objects = [_obj("chair", d) for d in (3.4, 0.8, 2.2, 1.1, 3.0)]

    decision = AlertArbitrator().arbitrate(objects)

    assert decision.announcements == [
        "chair front at 0.8 meters",
        "chair front at 1.1 meters",
    ]
    assert decision.utterance == "chair front at 0.8 meters, chair front at 1.1 meters"


def test_objects_beyond_announce_distance_are_not_announced() -> None:
    decision = AlertArbitrator().arbitrate([_obj("bench", 3.51), _obj("bench", FAR_DISTANCE_M)])

    assert decision.announcements == []
    assert decision.alarm is AlarmState.SAFE


def test_far_sentinel_objects_never_alert() -> None:
    decision = AlertArbitrator().arbitrate([_obj("car", FAR_DISTANCE_M), _obj("person", FAR_DISTANCE_M)])

    assert decision.alarm is AlarmState.SAFE
    assert decision.announcements == []


def test_alert_iff_hazard_within_critical_distance_for_all_permutations() -> None:
    arbitrator = AlertArbitrator(config=AlertConfig(critical_distance_m=2.0))
    pool = [
        _obj("person", 2.5),
        _obj("chair", 0.4),
        _obj("bicycle", 2.0),
        _obj("dog", 1.0, Position.LEFT),
        _obj("truck", 5.0, Position.RIGHT),
    ]

    for count in range(len(pool) + 1):
        for combo in itertools.permutations(pool, count):
            decision = arbitrator.arbitrate(list(combo))
            expected = any(
                arbitrator.class_table.is_hazard(obj.label) and obj.distance_m <= 2.0 for obj in combo
            )
            assert (decision.alarm is AlarmState.ALERT) is expected
            assert len(decision.announcements) <= 2


def test_non_hazard_close_object_is_announced_but_safe() -> None:
    decision = AlertArbitrator().arbitrate([_obj("chair", 0.3, Position.LEFT)])

    assert decision.alarm is AlarmState.SAFE
    assert decision.announcements == ["chair left at 0.3 meters"]
    assert decision.nearest_hazard_distance_m is None


def test_nearest_hazard_distance_ignores_closer_landmarks() -> None:
    decision = AlertArbitrator().arbitrate([_obj("cup", 0.5), _obj("car", 1.5)])

    assert decision.nearest_distance_m == 0.5
    assert decision.nearest_hazard_distance_m == 1.5
    assert decision.object_count == 2


def test_nearest_distance_fallback_only_for_alarm_without_objects() -> None:
    assert resolve_nearest_distance([], AlarmState.ALERT) == 1.5
    assert resolve_nearest_distance([], AlarmState.ALERT, fallback_distance_m=0.7) == 0.7
    assert resolve_nearest_distance([], AlarmState.SAFE) == FAR_DISTANCE_M
    assert resolve_nearest_distance([_obj("cup", 3.0), _obj("cup", 2.0)], AlarmState.SAFE) == 2.0


def test_empty_cycle_is_safe_and_does_not_reach_fallback() -> None:
    decision = AlertArbitrator().arbitrate([])

    assert decision.alarm is AlarmState.SAFE
    assert decision.nearest_distance_m == FAR_DISTANCE_M


def test_alert_config_from_config() -> None:
    config = AlertConfig.from_config(
        {"alerts": {"announce_distance_m": 5, "critical_distance_m": 1.2, "max_announcements": 1}}
    )

    assert config == AlertConfig(
        announce_distance_m=5.0,
        critical_distance_m=1.2,
        max_announcements=1,
        fallback_distance_m=1.5,
    )
