"""
Request Grouping Engine

Folds a flat list of lesson requests into the units a tutor reviews: one
view per request_group_id (a combined session) and one per standalone
request. The function is pure; the same input list always yields the
same output.
"""

from typing import Iterable

from scheduling.models.requests import (
    GroupedRequestView,
    LessonRequestVariant,
    is_reschedule,
)


def group_requests(requests: Iterable[LessonRequestVariant]) -> list[GroupedRequestView]:
    """
    Group requests into reviewable views, newest first.

    The first member of each group in input order supplies the shared
    fields. Members whose date, time or duration differ from it are kept
    in the group and flagged with has_divergent_members.
    """
    buckets: dict[str, list[LessonRequestVariant]] = {}
    order: list[str] = []
    for request in requests:
        key = request.request_group_id or request.id
        if key not in buckets:
            buckets[key] = []
            order.append(key)
        buckets[key].append(request)

    views = [_build_view(key, buckets[key]) for key in order]
    # sorted() is stable, so equal timestamps keep first-seen order
    return sorted(views, key=lambda v: v.created_at, reverse=True)


def _build_view(key: str, members: list[LessonRequestVariant]) -> GroupedRequestView:
    first = members[0]
    request_type = "reschedule" if is_reschedule(first) else "dropin"
    divergent = any(
        (m.preferred_date, m.preferred_time, m.preferred_duration)
        != (first.preferred_date, first.preferred_time, first.preferred_duration)
        for m in members[1:]
    )
    return GroupedRequestView(
        id=key,
        requests=list(members),
        is_combined_session=len(members) > 1,
        student_names=[m.student_name for m in members],
        subjects=[m.subject for m in members],
        preferred_date=first.preferred_date,
        preferred_time=first.preferred_time,
        preferred_duration=first.preferred_duration,
        notes=first.notes,
        status=first.status,
        request_type=request_type,
        tutor_response=first.tutor_response,
        created_at=first.created_at,
        has_divergent_members=divergent,
    )
