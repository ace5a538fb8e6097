from group_scheduler.scheduling.timeline import (
    build_timeline,
    clip_to_window,
    merge_busy_periods,
    parse_event_time,
)
from group_scheduler.scheduling.first_fit import (
    find_first_available_time,
    find_first_fit,
)
from group_scheduler.scheduling.ranking import (
    find_free_slots,
    find_partial_availability,
)
from group_scheduler.scheduling.preferences import (
    BestTimeResult,
    find_best_time,
    parse_preference,
)

__all__ = [
    "build_timeline",
    "clip_to_window",
    "merge_busy_periods",
    "parse_event_time",
    "find_first_available_time",
    "find_first_fit",
    "find_free_slots",
    "find_partial_availability",
    "BestTimeResult",
    "find_best_time",
    "parse_preference",
]
