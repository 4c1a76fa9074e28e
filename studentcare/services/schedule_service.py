"""
Schedule helpers: time-string parsing and current/upcoming class selection
over the schedule JSON the vision model produced.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import re

DAYS_OF_WEEK = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

DEFAULT_CLASS_MINUTES = 60

_TIME_RE = re.compile(r"(\d+):?(\d*)\s*(am|pm)?", re.IGNORECASE)
_RANGE_SPLIT_RE = re.compile(r"\s*(?:-|–|—|\bto\b)\s*", re.IGNORECASE)


def _parse_time(text: str) -> Tuple[Optional[int], Optional[int], Optional[str]]:
    match = _TIME_RE.search(text or "")
    if not match:
        return None, None, None
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    period = match.group(3).lower() if match.group(3) else None
    return hours, minutes, period


def _to_minutes(hours: int, minutes: int, period: Optional[str]) -> int:
    if period == "pm" and hours != 12:
        hours += 12
    if period == "am" and hours == 12:
        hours = 0
    return hours * 60 + minutes


def parse_time_to_minutes(text: str) -> int:
    """'4:00PM' -> 960, '09:30' -> 570, '12am' -> 0. Unparseable text is 0."""
    hours, minutes, period = _parse_time(text)
    if hours is None:
        return 0
    return _to_minutes(hours, minutes, period)


def split_time_range(text: str) -> Tuple[str, Optional[str]]:
    """'4:00PM - 5:00PM' -> ('4:00PM', '5:00PM'); '9am' -> ('9am', None)"""
    parts = [p for p in _RANGE_SPLIT_RE.split((text or "").strip(), maxsplit=1) if p]
    if not parts:
        return "", None
    return parts[0], parts[1] if len(parts) > 1 else None


def class_window(entry: Dict[str, Any]) -> Tuple[int, int]:
    """Start/end of a class in minutes since midnight"""
    start_text, end_text = split_time_range(str(entry.get("time") or ""))
    start = parse_time_to_minutes(start_text)
    if not end_text:
        return start, start + DEFAULT_CLASS_MINUTES

    end = parse_time_to_minutes(end_text)
    s_hours, s_minutes, s_period = _parse_time(start_text)
    _, _, e_period = _parse_time(end_text)
    # "4 - 5PM": the start borrows the end's am/pm when that keeps the range ordered
    if s_hours is not None and s_period is None and e_period is not None:
        borrowed = _to_minutes(s_hours, s_minutes, e_period)
        if borrowed <= end:
            start = borrowed
    return start, end


def normalize_schedule(data: Any) -> Dict[str, List[Dict[str, Any]]]:
    """Keep day-name keys only, capitalised ('monday' -> 'Monday'); non-lists become []"""
    schedule: Dict[str, List[Dict[str, Any]]] = {}
    if not isinstance(data, dict):
        return schedule
    for key, value in data.items():
        normalized = str(key).strip().capitalize()
        if normalized in DAYS_OF_WEEK:
            schedule[normalized] = [c for c in value if isinstance(c, dict)] if isinstance(value, list) else []
    return schedule


def _minutes_of(now: datetime) -> int:
    return now.hour * 60 + now.minute


def classes_for_day(schedule: Dict[str, List[Dict[str, Any]]], day: str) -> List[Dict[str, Any]]:
    return sorted(schedule.get(day, []), key=lambda c: class_window(c)[0])


def current_class(classes: List[Dict[str, Any]], now: datetime) -> Optional[Dict[str, Any]]:
    minutes = _minutes_of(now)
    for entry in classes:
        start, end = class_window(entry)
        if start <= minutes < end:
            return entry
    return None


def upcoming_classes(schedule: Dict[str, List[Dict[str, Any]]], now: datetime) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """
    Classes still to start today, or else every class of the next day that has any.

    Returns the classes and the day they fall on (None when the week is empty).
    """
    today = now.strftime("%A")
    minutes = _minutes_of(now)
    later_today = [c for c in classes_for_day(schedule, today) if class_window(c)[0] > minutes]
    if later_today:
        return later_today, today

    today_index = DAYS_OF_WEEK.index(today)
    for offset in range(1, len(DAYS_OF_WEEK) + 1):
        day = DAYS_OF_WEEK[(today_index + offset) % len(DAYS_OF_WEEK)]
        day_classes = classes_for_day(schedule, day)
        if day_classes:
            return day_classes, day
    return [], None


def build_overview(structured_data: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Today's classes, the class in progress and what comes next"""
    now = now or datetime.now()
    schedule = normalize_schedule(structured_data)
    today = now.strftime("%A")
    today_classes = classes_for_day(schedule, today)
    upcoming, upcoming_day = upcoming_classes(schedule, now)
    return {
        "today": today,
        "todayClasses": today_classes,
        "currentClass": current_class(today_classes, now),
        "upcomingClasses": upcoming,
        "upcomingDay": upcoming_day,
    }


def student_context(structured_data: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Schedule facts handed to the counselor prompt"""
    now = now or datetime.now()
    schedule = normalize_schedule(structured_data)
    today_classes = classes_for_day(schedule, now.strftime("%A"))
    if not today_classes:
        return {}

    minutes = _minutes_of(now)
    next_class = next((c for c in today_classes if class_window(c)[0] > minutes), None)
    return {
        "upcomingClasses": len(today_classes),
        "nextClass": next_class or today_classes[0],
    }
