from datetime import datetime, time, timedelta

from django.utils import timezone

PERIODS = ("today", "this_week", "this_month", "last_month", "last_3_months", "this_year", "all_time")


def _start_of(day):
    return timezone.make_aware(datetime.combine(day, time.min))


def _end_of(day):
    return timezone.make_aware(datetime.combine(day, time.max))


def get_date_range(period: str):
    today = timezone.localdate()
    end_date = _end_of(today)

    if period == "today":
        start_date = _start_of(today)
    elif period == "this_week":
        start_date = _start_of(today - timedelta(days=today.weekday()))
    elif period == "this_month":
        start_date = _start_of(today.replace(day=1))
    elif period == "last_month":
        last_day_last_month = today.replace(day=1) - timedelta(days=1)
        start_date = _start_of(last_day_last_month.replace(day=1))
        end_date = _end_of(last_day_last_month)
    elif period == "last_3_months":
        start_date = _start_of((today.replace(day=1) - timedelta(days=60)).replace(day=1))
    elif period == "this_year":
        start_date = _start_of(today.replace(month=1, day=1))
    else:
        start_date = timezone.make_aware(datetime(1970, 1, 1))

    return start_date, end_date
