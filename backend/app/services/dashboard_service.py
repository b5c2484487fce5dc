"""Dashboard data cards built from the repository aggregates."""

from datetime import datetime

from backend.app.core.settings import get_settings
from backend.app.crud.crud_activity_log import activity_log_crud
from backend.app.crud.crud_contact import contact_crud
from backend.app.crud.crud_deal import deal_crud
from backend.app.crud.crud_event import event_crud
from backend.app.crud.crud_interaction import interaction_crud
from backend.app.crud.crud_reminder import reminder_crud

DATA_TYPES = ("contacts", "interactions", "deals", "calendar", "reminders")


def get_contact_stats(db) -> dict:
    return {
        "total": contact_crud.count(db),
        "by_status": contact_crud.count_by_status(db),
        "by_source": contact_crud.count_by_source(db),
        "by_owner": contact_crud.count_by_owner(db, role_id=get_settings().role_agent),
    }


def get_interaction_stats(db, *, user_id: int, now: datetime) -> dict:
    return {
        "by_type": interaction_crud.count_by_type(db, user_id=user_id, period="month", now=now),
        "by_status": interaction_crud.count_by_status(db, user_id=user_id),
        "by_month": interaction_crud.count_by_month(db, year=now.year, user_id=user_id),
    }


def get_deal_stats(db, *, now: datetime) -> dict:
    return {
        "by_stage": deal_crud.sum_by_stage(db),
        "forecast": deal_crud.get_forecast(db),
        "won_this_month": deal_crud.get_won_value(db, period="this_month", today=now.date()),
        "won_this_year": deal_crud.get_won_value(db, period="this_year", today=now.date()),
    }


def get_calendar_stats(db, *, user_id: int, now: datetime) -> dict:
    return {"by_weekday": event_crud.count_by_weekday(db, user_id=user_id, weeks=4, now=now)}


def get_reminder_stats(db, *, user_id: int) -> dict:
    return {"by_status": reminder_crud.count_by_status(db, user_id=user_id)}


def get_dashboard_data(db, *, data_type: str, user_id: int, now: datetime) -> dict:
    """Chart data for one card, or for every card when `data_type` is "all"."""
    builders = {
        "contacts": lambda: get_contact_stats(db),
        "interactions": lambda: get_interaction_stats(db, user_id=user_id, now=now),
        "deals": lambda: get_deal_stats(db, now=now),
        "calendar": lambda: get_calendar_stats(db, user_id=user_id, now=now),
        "reminders": lambda: get_reminder_stats(db, user_id=user_id),
    }
    if data_type == "all":
        return {name: build() for name, build in builders.items()}
    if data_type not in builders:
        raise ValueError(f"Unknown dashboard data type: {data_type}")
    return {data_type: builders[data_type]()}


def get_dashboard_summary(db, *, user_id: int, now: datetime) -> dict:
    summary = get_dashboard_data(db, data_type="all", user_id=user_id, now=now)
    summary["recent_contacts"] = contact_crud.get_recent(db, limit=5)
    summary["upcoming_interactions"] = interaction_crud.get_upcoming(db, user_id=user_id, limit=5, now=now)
    summary["recent_interactions"] = interaction_crud.get_recent_completed(db, user_id=user_id, limit=5)
    summary["upcoming_events"] = event_crud.get_upcoming(db, user_id=user_id, limit=5, now=now)
    summary["upcoming_reminders"] = reminder_crud.get_upcoming(db, user_id=user_id, limit=5, now=now)
    summary["overdue_reminders"] = reminder_crud.get_overdue(db, user_id=user_id, now=now)
    summary["recent_activity"] = activity_log_crud.get_recent(db, limit=10, user_id=user_id)
    return summary
