"""Calendar: events of the signed-in user plus their planned interactions."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from fastapi import Response

from backend.app.core.controller import GENERIC_ERROR_MESSAGE, Controller
from backend.app.core.router import RouteParams, action
from backend.app.core.time import parse_db_datetime, parse_datetime_input
from backend.app.crud.crud_contact import contact_crud
from backend.app.crud.crud_event import EVENT_FIELDS, event_crud
from backend.app.crud.crud_interaction import interaction_crud
from backend.app.crud.crud_reminder import reminder_crud
from backend.app.schemas.event import EventForm
from backend.app.schemas.forms import validate_form
from backend.app.services.event_reminder_service import generate_event_reminders

logger = logging.getLogger(__name__)

EVENT_NOT_FOUND = "Event not found"


def month_range(now: datetime) -> Tuple[datetime, datetime]:
    start = datetime(now.year, now.month, 1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(seconds=1)


class EventsController(Controller):
    def _get_event(self, params: RouteParams) -> Optional[Dict[str, Any]]:
        event_id = params.get_int(0)
        if event_id is None:
            return None
        return event_crud.get(self.db, event_id=event_id, user_id=self.user_id)

    def _form_options(self) -> Dict[str, Any]:
        return {"contacts": contact_crud.get_multi(self.db, limit=None, sort_by="last_name", direction="ASC")}

    def _range(self) -> Tuple[datetime, datetime]:
        default_start, default_end = month_range(parse_db_datetime(self.ctx.now))
        start = parse_datetime_input(self.query_get("start")) or default_start
        end = parse_datetime_input(self.query_get("end")) or default_end
        if end < start:
            start, end = end, start
        return start, end

    @action()
    def index(self, params: RouteParams) -> Response:
        start, end = self._range()
        events = event_crud.get_multi(self.db, user_id=self.user_id, start=start, end=end)
        interactions = interaction_crud.get_calendar(self.db, user_id=self.user_id, start=start, end=end)
        if self.is_ajax():
            return self.json({"success": True, "events": events, "interactions": interactions})
        return self.render(
            "events/index",
            {"title": "Calendar", "events": events, "interactions": interactions, "start": start, "end": end},
        )

    @action()
    def add(self, params: RouteParams) -> Response:
        if not self.is_post():
            empty = {field: "" for field in EVENT_FIELDS}
            empty.update({"all_day": False, "color": "#4F46E5", "start_time": self.query_get("date", "")})
            return self.render("events/add", {"title": "Add Event", **empty, **self._form_options()})

        if not self.check_csrf():
            return self.reject_csrf("events/add")
        data = self.form_data(EVENT_FIELDS)
        form, errors = validate_form(EventForm, data)
        if errors:
            if self.is_ajax():
                return self.json({"success": False, "errors": errors}, 400)
            return self.render("events/add", {"title": "Add Event", **data, **errors, **self._form_options()})

        event_id = event_crud.create(self.db, data=form.model_dump(), user_id=self.user_id)
        self.log("add_event", "event", event_id, f"Added event: {form.title}")
        if self.is_ajax():
            return self.json({"success": True, "event": event_crud.get(self.db, event_id=event_id)})
        self.set_flash("event_success", "Event added successfully")
        return self.redirect("events")

    @action()
    def edit(self, params: RouteParams) -> Response:
        event = self._get_event(params)
        if event is None:
            return self.not_found("event_error", EVENT_NOT_FOUND, "events")
        title = f"Edit {event['title']}"
        if not self.is_post():
            current = {field: event.get(field) for field in EVENT_FIELDS}
            return self.render(
                "events/edit",
                {
                    "title": title,
                    "id": event["id"],
                    **current,
                    "reminders": reminder_crud.get_related(self.db, related_type="event", related_id=event["id"]),
                    **self._form_options(),
                },
            )

        if not self.check_csrf():
            return self.reject_csrf(f"events/edit/{event['id']}")
        data = self.form_data(EVENT_FIELDS)
        form, errors = validate_form(EventForm, data)
        if errors:
            return self.render("events/edit", {"title": title, "id": event["id"], **data, **errors, **self._form_options()})

        if not event_crud.update(self.db, event_id=event["id"], user_id=self.user_id, data=form.model_dump()):
            self.set_flash("event_error", GENERIC_ERROR_MESSAGE, "alert alert-danger")
            return self.redirect("events")
        self.log("update_event", "event", event["id"], f"Updated event: {form.title}")
        self.set_flash("event_success", "Event updated successfully")
        return self.redirect("events")

    @action()
    def delete(self, params: RouteParams) -> Response:
        if not self.is_post():
            return self.redirect("events")
        if not self.check_csrf():
            if self.is_ajax():
                return self.error("Security validation failed", 403)
            return self.reject_csrf("events")
        event = self._get_event(params)
        if event is None:
            return self.error(EVENT_NOT_FOUND, 404) if self.is_ajax() else self.not_found("event_error", EVENT_NOT_FOUND, "events")
        deleted = event_crud.delete(self.db, event_id=event["id"], user_id=self.user_id)
        if deleted:
            self.log("delete_event", "event", event["id"], f"Deleted event: {event['title']}")
        if self.is_ajax():
            return self.json({"success": True}) if deleted else self.error("Unable to delete event", 500)
        if deleted:
            self.set_flash("event_success", "Event deleted successfully")
        else:
            self.set_flash("event_error", "Unable to delete event", "alert alert-danger")
        return self.redirect("events")

    @action()
    def move(self, params: RouteParams) -> Response:
        """Drag-and-drop reschedule from the calendar; AJAX only."""
        if not self.is_ajax():
            return self.redirect("events")
        if not self.is_post():
            return self.error("Invalid request method", 405)
        if not self.check_csrf():
            return self.error("Security validation failed", 403)
        event = self._get_event(params)
        if event is None:
            return self.error(EVENT_NOT_FOUND, 404)
        start = parse_datetime_input(self.ctx.form.get("start_time"))
        end = parse_datetime_input(self.ctx.form.get("end_time"))
        if start is None:
            return self.error("Please enter a valid start date", 400)
        if end is not None and end < start:
            return self.error("End date must be after start date", 400)
        event_crud.move(self.db, event_id=event["id"], user_id=self.user_id, start=start, end=end)
        self.log("move_event", "event", event["id"], f"Moved event to {start}")
        return self.json({"success": True, "event": event_crud.get(self.db, event_id=event["id"])})

    @action()
    def reminders(self, params: RouteParams) -> Response:
        """Create reminders for the user's events whose reminder time has come."""
        created = generate_event_reminders(self.db, now=self.ctx.now, user_id=self.user_id)
        if self.is_ajax():
            return self.json({"success": True, "created": len(created), "reminder_ids": created})
        if created:
            self.set_flash("event_success", f"{len(created)} event reminders created")
        return self.redirect("reminders")
