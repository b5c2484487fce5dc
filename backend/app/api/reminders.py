"""Reminder list and maintenance for the signed-in user."""

import logging
from typing import Any, Dict, Optional

from fastapi import Response

from backend.app.core.controller import GENERIC_ERROR_MESSAGE, Controller
from backend.app.core.router import RouteParams, action
from backend.app.crud.crud_reminder import (
    RELATED_TYPES,
    REMINDER_FIELDS,
    REMINDER_PRIORITIES,
    REMINDER_STATUSES,
    reminder_crud,
)
from backend.app.crud.query import Pagination
from backend.app.schemas.forms import validate_form
from backend.app.schemas.reminder import ReminderForm

logger = logging.getLogger(__name__)

REMINDER_NOT_FOUND = "Reminder not found"
FORM_FIELDS = [field for field in REMINDER_FIELDS if field != "status"]


class RemindersController(Controller):
    def _get_reminder(self, params: RouteParams) -> Optional[Dict[str, Any]]:
        reminder_id = params.get_int(0)
        if reminder_id is None:
            return None
        return reminder_crud.get(self.db, reminder_id=reminder_id, user_id=self.user_id)

    def _options(self) -> Dict[str, Any]:
        return {"priorities": REMINDER_PRIORITIES, "related_types": RELATED_TYPES}

    @action()
    def index(self, params: RouteParams) -> Response:
        status = self.query_get("status", "all")
        if status not in REMINDER_STATUSES:
            status = "all"
        per_page = self.settings.items_per_page
        pagination = Pagination(
            page=self.page(), per_page=per_page, total=reminder_crud.count(self.db, user_id=self.user_id, status=status)
        )
        reminders = reminder_crud.get_multi(
            self.db, user_id=self.user_id, status=status, limit=per_page, offset=pagination.offset
        )
        return self.render(
            "reminders/index",
            {
                "title": "Reminders",
                "reminders": reminders,
                "status": status,
                "statuses": REMINDER_STATUSES,
                "counts": reminder_crud.count_by_status(self.db, user_id=self.user_id),
                "pagination": pagination.as_dict(),
            },
        )

    @action()
    def add(self, params: RouteParams) -> Response:
        if not self.is_post():
            empty = {field: "" for field in FORM_FIELDS}
            empty.update(
                {
                    "priority": "medium",
                    "related_type": self.query_get("related_type", ""),
                    "related_id": self.query_get("related_id", ""),
                }
            )
            return self.render("reminders/add", {"title": "Add Reminder", **empty, **self._options()})

        if not self.check_csrf():
            return self.reject_csrf("reminders/add")
        data = self.form_data(FORM_FIELDS)
        form, errors = validate_form(ReminderForm, data)
        if errors:
            return self.render("reminders/add", {"title": "Add Reminder", **data, **errors, **self._options()})

        reminder_id = reminder_crud.create(self.db, data=form.model_dump(), user_id=self.user_id)
        self.log("add_reminder", "reminder", reminder_id, f"Added reminder: {form.title}")
        self.set_flash("reminder_success", "Reminder added successfully")
        return self.redirect("reminders")

    @action()
    def edit(self, params: RouteParams) -> Response:
        reminder = self._get_reminder(params)
        if reminder is None:
            return self.not_found("reminder_error", REMINDER_NOT_FOUND, "reminders")
        title = f"Edit {reminder['title']}"
        if not self.is_post():
            current = {field: reminder.get(field) for field in FORM_FIELDS}
            return self.render("reminders/edit", {"title": title, "id": reminder["id"], **current, **self._options()})

        if not self.check_csrf():
            return self.reject_csrf(f"reminders/edit/{reminder['id']}")
        data = self.form_data(FORM_FIELDS)
        form, errors = validate_form(ReminderForm, data)
        if errors:
            return self.render(
                "reminders/edit", {"title": title, "id": reminder["id"], **data, **errors, **self._options()}
            )

        if not reminder_crud.update(self.db, reminder_id=reminder["id"], user_id=self.user_id, data=form.model_dump()):
            self.set_flash("reminder_error", GENERIC_ERROR_MESSAGE, "alert alert-danger")
            return self.redirect("reminders")
        self.log("update_reminder", "reminder", reminder["id"], f"Updated reminder: {form.title}")
        self.set_flash("reminder_success", "Reminder updated successfully")
        return self.redirect("reminders")

    @action()
    def delete(self, params: RouteParams) -> Response:
        if not self.is_post():
            return self.redirect("reminders")
        if not self.check_csrf():
            return self.reject_csrf("reminders")
        reminder = self._get_reminder(params)
        if reminder is None:
            return self.not_found("reminder_error", REMINDER_NOT_FOUND, "reminders")
        reminder_crud.delete(self.db, reminder_id=reminder["id"], user_id=self.user_id)
        self.log("delete_reminder", "reminder", reminder["id"], f"Deleted reminder: {reminder['title']}")
        self.set_flash("reminder_success", "Reminder deleted successfully")
        return self.redirect("reminders")

    @action()
    def status(self, params: RouteParams) -> Response:
        if not self.is_post():
            return self.error("Invalid request method", 405) if self.is_ajax() else self.redirect("reminders")
        if not self.check_csrf():
            return self.error("Security validation failed", 403) if self.is_ajax() else self.reject_csrf("reminders")
        reminder = self._get_reminder(params)
        if reminder is None:
            if self.is_ajax():
                return self.error(REMINDER_NOT_FOUND, 404)
            return self.not_found("reminder_error", REMINDER_NOT_FOUND, "reminders")
        new_status = self.ctx.form.get("status")
        if new_status not in REMINDER_STATUSES:
            if self.is_ajax():
                return self.error("Invalid status", 400)
            return self.not_found("reminder_error", "Invalid status", "reminders")

        reminder_crud.update_status(self.db, reminder_id=reminder["id"], user_id=self.user_id, status=new_status)
        self.log("update_reminder_status", "reminder", reminder["id"], f"Status set to {new_status}")
        if self.is_ajax():
            return self.json({"success": True, "status": new_status})
        self.set_flash("reminder_success", "Reminder status updated")
        return self.redirect("reminders")
