"""Interactions are always reached through their contact."""

import logging
from typing import Any, Dict, Optional

from fastapi import Response

from backend.app.core.controller import GENERIC_ERROR_MESSAGE, Controller
from backend.app.core.router import RouteParams, action
from backend.app.crud.crud_contact import contact_crud
from backend.app.crud.crud_interaction import (
    DEFAULT_SORT,
    INTERACTION_FIELDS,
    INTERACTION_STATUSES,
    INTERACTION_TYPES,
    interaction_crud,
)
from backend.app.crud.query import Pagination
from backend.app.schemas.forms import validate_form
from backend.app.schemas.interaction import InteractionForm, InteractionStatusForm

logger = logging.getLogger(__name__)

INTERACTION_NOT_FOUND = "Interaction not found"
FORM_FIELDS = [field for field in INTERACTION_FIELDS if field != "contact_id"]


class InteractionsController(Controller):
    def _get_interaction(self, params: RouteParams) -> Optional[Dict[str, Any]]:
        interaction_id = params.get_int(0)
        if interaction_id is None:
            return None
        return interaction_crud.get(self.db, interaction_id=interaction_id)

    def _options(self) -> Dict[str, Any]:
        return {"types": INTERACTION_TYPES, "statuses": INTERACTION_STATUSES}

    @action()
    def index(self, params: RouteParams) -> Response:
        contact_id = params.get_int(0) or self.query_int("contact_id")
        contact = contact_crud.get(self.db, contact_id=contact_id) if contact_id else None
        if contact is None:
            return self.redirect("contacts")
        per_page = self.settings.items_per_page
        total = interaction_crud.count_for_contact(self.db, contact_id=contact_id)
        pagination = Pagination(page=self.page(), per_page=per_page, total=total)
        interactions = interaction_crud.get_for_contact(
            self.db,
            contact_id=contact_id,
            limit=per_page,
            offset=pagination.offset,
            sort_by=self.query_get("sort_by", DEFAULT_SORT),
            direction=self.query_get("sort_dir", "DESC"),
        )
        return self.render(
            "interactions/index",
            {
                "title": f"Interactions with {contact['full_name']}",
                "contact": contact,
                "interactions": interactions,
                "pagination": pagination.as_dict(),
            },
        )

    @action()
    def add(self, params: RouteParams) -> Response:
        contact_id = params.get_int(0)
        contact = contact_crud.get(self.db, contact_id=contact_id) if contact_id is not None else None
        if contact is None:
            return self.not_found("contact_error", "Contact not found", "contacts")
        title = f"Add Interaction for {contact['full_name']}"
        if not self.is_post():
            empty = {field: "" for field in FORM_FIELDS}
            empty["status"] = "planned"
            return self.render("interactions/add", {"title": title, "contact": contact, **empty, **self._options()})

        if not self.check_csrf():
            return self.reject_csrf(f"interactions/add/{contact_id}")
        data = self.form_data(FORM_FIELDS)
        form, errors = validate_form(InteractionForm, data)
        if errors:
            return self.render(
                "interactions/add", {"title": title, "contact": contact, **data, **errors, **self._options()}
            )

        interaction_id = interaction_crud.create(
            self.db, data={"contact_id": contact_id, **form.model_dump()}, created_by=self.user_id
        )
        self.log("add_interaction", "interaction", interaction_id, f"Added {form.type}: {form.subject}")
        self.set_flash("contact_success", "Interaction added successfully")
        return self.redirect(f"contacts/view/{contact_id}")

    @action()
    def edit(self, params: RouteParams) -> Response:
        interaction = self._get_interaction(params)
        if interaction is None:
            return self.not_found("contact_error", INTERACTION_NOT_FOUND, "contacts")
        title = f"Edit {interaction['subject']}"
        if not self.is_post():
            current = {field: interaction.get(field) for field in FORM_FIELDS}
            return self.render(
                "interactions/edit", {"title": title, "id": interaction["id"], **current, **self._options()}
            )

        if not self.check_csrf():
            return self.reject_csrf(f"interactions/edit/{interaction['id']}")
        data = self.form_data(FORM_FIELDS)
        form, errors = validate_form(InteractionForm, data)
        if errors:
            return self.render(
                "interactions/edit", {"title": title, "id": interaction["id"], **data, **errors, **self._options()}
            )

        if not interaction_crud.update(self.db, interaction_id=interaction["id"], data=form.model_dump()):
            self.set_flash("contact_error", GENERIC_ERROR_MESSAGE, "alert alert-danger")
            return self.redirect(f"contacts/view/{interaction['contact_id']}")
        self.log("update_interaction", "interaction", interaction["id"], f"Updated interaction: {form.subject}")
        self.set_flash("contact_success", "Interaction updated successfully")
        return self.redirect(f"contacts/view/{interaction['contact_id']}")

    @action()
    def delete(self, params: RouteParams) -> Response:
        if not self.is_post():
            return self.redirect("contacts")
        if not self.check_csrf():
            return self.reject_csrf("contacts")
        interaction = self._get_interaction(params)
        if interaction is None:
            return self.not_found("contact_error", INTERACTION_NOT_FOUND, "contacts")
        if interaction_crud.delete(self.db, interaction_id=interaction["id"]):
            self.log("delete_interaction", "interaction", interaction["id"], f"Deleted: {interaction['subject']}")
            self.set_flash("contact_success", "Interaction deleted successfully")
        else:
            self.set_flash("contact_error", "Unable to delete interaction", "alert alert-danger")
        return self.redirect(f"contacts/view/{interaction['contact_id']}")

    @action()
    def status(self, params: RouteParams) -> Response:
        if not self.is_post():
            return self.error("Invalid request method", 405) if self.is_ajax() else self.redirect("contacts")
        if not self.check_csrf():
            return self.error("Security validation failed", 403) if self.is_ajax() else self.reject_csrf("contacts")
        interaction = self._get_interaction(params)
        if interaction is None:
            if self.is_ajax():
                return self.error(INTERACTION_NOT_FOUND, 404)
            return self.not_found("contact_error", INTERACTION_NOT_FOUND, "contacts")

        form, errors = validate_form(InteractionStatusForm, self.form_data(["status", "outcome"]))
        if errors:
            if self.is_ajax():
                return self.error(errors.get("status_error", GENERIC_ERROR_MESSAGE), 400)
            return self.not_found(
                "contact_error", errors.get("status_error", GENERIC_ERROR_MESSAGE),
                f"contacts/view/{interaction['contact_id']}",
            )

        interaction_crud.update_status(
            self.db, interaction_id=interaction["id"], status=form.status, outcome=form.outcome
        )
        self.log("update_interaction_status", "interaction", interaction["id"], f"Status set to {form.status}")
        if self.is_ajax():
            return self.json({"success": True, "status": form.status})
        self.set_flash("contact_success", "Interaction status updated")
        return self.redirect(f"contacts/view/{interaction['contact_id']}")
