"""Deal pages: listing, pipeline board, detail, add/edit/delete and stage moves."""

import logging
from typing import Any, Dict, Optional

from fastapi import Response

from backend.app.core.controller import GENERIC_ERROR_MESSAGE, Controller
from backend.app.core.router import RouteParams, action
from backend.app.core.time import parse_date
from backend.app.crud.crud_contact import contact_crud
from backend.app.crud.crud_deal import DEAL_FIELDS, DEAL_STAGES, DEFAULT_SORT, deal_crud
from backend.app.crud.crud_reminder import reminder_crud
from backend.app.crud.crud_user import user_crud
from backend.app.crud.query import Pagination, normalize_direction
from backend.app.schemas.deal import DealForm
from backend.app.schemas.forms import validate_form

logger = logging.getLogger(__name__)

DEAL_NOT_FOUND = "Deal not found"
FILTER_KEYS = (
    "search",
    "stage",
    "owner_id",
    "contact_id",
    "min_amount",
    "max_amount",
    "expected_close_date_start",
    "expected_close_date_end",
)


class DealsController(Controller):
    def _get_deal(self, params: RouteParams) -> Optional[Dict[str, Any]]:
        deal_id = params.get_int(0)
        return deal_crud.get(self.db, deal_id=deal_id) if deal_id is not None else None

    def _form_options(self) -> Dict[str, Any]:
        return {
            "stages": DEAL_STAGES,
            "users": user_crud.get_agents(self.db),
            "contacts": contact_crud.get_multi(self.db, limit=None, sort_by="last_name", direction="ASC"),
        }

    def _validate(self, data: Dict[str, Any]):
        form, errors = validate_form(DealForm, data)
        if form is not None and contact_crud.get(self.db, contact_id=form.contact_id) is None:
            errors["contact_id_error"] = "Please select a contact"
        return form, errors

    @action()
    def index(self, params: RouteParams) -> Response:
        filters = {key: self.query_get(key) for key in FILTER_KEYS}
        filters["owner_id"] = self.query_int("owner_id")
        filters["contact_id"] = self.query_int("contact_id")
        per_page = self.settings.items_per_page
        pagination = Pagination(page=self.page(), per_page=per_page, total=deal_crud.count(self.db, filters=filters))
        sort_by = self.query_get("sort_by", DEFAULT_SORT)
        sort_dir = normalize_direction(self.query_get("sort_dir", "DESC"))
        deals = deal_crud.get_multi(
            self.db, filters=filters, limit=per_page, offset=pagination.offset, sort_by=sort_by, direction=sort_dir
        )
        return self.render(
            "deals/index",
            {
                "title": "Deals",
                "deals": deals,
                "filters": filters,
                "stages": DEAL_STAGES,
                "users": user_crud.get_agents(self.db),
                "pagination": pagination.as_dict(),
                "sorting": {"sort_by": sort_by, "sort_dir": sort_dir},
            },
        )

    @action()
    def pipeline(self, params: RouteParams) -> Response:
        owner_id = params.get_int(0) or self.query_int("owner_id")
        start_date = parse_date(self.query_get("start_date"))
        end_date = parse_date(self.query_get("end_date"))
        totals_filters = {"owner_id": owner_id, "start_date": start_date, "end_date": end_date}
        return self.render(
            "deals/pipeline",
            {
                "title": "Pipeline",
                "pipeline": deal_crud.get_pipeline(self.db, owner_id=owner_id),
                "totals": deal_crud.sum_by_stage(self.db, filters=totals_filters),
                "forecast": deal_crud.get_forecast(
                    self.db, owner_id=owner_id, start_date=start_date, end_date=end_date
                ),
            },
        )

    @action()
    def view(self, params: RouteParams) -> Response:
        deal = self._get_deal(params)
        if deal is None:
            return self.not_found("deal_error", DEAL_NOT_FOUND, "deals")
        return self.render(
            "deals/view",
            {
                "title": deal["title"],
                "deal": deal,
                "stages": DEAL_STAGES,
                "reminders": reminder_crud.get_related(self.db, related_type="deal", related_id=deal["id"]),
            },
        )

    @action()
    def add(self, params: RouteParams) -> Response:
        if not self.is_post():
            empty = {field: "" for field in DEAL_FIELDS}
            empty.update({"contact_id": params.get_int(0), "owner_id": self.user_id, "stage": "lead", "currency": "USD"})
            return self.render("deals/add", {"title": "Add Deal", **empty, **self._form_options()})

        if not self.check_csrf():
            return self.reject_csrf("deals/add")
        data = self.form_data(DEAL_FIELDS)
        form, errors = self._validate(data)
        if errors:
            return self.render("deals/add", {"title": "Add Deal", **data, **errors, **self._form_options()})

        values = form.model_dump()
        values["owner_id"] = values["owner_id"] or self.user_id
        deal_id = deal_crud.create(self.db, data=values, created_by=self.user_id)
        self.log("add_deal", "deal", deal_id, f"Added deal: {form.title}")
        self.set_flash("deal_success", "Deal added successfully")
        return self.redirect(f"deals/view/{deal_id}")

    @action()
    def edit(self, params: RouteParams) -> Response:
        deal = self._get_deal(params)
        if deal is None:
            return self.not_found("deal_error", DEAL_NOT_FOUND, "deals")
        title = f"Edit {deal['title']}"
        if not self.is_post():
            current = {field: deal.get(field) for field in DEAL_FIELDS}
            return self.render("deals/edit", {"title": title, "id": deal["id"], **current, **self._form_options()})

        if not self.check_csrf():
            return self.reject_csrf(f"deals/edit/{deal['id']}")
        data = self.form_data(DEAL_FIELDS)
        form, errors = self._validate(data)
        if errors:
            return self.render("deals/edit", {"title": title, "id": deal["id"], **data, **errors, **self._form_options()})

        if not deal_crud.update(self.db, deal_id=deal["id"], data=form.model_dump()):
            self.set_flash("deal_error", GENERIC_ERROR_MESSAGE, "alert alert-danger")
            return self.render("deals/edit", {"title": title, "id": deal["id"], **data, **self._form_options()})
        self.log("update_deal", "deal", deal["id"], f"Updated deal: {form.title}")
        self.set_flash("deal_success", "Deal updated successfully")
        return self.redirect(f"deals/view/{deal['id']}")

    @action()
    def delete(self, params: RouteParams) -> Response:
        if not self.is_post():
            return self.redirect("deals")
        if not self.check_csrf():
            return self.reject_csrf("deals")
        deal = self._get_deal(params)
        if deal is None:
            return self.not_found("deal_error", DEAL_NOT_FOUND, "deals")
        if deal_crud.delete(self.db, deal_id=deal["id"]):
            self.log("delete_deal", "deal", deal["id"], f"Deleted deal: {deal['title']}")
            self.set_flash("deal_success", "Deal deleted successfully")
        else:
            self.set_flash("deal_error", "Unable to delete deal", "alert alert-danger")
        return self.redirect("deals")

    @action()
    def stage(self, params: RouteParams) -> Response:
        """Move a deal to another stage; answers JSON for the pipeline board."""
        if not self.is_post():
            return self.error("Invalid request method", 405) if self.is_ajax() else self.redirect("deals/pipeline")
        if not self.check_csrf():
            return self.error("Security validation failed", 403) if self.is_ajax() else self.reject_csrf("deals/pipeline")
        deal = self._get_deal(params)
        if deal is None:
            return self.error(DEAL_NOT_FOUND, 404) if self.is_ajax() else self.not_found("deal_error", DEAL_NOT_FOUND, "deals")
        new_stage = self.ctx.form.get("stage")
        if new_stage not in DEAL_STAGES:
            if self.is_ajax():
                return self.error("Invalid stage", 400)
            return self.not_found("deal_error", "Invalid stage", f"deals/view/{deal['id']}")

        deal_crud.update_stage(self.db, deal_id=deal["id"], stage=new_stage, today=self.ctx.now.date())
        self.log("update_deal_stage", "deal", deal["id"], f"Stage changed from {deal['stage']} to {new_stage}")
        if self.is_ajax():
            return self.json({"success": True, "deal": deal_crud.get(self.db, deal_id=deal["id"])})
        self.set_flash("deal_success", "Deal stage updated")
        return self.redirect(f"deals/view/{deal['id']}")
