"""Contact pages: listing, detail, add/edit/delete, avatar, tags and CSV import/export."""

import logging
from typing import Any, Dict

from fastapi import Response

from backend.app.core.controller import GENERIC_ERROR_MESSAGE, Controller
from backend.app.core.router import RouteParams, action
from backend.app.crud.crud_contact import CONTACT_FIELDS, DEFAULT_SORT, contact_crud
from backend.app.crud.crud_deal import deal_crud
from backend.app.crud.crud_event import event_crud
from backend.app.crud.crud_interaction import interaction_crud
from backend.app.crud.crud_reminder import reminder_crud
from backend.app.crud.crud_user import user_crud
from backend.app.crud.query import Pagination, normalize_direction
from backend.app.schemas.contact import ContactForm, TagForm
from backend.app.schemas.forms import validate_form
from backend.app.services.contact_export_service import build_contacts_csv, export_filename
from backend.app.services.contact_import_service import ContactImportError, decode_upload, import_contacts
from backend.app.services.upload_service import UploadError, file_extension, store_image

logger = logging.getLogger(__name__)

CONTACT_NOT_FOUND = "Contact not found"


class ContactsController(Controller):
    def _filters(self) -> Dict[str, Any]:
        return {
            "search": self.query_get("search", ""),
            "owner_id": self.query_int("owner_id"),
            "lead_status": self.query_get("lead_status", ""),
            "lead_source": self.query_get("lead_source", ""),
            "tags": self.query_list("tags"),
        }

    def _form_options(self) -> Dict[str, Any]:
        return {
            "users": user_crud.get_agents(self.db),
            "tags_list": contact_crud.get_all_tags(self.db),
            "lead_statuses": contact_crud.get_lead_statuses(self.db),
            "lead_sources": contact_crud.get_lead_sources(self.db),
        }

    def _submitted(self) -> Dict[str, Any]:
        return self.form_data(CONTACT_FIELDS, multi=["tags"])

    def _validate(self, data: Dict[str, Any]):
        form, errors = validate_form(ContactForm, data)
        if form is not None and form.tags and not contact_crud.tag_ids_exist(self.db, tag_ids=form.tags):
            errors["tags_error"] = "Please select valid tags"
        return form, errors

    @action()
    def index(self, params: RouteParams) -> Response:
        filters = self._filters()
        per_page = self.settings.items_per_page
        pagination = Pagination(page=self.page(), per_page=per_page, total=contact_crud.count(self.db, filters=filters))
        sort_by = self.query_get("sort_by", DEFAULT_SORT)
        sort_dir = normalize_direction(self.query_get("sort_dir", "DESC"))
        contacts = contact_crud.get_multi(
            self.db,
            filters=filters,
            limit=per_page,
            offset=pagination.offset,
            sort_by=sort_by,
            direction=sort_dir,
        )
        return self.render(
            "contacts/index",
            {
                "title": "Contacts",
                "contacts": contacts,
                "filters": filters,
                "users": user_crud.get_agents(self.db),
                "lead_statuses": contact_crud.get_lead_statuses(self.db),
                "lead_sources": contact_crud.get_lead_sources(self.db),
                "tags": contact_crud.get_all_tags(self.db),
                "pagination": pagination.as_dict(),
                "sorting": {"sort_by": sort_by, "sort_dir": sort_dir},
            },
        )

    @action()
    def view(self, params: RouteParams) -> Response:
        contact_id = params.get_int(0)
        contact = contact_crud.get(self.db, contact_id=contact_id) if contact_id is not None else None
        if contact is None:
            return self.not_found("contact_error", CONTACT_NOT_FOUND, "contacts")
        return self.render(
            "contacts/view",
            {
                "title": contact["full_name"],
                "contact": contact,
                "interactions": interaction_crud.get_for_contact(self.db, contact_id=contact_id, limit=10),
                "total_interactions": interaction_crud.count_for_contact(self.db, contact_id=contact_id),
                "deals": deal_crud.get_for_contact(self.db, contact_id=contact_id, limit=10),
                "total_deals": deal_crud.count_for_contact(self.db, contact_id=contact_id),
                "events": event_crud.get_for_contact(self.db, contact_id=contact_id, limit=10),
                "total_events": event_crud.count_for_contact(self.db, contact_id=contact_id),
                "reminders": reminder_crud.get_related(self.db, related_type="contact", related_id=contact_id),
                "users": user_crud.get_agents(self.db),
            },
        )

    @action()
    def add(self, params: RouteParams) -> Response:
        if not self.is_post():
            empty = {field: "" for field in CONTACT_FIELDS}
            empty.update({"owner_id": self.user_id, "tags": []})
            return self.render("contacts/add", {"title": "Add Contact", **empty, **self._form_options()})

        if not self.check_csrf():
            return self.reject_csrf("contacts/add")
        data = self._submitted()
        form, errors = self._validate(data)
        if errors:
            return self.render("contacts/add", {"title": "Add Contact", **data, **errors, **self._form_options()})

        contact_id = contact_crud.create(self.db, data=form.model_dump(), created_by=self.user_id)
        if contact_id is None:
            self.set_flash("contact_error", GENERIC_ERROR_MESSAGE, "alert alert-danger")
            return self.render("contacts/add", {"title": "Add Contact", **data, **self._form_options()})
        self.log("add_contact", "contact", contact_id, f"Added new contact: {form.first_name} {form.last_name}")
        self.set_flash("contact_success", "Contact added successfully")
        return self.redirect(f"contacts/view/{contact_id}")

    @action()
    def edit(self, params: RouteParams) -> Response:
        contact_id = params.get_int(0)
        contact = contact_crud.get(self.db, contact_id=contact_id) if contact_id is not None else None
        if contact is None:
            return self.not_found("contact_error", CONTACT_NOT_FOUND, "contacts")
        title = f"Edit {contact['full_name']}"
        if not self.is_post():
            current = {field: contact.get(field) for field in CONTACT_FIELDS}
            current["tags"] = [tag["id"] for tag in contact["tags"]]
            return self.render("contacts/edit", {"title": title, "id": contact_id, **current, **self._form_options()})

        if not self.check_csrf():
            return self.reject_csrf(f"contacts/edit/{contact_id}")
        data = self._submitted()
        form, errors = self._validate(data)
        if errors:
            return self.render(
                "contacts/edit", {"title": title, "id": contact_id, **data, **errors, **self._form_options()}
            )

        values = form.model_dump()
        # An edit form without any tag box ticked clears the links
        values["tags"] = values["tags"] or []
        if not contact_crud.update(self.db, contact_id=contact_id, data=values):
            self.set_flash("contact_error", GENERIC_ERROR_MESSAGE, "alert alert-danger")
            return self.render("contacts/edit", {"title": title, "id": contact_id, **data, **self._form_options()})
        self.log("update_contact", "contact", contact_id, f"Updated contact: {form.first_name} {form.last_name}")
        self.set_flash("contact_success", "Contact updated successfully")
        return self.redirect(f"contacts/view/{contact_id}")

    @action()
    def delete(self, params: RouteParams) -> Response:
        if not self.is_post():
            return self.redirect("contacts")
        if not self.check_csrf():
            return self.reject_csrf("contacts")
        contact_id = params.get_int(0)
        contact = contact_crud.get(self.db, contact_id=contact_id) if contact_id is not None else None
        if contact is None:
            return self.not_found("contact_error", CONTACT_NOT_FOUND, "contacts")
        if contact_crud.delete(self.db, contact_id=contact_id):
            self.log("delete_contact", "contact", contact_id, f"Deleted contact: {contact['full_name']}")
            self.set_flash("contact_success", "Contact deleted successfully")
        else:
            self.set_flash("contact_error", "Unable to delete contact", "alert alert-danger")
        return self.redirect("contacts")

    @action(aliases=("uploadAvatar",))
    def upload_avatar(self, params: RouteParams) -> Response:
        contact_id = params.get_int(0)
        if not self.is_ajax():
            return self.redirect(f"contacts/view/{contact_id}" if contact_id is not None else "contacts")
        contact = contact_crud.get(self.db, contact_id=contact_id) if contact_id is not None else None
        if contact is None:
            return self.error(CONTACT_NOT_FOUND, 404)
        if not self.is_post():
            return self.error("Invalid request method", 405)
        if not self.check_csrf():
            return self.error("Security validation failed", 403)
        upload = self.upload("avatar")
        if upload is None:
            return self.error("No file uploaded or upload error", 400)
        try:
            stored = store_image(upload.file, upload.filename, folder="contact_avatars", prefix="contact")
        except UploadError as exc:
            return self.error(str(exc), 400)
        image_path = f"uploads/contact_avatars/{stored.filename}"
        if not contact_crud.update_avatar(self.db, contact_id=contact_id, avatar=image_path):
            return self.error("Failed to update avatar in database", 500)
        self.log("upload_avatar", "contact", contact_id, "Contact avatar updated")
        return self.json({"success": True, "message": "Avatar uploaded successfully", "image_path": image_path})

    @action("import")
    def import_contacts(self, params: RouteParams) -> Response:
        if not self.is_post():
            return self.render("contacts/import", {"title": "Import Contacts"})
        if not self.check_csrf():
            return self.reject_csrf("contacts/import")
        upload = self.upload("csv_file")
        if upload is None:
            return self.not_found("contact_error", "No file uploaded or upload error", "contacts/import")
        if file_extension(upload.filename) != "csv":
            return self.not_found("contact_error", "Invalid file type. Only CSV files are allowed.", "contacts/import")

        try:
            result = import_contacts(
                self.db, decode_upload(upload.file.read()), created_by=self.user_id, owner_id=self.user_id
            )
        except ContactImportError as exc:
            if self.is_ajax():
                return self.error(str(exc), 400)
            return self.not_found("contact_error", str(exc), "contacts/import")

        if self.is_ajax():
            return self.json(
                {"success": result.imported > 0, "imported": result.imported, "failed": result.failed,
                 "errors": result.errors, "message": result.message}
            )
        if result.imported > 0:
            self.log("import_contacts", "contact", None, f"Imported {result.imported} contacts")
            self.set_flash("contact_success", result.message)
        else:
            self.set_flash("contact_error", result.message, "alert alert-danger")
        return self.redirect("contacts")

    @action()
    def export(self, params: RouteParams) -> Response:
        export_format = self.query_get("format", "csv")
        if export_format != "csv":
            return self.not_found("contact_error", "Invalid export format", "contacts")
        contacts = contact_crud.get_multi(self.db, filters=self._filters(), limit=None)
        if not contacts:
            return self.not_found("contact_error", "No contacts found to export", "contacts")
        self.log("export_contacts", "contact", None, f"Exported {len(contacts)} contacts")
        return self.download(build_contacts_csv(contacts), export_filename(self.ctx.now.date()))

    @action()
    def tags(self, params: RouteParams) -> Response:
        if not self.is_post():
            return self.render("contacts/tags", {"title": "Tags", "tags": contact_crud.get_all_tags(self.db)})
        if not self.check_csrf():
            return self.reject_csrf("contacts/tags")
        data = self.form_data(["name", "color"])
        form, errors = validate_form(TagForm, data)
        if form is not None and contact_crud.get_tag_by_name(self.db, name=form.name):
            errors["name_error"] = "Tag already exists"
        if errors:
            return self.render(
                "contacts/tags", {"title": "Tags", "tags": contact_crud.get_all_tags(self.db), **data, **errors}
            )
        tag_id = contact_crud.create_tag(self.db, name=form.name, color=form.color, created_by=self.user_id)
        self.log("add_tag", "tag", tag_id, f"Added tag: {form.name}")
        self.set_flash("tag_success", "Tag added successfully")
        return self.redirect("contacts/tags")
