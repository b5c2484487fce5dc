"""Account endpoints: registration, login, logout, profile and user administration."""

import logging
from datetime import timedelta

from fastapi import Response
from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.controller import GENERIC_ERROR_MESSAGE, Controller
from backend.app.core.rate_limit import attempt_limiter
from backend.app.core.router import RouteParams, action
from backend.app.core.security import verify_password
from backend.app.crud.crud_user import USER_STATUSES, user_crud
from backend.app.crud.query import page_offset
from backend.app.schemas.forms import validate_form
from backend.app.schemas.user import LoginForm, ProfileForm, RegisterForm
from backend.app.services.upload_service import UploadError, store_image

logger = logging.getLogger(__name__)

PUBLIC_USER_FIELDS = ("id", "name", "email", "role_id", "role_name", "profile_image", "phone", "position",
                      "theme", "status", "last_login", "created_at")


def _public(user: dict) -> dict:
    return {key: user.get(key) for key in PUBLIC_USER_FIELDS}


class UsersController(Controller):
    @action()
    def index(self, params: RouteParams) -> Response:
        if not self.is_admin:
            return self.not_found("user_error", "You do not have permission to manage users", "dashboard")
        page = self.page()
        per_page = self.settings.items_per_page
        total = user_crud.count(self.db)
        users = user_crud.get_multi(self.db, limit=per_page, offset=page_offset(page, per_page))
        return self.render(
            "users/index",
            {
                "users": users,
                "roles": user_crud.get_roles(self.db),
                "current_page": page,
                "total_pages": self.total_pages(total, per_page),
                "total": total,
            },
        )

    @action(login_required=False)
    def register(self, params: RouteParams) -> Response:
        if self.session.is_logged_in:
            return self.redirect("dashboard")
        empty = {"name": "", "email": ""}
        if not self.is_post():
            return self.render("users/register", empty)

        if not self.check_csrf():
            return self.reject_csrf("users/register")
        limit, seconds = self.settings.register_rate_limit
        if attempt_limiter.is_limited("register", self.ctx.client_address, limit, seconds):
            self.set_flash("register_error", "Too many registration attempts. Please try again later.", "alert alert-danger")
            return self.redirect("users/register")

        data = self.form_data(["name", "email", "password", "confirm_password"])
        form, errors = validate_form(RegisterForm, data)
        if form is not None and user_crud.get_by_email(self.db, email=form.email):
            errors["email_error"] = "Email is already taken"
        if errors:
            return self.render(
                "users/register",
                {"name": data.get("name") or "", "email": data.get("email") or "", **errors},
            )

        user_id = user_crud.create(
            self.db, name=form.name, email=form.email, password=form.password, role_id=self.settings.role_agent
        )
        self.log("register", "user", user_id, f"User {form.email} registered")
        logger.info("Registered user %s (%s)", user_id, form.email)
        self.set_flash("register_success", "You are registered and can log in")
        return self.redirect("users/login")

    @action(login_required=False)
    def login(self, params: RouteParams) -> Response:
        if self.session.is_logged_in:
            return self.redirect("dashboard")
        if not self.is_post():
            remember_token = self.ctx.cookies.get(self.settings.remember_cookie_name)
            if remember_token:
                user = user_crud.verify_api_token(self.db, token=remember_token, now=self.ctx.now)
                if user:
                    self.session.set_user(user, self.ctx.now)
                    user_crud.update_last_login(self.db, user_id=user["id"])
                    return self.redirect("dashboard")
                response = self.render("users/login", {"email": ""})
                response.delete_cookie(self.settings.remember_cookie_name)
                return response
            return self.render("users/login", {"email": ""})

        if not self.check_csrf():
            return self.reject_csrf("users/login")
        limit, seconds = self.settings.login_rate_limit
        if attempt_limiter.is_limited("login", self.ctx.client_address, limit, seconds):
            self.set_flash("login_error", "Too many login attempts. Please try again later.", "alert alert-danger")
            return self.redirect("users/login")

        data = self.form_data(["email", "password", "remember_me"])
        form, errors = validate_form(LoginForm, data)
        user = None
        if form is not None:
            existing = user_crud.get_by_email(self.db, email=form.email)
            if existing is None:
                errors["email_error"] = "No user found with that email"
            elif existing["status"] != "active":
                errors["email_error"] = "Your account is not active"
            else:
                user = user_crud.authenticate(self.db, email=form.email, password=form.password)
                if user is None:
                    errors["password_error"] = "Password incorrect"
        if errors:
            logger.warning("Failed login for %s from %s", data.get("email"), self.ctx.client_address)
            return self.render("users/login", {"email": data.get("email") or "", **errors})

        self.session.set_user(user, self.ctx.now)
        self.log("login", "user", user["id"], "User logged in")

        response = self.redirect("dashboard")
        if form.remember_me:
            token = user_crud.generate_api_token(self.db, user_id=user["id"], now=self.ctx.now)
            response.set_cookie(
                self.settings.remember_cookie_name,
                token,
                max_age=int(timedelta(days=self.settings.remember_cookie_days).total_seconds()),
                httponly=True,
                samesite="lax",
            )
        return response

    @action(login_required=False)
    def logout(self, params: RouteParams) -> Response:
        if self.session.is_logged_in:
            self.log("logout", "user", self.user_id, "User logged out")
            user_crud.clear_api_token(self.db, user_id=self.user_id)
        self.session.clear_user()
        self.set_flash("logout_success", "You are now logged out")
        response = self.redirect("users/login")
        response.delete_cookie(self.settings.remember_cookie_name)
        return response

    @action()
    def profile(self, params: RouteParams) -> Response:
        user = user_crud.get(self.db, user_id=self.user_id)
        if user is None:
            self.session.clear_user()
            return self.redirect("users/login")
        if not self.is_post():
            return self.render("users/profile", {"user": _public(user)})

        if not self.check_csrf():
            return self.reject_csrf("users/profile")

        data = self.form_data(
            ["name", "email", "phone", "position", "theme", "current_password", "new_password", "confirm_password"]
        )
        form, errors = validate_form(ProfileForm, data)
        if form is not None:
            existing = user_crud.get_by_email(self.db, email=form.email)
            if existing and existing["id"] != user["id"]:
                errors["email_error"] = "Email is already taken"
            if form.changes_password and not verify_password(form.current_password or "", user["password"]):
                errors["current_password_error"] = "Current password is incorrect"
        if errors:
            submitted = {key: data.get(key) for key in ("name", "email", "phone", "position", "theme")}
            return self.render("users/profile", {"user": {**_public(user), **submitted}, **errors})

        try:
            with self.db.transaction():
                user_crud.update_profile(self.db, user_id=user["id"], data=form.model_dump())
                if form.changes_password:
                    user_crud.update_password(self.db, user_id=user["id"], password=form.new_password)
        except SQLAlchemyError:
            logger.exception("Failed to update profile for user %s", user["id"])
            self.set_flash("profile_error", GENERIC_ERROR_MESSAGE, "alert alert-danger")
            return self.render("users/profile", {"user": _public(user)})

        self.session.user_name = form.name
        self.session.user_email = form.email
        self.session.theme = form.theme
        self.log("update_profile", "user", user["id"], "Profile updated")
        self.set_flash("profile_success", "Profile updated successfully")
        return self.redirect("users/profile")

    @action(aliases=("uploadProfileImage",))
    def upload_profile_image(self, params: RouteParams) -> Response:
        if not self.is_post():
            return self.error("Invalid request method", 405)
        if not self.check_csrf():
            return self.error("Security validation failed", 403)
        upload = self.upload("profile_image")
        if upload is None:
            return self.error("No file uploaded", 400)
        try:
            stored = store_image(upload.file, upload.filename, folder="profile_images", prefix="profile")
        except UploadError as exc:
            return self.error(str(exc), 400)
        user_crud.update_profile_image(self.db, user_id=self.user_id, image=stored.filename)
        self.log("upload_profile_image", "user", self.user_id, "Profile image updated")
        return self.json({"success": True, "message": "Profile image updated successfully", "image": stored.filename})

    @action()
    def status(self, params: RouteParams) -> Response:
        if not self.is_admin:
            return self.not_found("user_error", "You do not have permission to manage users", "dashboard")
        if not self.is_post():
            return self.redirect("users")
        if not self.check_csrf():
            return self.reject_csrf("users")
        user_id = params.get_int(0)
        new_status = self.ctx.form.get("status")
        if user_id is None or user_crud.get(self.db, user_id=user_id) is None:
            return self.not_found("user_error", "User not found", "users")
        if new_status not in USER_STATUSES:
            self.set_flash("user_error", "Invalid status", "alert alert-danger")
            return self.redirect("users")
        if user_id == self.user_id:
            self.set_flash("user_error", "You cannot change your own status", "alert alert-danger")
            return self.redirect("users")
        user_crud.update_status(self.db, user_id=user_id, status=new_status)
        self.log("update_user_status", "user", user_id, f"Status set to {new_status}")
        self.set_flash("user_success", "User status updated")
        return self.redirect("users")

    @action()
    def delete(self, params: RouteParams) -> Response:
        if not self.is_admin:
            return self.not_found("user_error", "You do not have permission to manage users", "dashboard")
        if not self.is_post():
            return self.redirect("users")
        if not self.check_csrf():
            return self.reject_csrf("users")
        user_id = params.get_int(0)
        if user_id is None or user_crud.get(self.db, user_id=user_id) is None:
            return self.not_found("user_error", "User not found", "users")
        if user_id == self.user_id:
            self.set_flash("user_error", "You cannot delete your own account", "alert alert-danger")
            return self.redirect("users")
        try:
            user_crud.delete(self.db, user_id=user_id)
        except SQLAlchemyError:
            logger.exception("Failed to delete user %s", user_id)
            self.set_flash("user_error", "User cannot be deleted while they own records", "alert alert-danger")
            return self.redirect("users")
        self.log("delete_user", "user", user_id, "User deleted")
        self.set_flash("user_success", "User deleted")
        return self.redirect("users")
