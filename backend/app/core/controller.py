"""Base controller, request context and view collaborator."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Iterable, Mapping, Optional, Protocol

from fastapi import Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse

from backend.app.core.router import RouteParams
from backend.app.core.security import issue_csrf_token, validate_csrf_token
from backend.app.core.session import SessionContext
from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now
from backend.app.crud.query import normalize_page
from backend.app.db.gateway import Database, parse_int
from backend.app.services.activity_log import log_activity

logger = logging.getLogger(__name__)

CSRF_FAILED_MESSAGE = "Security validation failed. Please try again."
GENERIC_ERROR_MESSAGE = "Something went wrong"


class ViewRenderer(Protocol):
    def render(self, view: str, data: Dict[str, Any], status_code: int = 200) -> Response: ...


class JSONViewRenderer:
    """Renders a view as `{"view": name, "data": {...}}`."""

    def render(self, view: str, data: Dict[str, Any], status_code: int = 200) -> Response:
        return JSONResponse({"view": view, "data": jsonable_encoder(data)}, status_code=status_code)


@dataclass
class RequestContext:
    method: str
    db: Database
    session: SessionContext
    query: Mapping[str, Any] = field(default_factory=dict)
    form: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    client_address: str = ""
    renderer: ViewRenderer = field(default_factory=JSONViewRenderer)
    now: datetime = field(default_factory=utc_now)


def _get_list(source: Mapping[str, Any], key: str) -> list:
    if hasattr(source, "getlist"):
        return list(source.getlist(key)) + list(source.getlist(f"{key}[]"))
    value = source.get(key, source.get(f"{key}[]"))
    if value is None:
        return []
    return list(value) if isinstance(value, (list, tuple)) else [value]


class Controller:
    actions: ClassVar[Dict[str, str]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        actions: Dict[str, str] = {}
        for klass in reversed(cls.__mro__):
            for attr_name, member in vars(klass).items():
                for route_name in getattr(member, "_route_names", ()):
                    actions[route_name.lower()] = attr_name
        cls.actions = actions

    def __init__(self, ctx: RequestContext):
        self.ctx = ctx
        self.db = ctx.db
        self.session = ctx.session
        self.settings = get_settings()

    # Dispatch

    def requires_login(self, action_name: str) -> bool:
        method = getattr(self, self.actions[action_name])
        return getattr(method, "_login_required", True)

    def call(self, action_name: str, params: RouteParams) -> Response:
        return getattr(self, self.actions[action_name])(params)

    # Request helpers

    @property
    def user_id(self) -> Optional[int]:
        return self.session.user_id

    @property
    def is_admin(self) -> bool:
        return self.session.user_role == self.settings.role_admin

    def is_post(self) -> bool:
        return self.ctx.method.upper() == "POST"

    def is_ajax(self) -> bool:
        return self.ctx.headers.get("x-requested-with", "").lower() == "xmlhttprequest"

    def form_data(self, fields: Iterable[str], multi: Iterable[str] = ()) -> Dict[str, Any]:
        data = {name: self.ctx.form.get(name) for name in fields if name in self.ctx.form}
        for name in multi:
            values = _get_list(self.ctx.form, name)
            if values:
                data[name] = values
        return data

    def query_get(self, name: str, default: Any = None) -> Any:
        return self.ctx.query.get(name, default)

    def query_list(self, name: str) -> list:
        return _get_list(self.ctx.query, name)

    def query_int(self, name: str) -> Optional[int]:
        return parse_int(self.ctx.query.get(name))

    def page(self) -> int:
        return normalize_page(self.query_get("page", 1))

    def total_pages(self, total: int, per_page: int) -> int:
        return math.ceil(total / per_page) if per_page else 0

    def upload(self, name: str):
        upload = self.ctx.form.get(name)
        if upload is None or not hasattr(upload, "filename") or not upload.filename:
            return None
        return upload

    def check_csrf(self) -> bool:
        token = self.ctx.form.get("csrf_token") or self.ctx.headers.get("x-csrf-token")
        if validate_csrf_token(self.session, token, now=self.ctx.now):
            return True
        logger.warning("CSRF validation failed for %s from %s", type(self).__name__, self.ctx.client_address)
        return False

    def csrf_token(self) -> str:
        return issue_csrf_token(self.session, now=self.ctx.now)

    # Responses

    def set_flash(self, name: str, message: str, css_class: str = "alert alert-success") -> None:
        self.session.set_flash(name, message, css_class)

    def reject_csrf(self, redirect_to: str) -> Response:
        self.set_flash("csrf_error", CSRF_FAILED_MESSAGE, "alert alert-danger")
        return self.redirect(redirect_to)

    def not_found(self, name: str, message: str, redirect_to: str) -> Response:
        self.set_flash(name, message, "alert alert-danger")
        return self.redirect(redirect_to)

    def render(self, view: str, data: Optional[Dict[str, Any]] = None, status_code: int = 200) -> Response:
        payload = dict(data or {})
        payload.setdefault("title", self.settings.app_name)
        payload["flash"] = self.session.pop_flashes()
        payload["csrf_token"] = self.csrf_token()
        payload["theme"] = self.session.theme
        payload["current_user"] = (
            {
                "id": self.session.user_id,
                "name": self.session.user_name,
                "email": self.session.user_email,
                "role_id": self.session.user_role,
            }
            if self.session.is_logged_in
            else None
        )
        return self.ctx.renderer.render(view, payload, status_code=status_code)

    def json(self, payload: Dict[str, Any], status_code: int = 200) -> Response:
        return JSONResponse(jsonable_encoder(payload), status_code=status_code)

    def error(self, message: str, status_code: int = 400) -> Response:
        return JSONResponse({"error": message}, status_code=status_code)

    def redirect(self, path: str) -> Response:
        return RedirectResponse(url="/" + path.lstrip("/"), status_code=303)

    def download(self, content: bytes, filename: str, media_type: str = "text/csv; charset=utf-8") -> Response:
        return Response(
            content=content,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    def log(self, action: str, entity_type: Optional[str] = None, entity_id: Optional[int] = None,
            description: Optional[str] = None) -> None:
        log_activity(
            self.db,
            user_id=self.user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            ip_address=self.ctx.client_address,
            user_agent=self.ctx.headers.get("user-agent"),
        )
