"""Dashboard page, AJAX chart data and theme toggle."""

import logging

from fastapi import Response

from backend.app.core.controller import Controller
from backend.app.core.router import RouteParams, action
from backend.app.crud.crud_user import user_crud
from backend.app.services.dashboard_service import get_dashboard_data, get_dashboard_summary

logger = logging.getLogger(__name__)


class DashboardController(Controller):
    @action()
    def index(self, params: RouteParams) -> Response:
        summary = get_dashboard_summary(self.db, user_id=self.user_id, now=self.ctx.now)
        return self.render("dashboard/index", {"title": "Dashboard", **summary})

    @action(aliases=("getData",))
    def get_data(self, params: RouteParams) -> Response:
        if not self.is_ajax():
            return self.redirect("dashboard")
        data_type = self.query_get("type") or "all"
        try:
            data = get_dashboard_data(self.db, data_type=data_type, user_id=self.user_id, now=self.ctx.now)
        except ValueError as exc:
            return self.error(str(exc), 400)
        return self.json({"success": True, "data": data})

    @action(aliases=("toggleTheme",))
    def toggle_theme(self, params: RouteParams) -> Response:
        if not self.is_ajax():
            return self.redirect("dashboard")
        theme = "light" if self.session.theme == "dark" else "dark"
        user_crud.update_theme(self.db, user_id=self.user_id, theme=theme)
        self.session.theme = theme
        logger.info("User %s switched to %s theme", self.user_id, theme)
        return self.json({"success": True, "theme": theme})
