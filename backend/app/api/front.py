"""Front controller: every page request goes through one catch-all route.

The controller registry is built at import time so a broken registry fails
application startup instead of the first request.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from backend.app.api.contacts import ContactsController
from backend.app.api.dashboard import DashboardController
from backend.app.api.deals import DealsController
from backend.app.api.events import EventsController
from backend.app.api.interactions import InteractionsController
from backend.app.api.reminders import RemindersController
from backend.app.api.users import UsersController
from backend.app.core.controller import RequestContext
from backend.app.core.router import Router
from backend.app.core.session import SessionContext
from backend.app.core.settings import get_settings
from backend.app.crud.crud_user import user_crud
from backend.app.db.gateway import Database
from backend.app.db.session import get_db

logger = logging.getLogger(__name__)

CONTROLLERS = {
    "users": UsersController,
    "dashboard": DashboardController,
    "contacts": ContactsController,
    "deals": DealsController,
    "interactions": InteractionsController,
    "events": EventsController,
    "reminders": RemindersController,
}

LOGIN_PATH = "/users/login"


class Dispatcher:
    def __init__(self, routes: Router):
        self.routes = routes
        self.settings = get_settings()

    def _restore_remembered(self, ctx: RequestContext) -> None:
        token = ctx.cookies.get(self.settings.remember_cookie_name)
        if not token:
            return
        user = user_crud.verify_api_token(ctx.db, token=token, now=ctx.now)
        if user is not None:
            ctx.session.set_user(user, ctx.now)
            logger.info("Restored session for user %s from remember-me cookie", user["id"])

    def dispatch(self, ctx: RequestContext, path: str) -> Response:
        route = self.routes.resolve(path)
        controller = self.routes.factory_for(route.controller)(ctx)

        timed_out = ctx.session.check_timeout(self.settings.session_timeout, ctx.now)
        if not ctx.session.is_logged_in and not timed_out:
            self._restore_remembered(ctx)

        if controller.requires_login(route.action) and not ctx.session.is_logged_in:
            return RedirectResponse(url=LOGIN_PATH, status_code=303)
        return controller.call(route.action, route.params)


routes = Router(CONTROLLERS)
dispatcher = Dispatcher(routes)

router = APIRouter()


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.api_route("/{path:path}", methods=["GET", "POST"])
async def front_controller(path: str, request: Request, db: Database = Depends(get_db)):
    settings = get_settings()
    form = await request.form() if request.method == "POST" else {}
    session = SessionContext.from_cookie(request.cookies.get(settings.session_cookie_name))
    ctx = RequestContext(
        method=request.method,
        db=db,
        session=session,
        query=request.query_params,
        form=form,
        headers=request.headers,
        cookies=request.cookies,
        client_address=request.client.host if request.client else "",
    )
    response = await run_in_threadpool(dispatcher.dispatch, ctx, path)
    response.set_cookie(settings.session_cookie_name, session.to_cookie(), httponly=True, samesite="lax")
    return response
