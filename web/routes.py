"""
web/routes.py -- Jinja2 template routes for the user directory UI.

These routes serve server-rendered HTML. They share app.state with the rest
of the app (user store, session store, upload dir).

Route registration order matters. FastAPI resolves same-level paths in order;
none of the routes below overlap, but keep literal paths ahead of any future
/users/{...} catch-alls.

Routes:
  GET  /                        -- user list with search/sort (auth required)
  GET  /register                -- registration form
  POST /register                -- create account, redirect /login
  GET  /login                   -- login form
  POST /login                   -- lockout state machine; set session cookie
  GET  /logout                  -- destroy session, redirect /login
  POST /users/delete/{user_id}  -- delete account (auth required)
  GET  /users/update/{user_id}  -- pre-filled edit form (auth required)
  POST /users/update/{user_id}  -- apply edits + optional picture (auth required)
  GET  /profile                 -- the signed-in user's own record (auth required)

Login failures are answered with a plain-text message and status 200, as the
login form has always behaved; the X-Error-Code header carries the machine
code. NotFound and store failures raised from handlers are rendered by the
exception handlers in api/main.py.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from fastapi import APIRouter, File, Form, Query, Request, UploadFile
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from api.models import ListParams, LoginForm, ProfileUpdateForm, RegisterForm, first_error_message
from auth.dependencies import session_token, try_get_session
from auth.lockout import login
from auth.models import SessionContext
from auth.sessions import SessionStore, clear_session_cookie, set_session_cookie
from auth.store import UserStore
from core.config import get_settings
from core.errors import AccountLocked, InvalidCredentials, UserDirectoryError, ValidationFailure
from users.query import SORTABLE_FIELDS, UserQuery
from users.service import delete_user, get_user, register_user, update_profile
from users.uploads import save_profile_picture

logger = logging.getLogger("userdir.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# Expose try_get_session as a Jinja2 global so layout.html can show the
# signed-in name without every handler passing it in.
templates.env.globals["try_get_session"] = try_get_session
router = APIRouter()

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def _require_auth(request: Request) -> Union[SessionContext, RedirectResponse]:
    """Return the live session for this request, or a RedirectResponse to /login.

    The session is read once; handlers reuse the returned context instead of
    looking it up again, since it may expire in between:
        session = _require_auth(request)
        if isinstance(session, RedirectResponse):
            return session
    """
    session = try_get_session(request)
    if session is None:
        return RedirectResponse("/login", status_code=302)
    return session


def _plain_error(exc: UserDirectoryError, status_code: int) -> PlainTextResponse:
    return PlainTextResponse(exc.message, status_code=status_code, headers={"X-Error-Code": exc.code})


def _stores(request: Request) -> tuple[UserStore, SessionStore]:
    return request.app.state.user_store, request.app.state.sessions


# ---------------------------------------------------------------------------
# GET / -- user list
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def index(
    request: Request,
    search: Optional[str] = Query(default=None),
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    order: Optional[str] = Query(default=None),
) -> HTMLResponse:
    session = _require_auth(request)
    if isinstance(session, RedirectResponse):
        return session
    params = ListParams(search=search, sort_by=sort_by, order=order)
    query = UserQuery.from_params(params.search, params.sort_by, params.order)
    store, _sessions = _stores(request)
    users = store.list_users(query)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "users": users,
            "user": session.user_name,
            "search": params.search or "",
            "sort_by": query.sort_by,
            "order": "desc" if query.descending else "asc",
            "sortable_fields": [f for f in SORTABLE_FIELDS if f != "id"],
        },
    )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.get("/register", response_class=HTMLResponse)
def register_form(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "register.html", {"error": None, "form_data": {}})


@router.post("/register", response_class=HTMLResponse)
def register_post(
    request: Request,
    name: str = Form(default=""),
    email: str = Form(default=""),
    age: str = Form(default=""),
    password: str = Form(default=""),
) -> HTMLResponse:
    """Handle the registration form. Redirects to /login on success."""
    form_data = {"name": name, "email": email, "age": age}

    try:
        form = RegisterForm(name=name, email=email, age=age, password=password)
    except ValidationError as exc:
        return templates.TemplateResponse(
            request,
            "register.html",
            {"error": first_error_message(exc), "form_data": form_data},
            status_code=400,
        )

    store, _sessions = _stores(request)
    try:
        register_user(store, form.name, form.email, form.age, form.password)
    except ValidationFailure as exc:
        return templates.TemplateResponse(
            request,
            "register.html",
            {"error": exc.message, "form_data": form_data},
            status_code=400,
        )

    return RedirectResponse("/login", status_code=303)


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page. Already-authenticated users go straight to /."""
    if try_get_session(request) is not None:
        return RedirectResponse("/", status_code=302)
    return templates.TemplateResponse(request, "login.html", {})


@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
) -> RedirectResponse:
    """Run the attempt through the lockout state machine and open a session."""
    form = LoginForm(email=email, password=password)
    store, sessions = _stores(request)
    try:
        token, _context = login(store, sessions, form.email, form.password)
    except (InvalidCredentials, AccountLocked) as exc:
        return _plain_error(exc, 200)

    # Never reuse a pre-login token.
    previous = session_token(request)
    if previous:
        sessions.destroy(previous)

    resp = RedirectResponse("/", status_code=302)
    set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/logout")
def logout(request: Request) -> RedirectResponse:
    """Destroy the server-side session, clear the cookie, and go to /login."""
    token = session_token(request)
    if token:
        request.app.state.sessions.destroy(token)
    resp = RedirectResponse("/login", status_code=302)
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# POST /users/delete/{user_id}
# ---------------------------------------------------------------------------


@router.post("/users/delete/{user_id}")
def user_delete(request: Request, user_id: int) -> RedirectResponse:
    session = _require_auth(request)
    if isinstance(session, RedirectResponse):
        return session
    store, sessions = _stores(request)
    deleting_self = session.user_id == user_id
    delete_user(store, sessions, user_id)
    resp = RedirectResponse("/", status_code=303)
    if deleting_self:
        clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# /users/update/{user_id} -- edit form and submit
# ---------------------------------------------------------------------------


@router.get("/users/update/{user_id}", response_class=HTMLResponse)
def user_update_form(request: Request, user_id: int) -> HTMLResponse:
    """Render the edit form, pre-populated with current values."""
    session = _require_auth(request)
    if isinstance(session, RedirectResponse):
        return session
    store, _sessions = _stores(request)
    user = get_user(store, user_id)
    form_data = {"name": user.name, "email": user.email, "age": str(user.age)}
    return templates.TemplateResponse(
        request,
        "update.html",
        {"target": user, "form_data": form_data, "error": None},
    )


@router.post("/users/update/{user_id}", response_class=HTMLResponse)
async def user_update(
    request: Request,
    user_id: int,
    name: Optional[str] = Form(default=None),
    email: Optional[str] = Form(default=None),
    age: Optional[str] = Form(default=None),
    profile_picture: Optional[UploadFile] = File(default=None, alias="profilePicture"),
) -> HTMLResponse:
    """Handle the edit form POST. Redirects to / on success."""
    session = _require_auth(request)
    if isinstance(session, RedirectResponse):
        return session
    store, sessions = _stores(request)
    target = get_user(store, user_id)
    form_data = {"name": name or "", "email": email or "", "age": age or ""}

    def _form_error(message: str) -> HTMLResponse:
        return templates.TemplateResponse(
            request,
            "update.html",
            {"target": target, "form_data": form_data, "error": message},
            status_code=400,
        )

    try:
        form = ProfileUpdateForm(name=name, email=email, age=age)
    except ValidationError as exc:
        return _form_error(first_error_message(exc))

    upload_dir: Path = request.app.state.upload_dir
    try:
        picture = await save_profile_picture(profile_picture, upload_dir, get_settings().max_upload_bytes)
    except ValidationFailure as exc:
        return _form_error(exc.message)

    try:
        update_profile(
            store,
            sessions,
            user_id,
            name=form.name,
            email=form.email,
            age=form.age,
            profile_picture=picture,
        )
    except UserDirectoryError as exc:
        if picture:
            (upload_dir / Path(picture).name).unlink(missing_ok=True)
        if isinstance(exc, ValidationFailure):
            return _form_error(exc.message)
        raise

    return RedirectResponse("/", status_code=303)


# ---------------------------------------------------------------------------
# GET /profile
# ---------------------------------------------------------------------------


@router.get("/profile", response_class=HTMLResponse)
def profile(request: Request) -> HTMLResponse:
    session = _require_auth(request)
    if isinstance(session, RedirectResponse):
        return session
    store, _sessions = _stores(request)
    user = get_user(store, session.user_id)
    return templates.TemplateResponse(request, "profile.html", {"profile": user})
