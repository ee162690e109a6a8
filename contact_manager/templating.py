"""Jinja2 template environment shared by the page routes."""

from pathlib import Path
from urllib.parse import urlencode

from fastapi import Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
STATIC_DIR = Path(__file__).resolve().parent / "static"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

MESSAGE_KINDS = ("success", "error", "info")


def render(request: Request, name: str, status_code: int = 200, **context):
    """Render a page with the session identity and flash messages attached.

    Flash messages travel in the ``success``, ``error`` and ``info`` query
    parameters of the redirect that leads to the page. An ``error`` key in
    ``context`` replaces the query string value, even when it is ``None``.
    """
    session = getattr(request.state, "session", None)
    user = session.user if session is not None else None
    messages = {
        kind: request.query_params.get(kind)
        for kind in MESSAGE_KINDS
        if request.query_params.get(kind)
    }
    if "error" in context:
        error = context.pop("error")
        if error:
            messages["error"] = error
        else:
            messages.pop("error", None)
    page = {
        "current_user": user,
        "is_authenticated": user is not None,
        "messages": messages,
    }
    page.update(context)
    return templates.TemplateResponse(request, name, page, status_code=status_code)


def redirect_with(url: str, **params) -> RedirectResponse:
    """Redirect (303) to ``url`` with ``params`` appended to its query string."""
    params = {key: value for key, value in params.items() if value is not None}
    if params:
        url += ("&" if "?" in url else "?") + urlencode(params)
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def safe_return_path(path: str | None, default: str = "/") -> str:
    """Accept only same-site absolute paths as redirect targets."""
    if not path or not path.startswith("/") or path.startswith("//"):
        return default
    return path
