"""Browser pages. They hold no data themselves; the scripts call ``/api``."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from permitdesk import settings

templates = Jinja2Templates(directory=str(settings.TEMPLATES_DIR))

router = APIRouter(include_in_schema=False)


def _render(request: Request, name: str, title: str) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        name,
        {
            "title": title,
            "page_size": settings.DEFAULT_PAGE_SIZE,
        },
    )


@router.get("/", response_class=HTMLResponse)
async def login_page(request: Request) -> HTMLResponse:
    return _render(request, "index.html", "Sign in")


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(request: Request) -> HTMLResponse:
    return _render(request, "user_dashboard.html", "My permits")


@router.get("/permits/new", response_class=HTMLResponse)
async def permit_form_page(request: Request) -> HTMLResponse:
    return _render(request, "permit_form.html", "New permit")


@router.get("/admin", response_class=HTMLResponse)
async def admin_page(request: Request) -> HTMLResponse:
    return _render(request, "admin_dashboard.html", "Admin dashboard")
