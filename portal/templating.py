import os

from fastapi import Request
from fastapi.templating import Jinja2Templates

from .services.attendance_service import classify
from .services.grading import is_passing
from .utils import get_flashed_messages, url_for

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")

templates = Jinja2Templates(directory=TEMPLATE_DIR)
templates.env.filters["attendance_label"] = lambda status: classify(status).label
templates.env.filters["attendance_color"] = lambda status: classify(status).color
templates.env.filters["grade"] = lambda value: f"{value:.2f}"
templates.env.tests["passing"] = is_passing


def _csrf_token() -> str:
    return ""


def _page_globals(request: Request) -> dict:
    return {
        "config": request.app.state.settings,
        "url_for": lambda name, **params: url_for(request, name, **params),
        "get_flashed_messages": lambda with_categories=True, category_filter=(): get_flashed_messages(
            request, with_categories=with_categories, category_filter=category_filter
        ),
        "csrf_token": _csrf_token,
        "getattr": getattr,
    }


def render_template(template_name: str, context: dict, status_code: int = 200):
    """Render a page; ``context`` must carry the request and wins over the page globals."""
    request = context["request"]
    return templates.TemplateResponse(
        request,
        template_name,
        {**_page_globals(request), **context},
        status_code=status_code,
    )
