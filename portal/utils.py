import logging
from typing import Any, Literal

from fastapi import Request
from starlette.routing import NoMatchFound

log = logging.getLogger(__name__)

FlashCategory = Literal["success", "info", "warning", "danger"]

_FLASH_KEY = "_flashes"


def url_for(request: Request, name: str, **params: Any) -> str:
    """
    Path of a named route or mount. ``filename`` is accepted for files under a
    mount (``static``, ``storage``) the way Flask templates spell it.
    """
    if "filename" in params:
        params["path"] = params.pop("filename")
    try:
        return request.url_for(name, **params).path
    except NoMatchFound:
        log.warning("Template asked for unknown route %r", name)
        return "#"


def flash(request: Request, message: str, category: FlashCategory = "info") -> None:
    """Queue a message for the next page rendered in this session."""
    request.session[_FLASH_KEY] = [*request.session.get(_FLASH_KEY, []), [category, message]]


def get_flashed_messages(
    request: Request,
    with_categories: bool = True,
    category_filter: tuple[str, ...] = (),
) -> list[Any]:
    """Pop queued messages, optionally keeping only some categories."""
    messages = request.session.pop(_FLASH_KEY, [])
    if category_filter:
        messages = [m for m in messages if m[0] in category_filter]
    if not with_categories:
        return [message for _, message in messages]
    return [(category, message) for category, message in messages]


def parse_int(value: Any) -> int | None:
    """Parse an optional integer query/form value; blank or junk gives None."""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
