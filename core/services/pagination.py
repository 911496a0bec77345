# core/services/pagination.py
from django.core.paginator import Paginator

from core.approval.exceptions import ValidationError
from core.constants import Settings


def parse_page_params(page=None, page_size=None):
    """Read page / pageSize values (strings from the query string or ints)."""
    try:
        page = int(page) if page not in (None, "") else 1
        page_size = int(page_size) if page_size not in (None, "") else Settings.DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        raise ValidationError("page and pageSize must be integers.")

    if page < 1 or page_size < 1:
        raise ValidationError("page and pageSize must be positive.")
    return page, min(page_size, Settings.MAX_PAGE_SIZE)


def paginate(queryset, page=None, page_size=None):
    """
    Slice a queryset into {list, total, page, pageSize}.
    A page past the end gives an empty list instead of an error.
    """
    page, page_size = parse_page_params(page, page_size)
    paginator = Paginator(queryset, page_size)

    items = []
    if page <= paginator.num_pages and paginator.count:
        items = list(paginator.page(page).object_list)

    return {
        "list": items,
        "total": paginator.count,
        "page": page,
        "pageSize": page_size,
    }
