from flask import current_app

from library_service.utils.errors import ValidationError


def page_args(args):
    """Reads ``page`` and ``limit`` from a request's query args."""
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)
    try:
        page = int(args.get("page", 1))
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers")
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return page, min(limit, max_limit)


def order_clause(args, columns: dict, default_sort: str):
    """Maps ``sort_by``/``sort_order`` onto a whitelisted column."""
    sort_by = args.get("sort_by", default_sort)
    sort_order = (args.get("sort_order") or "desc").lower()
    if sort_by not in columns:
        raise ValidationError(f"sort_by must be one of: {', '.join(sorted(columns))}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be asc or desc")
    column = columns[sort_by]
    return column.asc() if sort_order == "asc" else column.desc()


def paginate(query, page: int, limit: int):
    result = query.paginate(page=page, per_page=limit, error_out=False)
    return result.items, {
        "page": page,
        "limit": limit,
        "total": result.total,
        "pages": result.pages,
    }
