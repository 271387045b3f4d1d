from dataclasses import dataclass
from math import ceil

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(page: int | None = 1, limit: int | None = DEFAULT_PAGE_SIZE) -> PageParams:
    """Clamp page to >= 1 and limit to 1..100."""
    page = max(1, page or 1)
    limit = min(max(1, limit or DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)
    return PageParams(page=page, limit=limit)


def pagination_meta(params: PageParams, total: int) -> dict:
    total_pages = ceil(total / params.limit) if total else 0
    return {
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": params.page < total_pages,
        "has_prev": params.page > 1,
    }


def paginate(query, params: PageParams):
    """Run a SQLAlchemy query for one page. Returns (items, meta)."""
    total = query.order_by(None).count()
    items = query.offset(params.offset).limit(params.limit).all()
    return items, pagination_meta(params, total)
