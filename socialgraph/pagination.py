from socialgraph.errors import InvalidOperation


def page_window(page: int, page_size: int, max_page_size: int) -> tuple[int, int]:
    """Translate 1-based (page, page_size) into (offset, limit)."""
    if page < 1:
        raise InvalidOperation("page must be >= 1")
    if page_size < 1 or page_size > max_page_size:
        raise InvalidOperation(f"page_size must be between 1 and {max_page_size}")
    return (page - 1) * page_size, page_size
