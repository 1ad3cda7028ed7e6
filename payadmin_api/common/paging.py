# payadmin_api/common/paging.py
from flask import current_app, request

DEFAULT_PAGE = 1

def page_limit():
    """
    ?page=2&size=50  (size also accepted as `limit` / `perPage`)
    Page size defaults to LEDGER_PAGE_SIZE and is clamped to [1, LEDGER_MAX_PAGE_SIZE].
    """
    default_size = int(current_app.config.get("LEDGER_PAGE_SIZE", 50))
    max_size = int(current_app.config.get("LEDGER_MAX_PAGE_SIZE", 200))
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except Exception:
        page = DEFAULT_PAGE

    raw = None
    for name in ("size", "limit", "perPage"):
        if name in request.args:
            raw = request.args.get(name)
            break
    try:
        size = int(raw) if raw is not None else default_size
        size = max(1, min(size, max_size))
    except Exception:
        size = default_size
    return page, size

def text_q():
    q = request.args.get("q") or request.args.get("search") or ""
    return q.strip() or None
