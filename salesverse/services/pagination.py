"""
Pagination des listes (page / limit -> skip)
"""

import math
from typing import List, Tuple

from salesverse.config import DEFAULT_PAGE, DEFAULT_LIMIT, MAX_LIMIT


def page_params(page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> Tuple[int, int, int]:
    """Normalise page/limit et calcule skip"""
    page = max(DEFAULT_PAGE, page or DEFAULT_PAGE)
    limit = min(MAX_LIMIT, max(1, limit or DEFAULT_LIMIT))
    return page, limit, (page - 1) * limit


async def paginate(
    collection,
    query: dict,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
    sort: List[Tuple[str, int]] = None
) -> dict:
    """
    Exécute find + count_documents sur le même filtre.
    Retourne {data, total, page, limit, totalPages}.
    """
    page, limit, skip = page_params(page, limit)
    sort = sort or [("created_at", -1)]

    items = await collection.find(query, {"_id": 0}) \
        .sort(sort) \
        .skip(skip) \
        .limit(limit) \
        .to_list(limit)

    total = await collection.count_documents(query)

    return {
        "data": items,
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if total else 0,
    }
