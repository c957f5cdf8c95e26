"""Query helpers for paginated time entry listings."""
from pymongo import ASCENDING, DESCENDING

from chronos.models.time_entry import SortField, SortOrder, TimeEntryFilters
from chronos.utils.clock import to_storage

MIN_PAGE = 1
MAX_PAGE = 1000
MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 100

# Running entries have no stored duration; they sort as larger than any
# finite duration.
RUNNING_SORT_KEY = 2**62


def clamp(value: int, low: int, high: int) -> int:
    """
    Clamp value into [low, high].

    Examples:
        >>> clamp(0, 1, 100)
        1
        >>> clamp(500, 1, 100)
        100
    """
    return max(low, min(high, value))


def clamp_pagination(page: int, page_size: int) -> tuple[int, int]:
    """Bound a page request instead of rejecting it."""
    return clamp(page, MIN_PAGE, MAX_PAGE), clamp(page_size, MIN_PAGE_SIZE, MAX_PAGE_SIZE)


def build_filter_query(owner: str, filters: TimeEntryFilters) -> dict:
    """
    Build the MongoDB predicate for a listing.

    The date range applies to start_time and is inclusive on both ends.
    """
    query = {"user_id": owner}

    if filters.start_date or filters.end_date:
        query["start_time"] = {}
        if filters.start_date:
            query["start_time"]["$gte"] = to_storage(filters.start_date)
        if filters.end_date:
            query["start_time"]["$lte"] = to_storage(filters.end_date)

    if filters.project_ref:
        query["project_ref"] = filters.project_ref
    if filters.task_ref:
        query["task_ref"] = filters.task_ref

    if filters.is_running is True:
        query["end_time"] = None
    elif filters.is_running is False:
        query["end_time"] = {"$ne": None}

    return query


def build_sort_stages(sort_by: SortField, order: SortOrder) -> list[dict]:
    """
    Sort stages for a listing; _id breaks ties so pages never overlap.

    Duration sorting substitutes RUNNING_SORT_KEY for a missing duration, so
    running entries come first descending and last ascending.
    """
    direction = DESCENDING if order == SortOrder.DESC else ASCENDING

    if sort_by == SortField.DURATION:
        return [
            {"$addFields": {"_sort_duration": {"$ifNull": ["$duration", RUNNING_SORT_KEY]}}},
            {"$sort": {"_sort_duration": direction, "start_time": direction, "_id": direction}},
        ]

    return [{"$sort": {"start_time": direction, "_id": direction}}]


def build_listing_pipeline(
    owner: str,
    filters: TimeEntryFilters,
    page: int,
    page_size: int,
) -> list[dict]:
    """
    Aggregation pipeline returning one page and the totals of the full set.

    All three facets consume the same matched documents, so the page, the
    count and the summed duration describe one read of the collection.
    """
    offset = (page - 1) * page_size

    return [
        {"$match": build_filter_query(owner, filters)},
        {
            "$facet": {
                "entries": [
                    *build_sort_stages(filters.sort_by, filters.order),
                    {"$skip": offset},
                    {"$limit": page_size},
                ],
                "totals": [
                    {
                        "$group": {
                            "_id": None,
                            "count": {"$sum": 1},
                            "duration": {"$sum": {"$ifNull": ["$duration", 0]}},
                        }
                    }
                ],
                "running": [
                    {"$match": {"end_time": None}},
                    {"$project": {"start_time": 1}},
                ],
            }
        },
    ]
