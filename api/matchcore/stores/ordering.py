MATCH_SET_ORDER_COLUMNS = ("created_at", "updated_at", "name", "number_of_participants", "time_start")
MATCH_RESULT_ORDER_COLUMNS = ("created_at", "updated_at", "dropped_at", "match_set_id", "initiator_user_id", "receiver_user_id")


def resolve_order(order_by: str | None, sort: str | None, allowed: tuple[str, ...]) -> tuple[str, bool]:
    """Return (column, descending). Unknown columns fall back to created_at."""
    column = order_by if order_by in allowed else "created_at"
    value = (sort or "").strip().lower()
    descending = value in ("-", "desc", "descending")
    return column, descending
