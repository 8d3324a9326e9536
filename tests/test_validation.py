from datetime import timedelta

from task_api.schemas import TaskStatus
from task_api.validation import validate_create, validate_list_query, validate_update

from .fakes import START

NOW = START


def _valid(**overrides):
    data = {
        "title": "Valid Task",
        "description": "This is a valid task",
        "due_date": (NOW + timedelta(days=1)).isoformat(),
        "status": "pending",
    }
    data.update(overrides)
    return data


def _messages(result):
    return {e.field: e.message for e in result.errors}


# ============================================================
# CREATE
# ============================================================

def test_create_accepts_valid_task_and_trims():
    result = validate_create(_valid(title="  Padded  ", description=" text "), now=NOW)
    assert result.ok
    assert result.value.title == "Padded"
    assert result.value.description == "text"
    assert result.value.status is TaskStatus.PENDING


def test_create_missing_title():
    data = _valid()
    del data["title"]
    result = validate_create(data, now=NOW)
    assert not result.ok
    assert result.value is None
    assert _messages(result)["title"] == "Title is required"


def test_create_blank_title_counts_as_missing():
    result = validate_create(_valid(title="   "), now=NOW)
    assert _messages(result)["title"] == "Title is required"


def test_create_title_too_long():
    result = validate_create(_valid(title="A" * 101), now=NOW)
    assert _messages(result)["title"] == "Title cannot be longer than 100 characters"


def test_create_title_of_exactly_100_chars_after_trim():
    result = validate_create(_valid(title=" " + "A" * 100 + " "), now=NOW)
    assert result.ok


def test_create_past_due_date():
    result = validate_create(_valid(due_date=(NOW - timedelta(days=365)).isoformat()), now=NOW)
    assert _messages(result)["due_date"] == "Due date must be in the future"


def test_create_due_date_equal_to_now_is_rejected():
    result = validate_create(_valid(due_date=NOW.isoformat()), now=NOW)
    assert _messages(result)["due_date"] == "Due date must be in the future"


def test_create_naive_due_date_is_read_as_utc():
    naive = (NOW + timedelta(hours=1)).replace(tzinfo=None).isoformat()
    result = validate_create(_valid(due_date=naive), now=NOW)
    assert result.ok
    assert result.value.due_date == NOW + timedelta(hours=1)


def test_create_invalid_due_date():
    result = validate_create(_valid(due_date="not a date"), now=NOW)
    assert _messages(result)["due_date"] == "Due date must be a valid date"


def test_create_invalid_status():
    result = validate_create(_valid(status="INVALID_STATUS"), now=NOW)
    assert _messages(result)["status"] == "Status must be one of: pending, in-progress, completed"


def test_create_rejects_unknown_keys():
    result = validate_create(_valid(priority=3), now=NOW)
    assert _messages(result)["priority"] == '"priority" is not allowed'


def test_create_collects_every_error_in_order():
    result = validate_create({"title": "", "due_date": "yesterday", "status": "nope"}, now=NOW)
    fields = [e.field for e in result.errors]
    assert fields == ["title", "description", "due_date", "status"]
    assert _messages(result)["description"] == "Description is required"


def test_create_rejects_non_object():
    result = validate_create(["title"], now=NOW)
    assert [e.field for e in result.errors] == ["body"]


# ============================================================
# UPDATE
# ============================================================

def test_update_requires_at_least_one_field():
    result = validate_update({}, now=NOW)
    assert not result.ok
    assert result.errors[0].field == "body"
    assert result.errors[0].message == "At least one field is required for update"


def test_update_accepts_partial_data():
    result = validate_update({"status": "completed"}, now=NOW)
    assert result.ok
    assert result.value.changes() == {"status": TaskStatus.COMPLETED}


def test_update_applies_create_rules_to_supplied_fields():
    result = validate_update(
        {"title": "A" * 101, "due_date": (NOW - timedelta(minutes=1)).isoformat()}, now=NOW
    )
    messages = _messages(result)
    assert messages["title"] == "Title cannot be longer than 100 characters"
    assert messages["due_date"] == "Due date must be in the future"


def test_update_rejects_null():
    result = validate_update({"description": None}, now=NOW)
    assert _messages(result)["description"] == "Description cannot be null"


def test_update_rejects_invalid_status():
    result = validate_update({"status": "INVALID_STATUS"}, now=NOW)
    assert "Status must be one of" in _messages(result)["status"]


# ============================================================
# LIST QUERY
# ============================================================

def test_list_query_defaults():
    result = validate_list_query({})
    assert result.ok
    query = result.value
    assert (query.page, query.limit) == (1, 10)
    assert (query.sort_by, query.sort_order) == ("created_at", "DESC")
    assert query.status is None and query.search is None
    assert query.offset == 0


def test_list_query_coerces_strings():
    result = validate_list_query({"page": "3", "limit": "20", "sortBy": "title", "sortOrder": "ASC"})
    assert result.ok
    assert result.value.offset == 40
    assert result.value.sort_by == "title"


def test_list_query_ignores_unknown_and_empty_params():
    result = validate_list_query({"foo": "bar", "status": "", "search": None})
    assert result.ok
    assert result.value.status is None


def test_list_query_bounds():
    messages = _messages(validate_list_query({"page": 0, "limit": 101}))
    assert messages["page"] == "Page must be at least 1"
    assert messages["limit"] == "Limit cannot exceed 100"


def test_list_query_rejects_unknown_sort():
    messages = _messages(validate_list_query({"sortBy": "priority", "sortOrder": "UP"}))
    assert messages["sortBy"] == "Sort field must be one of [title, due_date, status, created_at]"
    assert messages["sortOrder"] == "Sort order must be either ASC or DESC"


def test_list_query_date_range_must_be_ordered():
    result = validate_list_query({"due_date_start": "2026-02-01T00:00:00Z", "due_date_end": "2026-01-01T00:00:00Z"})
    assert _messages(result)["due_date_end"] == "Due date end must be after or equal to due date start"


def test_list_query_accepts_equal_bounds():
    result = validate_list_query({"due_date_start": "2026-02-01T00:00:00Z", "due_date_end": "2026-02-01T00:00:00Z"})
    assert result.ok


def test_list_query_invalid_dates():
    result = validate_list_query({"due_date_start": "soon"})
    assert _messages(result)["due_date_start"] == "Due date start must be a valid date"
