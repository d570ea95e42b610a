from core.validation_errors import format_validation_error_details


def test_missing_callback_status_summary_is_readable():
    errors = [{"type": "missing", "loc": ("body", "status"), "msg": "Field required", "input": {}}]

    details = format_validation_error_details(errors)

    assert details["summary"] == "Validation failed: missing required field: status."
    assert details["missingFields"] == ["status"]
    assert details["fieldErrors"] == [
        {
            "path": "status",
            "location": "body",
            "message": "Field required",
            "errorType": "missing",
        }
    ]


def test_type_error_is_reported_without_missing_summary():
    errors = [
        {
            "type": "int_parsing",
            "loc": ("body", "status"),
            "msg": "Input should be a valid integer",
            "input": "saved",
        }
    ]

    details = format_validation_error_details(errors)

    assert details["summary"] == "Validation failed for 1 field."
    assert details["missingFields"] == []
    assert details["fieldErrors"][0]["errorType"] == "int_parsing"


def test_nested_paths_are_joined_and_missing_fields_deduplicated():
    errors = [
        {"type": "bool_parsing", "loc": ("body", "permissions", "edit"), "msg": "Input should be a valid boolean"},
        {"type": "missing", "loc": ("body", "status"), "msg": "Field required"},
        {"type": "missing", "loc": ("body", "status"), "msg": "Field required"},
    ]

    details = format_validation_error_details(errors)

    assert details["fieldErrors"][0]["path"] == "permissions.edit"
    assert details["missingFields"] == ["status"]
    assert details["summary"] == "Validation failed: missing required field: status."


def test_root_level_error_without_location():
    details = format_validation_error_details([{"type": "json_invalid", "msg": "JSON decode error"}])

    assert details["fieldErrors"][0]["location"] == "body"
    assert details["fieldErrors"][0]["path"] == "(root)"
