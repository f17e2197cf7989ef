from datetime import date

import pytest

from utils.validators import (
    FieldError, alphanumeric, escape, iso_date, optional, parse_iso_date, required, run_chain, trim,
    validate, validate_author, validate_book,
)


def test_valid_author_is_trimmed_and_dates_converted():
    result = validate_author({
        "first_name": "  Jane ",
        "family_name": "Austen",
        "date_of_birth": "1775-12-16",
        "date_of_death": "",
    })
    assert result.ok
    assert result.values["first_name"] == "Jane"
    assert result.values["date_of_birth"] == date(1775, 12, 16)
    assert result.values["date_of_death"] is None

def test_empty_first_name_reports_only_the_required_message():
    result = validate_author({"first_name": "", "family_name": "Doe"})
    assert not result.ok
    assert result.errors == [FieldError("first_name", "First name must be specified.", "")]

def test_fields_fail_independently():
    result = validate_author({"first_name": "", "family_name": "D'oe", "date_of_birth": "not-a-date"})
    messages = [e.message for e in result.errors]
    assert messages == [
        "First name must be specified.",
        "Family name has non-alphanumeric characters.",
        "Invalid date of birth",
    ]
    assert [e.field for e in result.errors] == ["first_name", "family_name", "date_of_birth"]

def test_markup_is_escaped_before_the_charset_check():
    result = validate_author({"first_name": "<b>Jo</b>", "family_name": "Doe"})
    assert result.values["first_name"] == "&lt;b&gt;Jo&lt;&#x2F;b&gt;"
    assert result.errors_for("first_name")[0].message == "First name has non-alphanumeric characters."
    assert "<" not in result.values["first_name"]

def test_invalid_date_keeps_the_submitted_text():
    result = validate_author({"first_name": "Jo", "family_name": "Doe", "date_of_death": " 1999-02-30 "})
    assert result.values["date_of_death"] == "1999-02-30"
    assert result.errors_for("date_of_death")[0].message == "Invalid date of death"

def test_iso_datetime_is_normalized_to_a_date():
    result = validate_author({"first_name": "Jo", "family_name": "Doe", "date_of_birth": "1990-05-01T10:00:00Z"})
    assert result.ok
    assert result.values["date_of_birth"] == date(1990, 5, 1)

def test_missing_fields_are_treated_as_empty():
    result = validate_book({})
    assert [e.field for e in result.errors] == ["title", "author", "summary", "isbn"]
    assert result.values["title"] == ""

def test_book_fields_are_escaped():
    result = validate_book({"title": " Tom & Jerry ", "author": "abc", "summary": "\"Quoted\"", "isbn": "123"})
    assert result.ok
    assert result.values["title"] == "Tom &amp; Jerry"
    assert result.values["summary"] == "&quot;Quoted&quot;"

def test_unknown_fields_are_dropped():
    result = validate_book({"title": "T", "author": "a", "summary": "s", "isbn": "1", "extra": "x"})
    assert "extra" not in result.values

def test_sanitizers_still_run_after_a_failed_check():
    rules = [trim(), required("needed"), escape(), alphanumeric("charset")]
    result = run_chain("name", "  ", rules)
    assert result.value == ""
    assert [e.message for e in result.errors] == ["needed"]

def test_optional_field_skips_the_chain_when_falsy():
    result = run_chain("when", None, [optional(), trim(), iso_date("bad")])
    assert result.ok
    assert result.value is None

def test_validate_accepts_custom_rule_sets():
    result = validate({"code": "ab1"}, {"code": [trim(), alphanumeric("letters and digits only")]})
    assert result.ok
    assert result.values == {"code": "ab1"}

def test_offset_datetime_is_converted_to_utc_before_taking_the_date():
    result = validate_author({"first_name": "Jo", "family_name": "Doe", "date_of_birth": "1990-05-01T23:30:00-05:00"})
    assert result.ok
    assert result.values["date_of_birth"] == date(1990, 5, 2)

def test_reduced_precision_dates_mean_the_first_day():
    assert parse_iso_date("1990") == date(1990, 1, 1)
    assert parse_iso_date("1990-05") == date(1990, 5, 1)
    result = validate_author({"first_name": "Jo", "family_name": "Doe", "date_of_birth": "1990", "date_of_death": "2001-07"})
    assert result.ok
    assert result.values["date_of_death"] == date(2001, 7, 1)

def test_accepted_iso_forms():
    assert parse_iso_date("19900501") == date(1990, 5, 1)
    assert parse_iso_date("1990-05-01T10:00") == date(1990, 5, 1)
    assert parse_iso_date("1990-05-01T10:00:00.250+02:00") == date(1990, 5, 1)
    assert parse_iso_date("1990-05-01T01:00:00+0300") == date(1990, 4, 30)
    assert parse_iso_date("1990-05-01t12:00:00z") == date(1990, 5, 1)

@pytest.mark.parametrize("text", ["199005", "1990-5-1", "1990T10:00", "1990-05-01T25:00", "05/01/1990", ""])
def test_rejected_iso_forms(text):
    with pytest.raises(ValueError):
        parse_iso_date(text)
