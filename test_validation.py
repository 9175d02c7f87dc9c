from datetime import date

import pytest

from app.core.exceptions import UploadRejectedError
from app.models.records import Event
from app.services.account_service import admin_signup_errors, resident_signup_errors
from app.services.event_service import missing_required_fields
from app.services.file_storage_service import MB, resolve_content_type, validate_upload
from app.utils.validation import (
    check_duplicate,
    collect_errors,
    validate_confirm_password,
    validate_date,
    validate_email,
    validate_name,
    validate_password,
    validate_phone_number,
    validate_required,
    validate_url,
)


def signup_form(**overrides):
    form = {
        "name": "Juan Dela Cruz",
        "email": "juan@example.com",
        "password": "secret123",
        "confirmPassword": "secret123",
        "birthday": "1990-05-01",
        "purok": "Purok 1",
        "houseNumber": "12",
        "contactNumber": "09171234567",
    }
    form.update(overrides)
    return form


def test_email_messages():
    assert validate_email("") == "Please enter your email."
    assert validate_email("juan@") == "Please enter a valid email address."
    assert validate_email("juan@example.com") is None


def test_email_on_reserved_domain_is_rejected():
    assert validate_email("juan@barangay.local") == "Please enter a valid email address."
    assert validate_email(12345) == "Please enter a valid email address."


def test_password_rules():
    assert validate_password(None) == "Please enter your password."
    assert validate_password("short") == "Password must be at least 8 characters."
    assert validate_password("longenough") is None
    assert validate_confirm_password("a", "") == "Please confirm your password."
    assert validate_confirm_password("abcdefgh", "abcdefgx") == "Passwords do not match."


def test_name_letters_and_spaces_only():
    assert validate_name("Juan Dela Cruz") is None
    assert validate_name("Juan 3rd") == "Name can only contain letters and spaces."
    assert validate_name("  ") == "Please enter a name."


@pytest.mark.parametrize("phone,ok", [
    ("09171234567", True),
    ("9171234567", False),
    ("0917123456a", False),
    ("+639171234567", False),
])
def test_phone_numbers(phone, ok):
    assert (validate_phone_number(phone) is None) is ok


def test_required_and_url():
    assert validate_required("  ", "Purok") == "Purok is required."
    assert validate_required(0, "Count") is None
    assert validate_url("") is None
    assert validate_url("not a url") == "Please enter a valid URL."
    assert validate_url("https://example.com/a.png") is None


def test_dates_compare_by_day():
    today = date(2024, 6, 15)
    assert validate_date("2024-06-15", today=today) is None
    assert validate_date("2024-06-14", today=today) == "Date cannot be in the past."
    assert validate_date("2024-06-14", allow_past=True, today=today) is None
    assert validate_date("June 15", today=today) == "Please select a valid date."
    assert validate_date(None) == "Please select a date."


def test_duplicate_check_is_case_insensitive_and_excludes_self():
    items = [{"id": "o1", "position": "Captain"}, {"id": "o2", "position": "Councilor"}]
    assert check_duplicate(items, "position", "captain")
    assert not check_duplicate(items, "position", "Captain", exclude_id="o1")
    assert not check_duplicate(items, "position", None)


def test_collect_errors_drops_passing_fields():
    assert collect_errors({"a": None, "b": "bad"}) == {"b": "bad"}


def test_resident_signup_form():
    assert resident_signup_errors(signup_form()) == {}

    errors = resident_signup_errors(signup_form(name="J4n", confirmPassword="nope", contactNumber="123", purok=""))
    assert set(errors) == {"name", "confirmPassword", "contactNumber", "purok"}


def test_resident_signup_accepts_legacy_keys():
    form = signup_form(fullName="Juan Dela Cruz", phoneNumber="09171234567")
    del form["name"], form["contactNumber"]
    assert resident_signup_errors(form) == {}


def test_admin_signup_contact_is_optional():
    form = {"fullName": "Maria Santos", "email": "m@example.com", "password": "secret123", "confirmPassword": "secret123"}
    assert admin_signup_errors(form) == {}
    assert "contactNumber" in admin_signup_errors({**form, "contactNumber": "12"})


def test_required_registration_fields():
    event = Event.model_validate({
        "title": "Fun run",
        "eventDate": "2024-07-01",
        "registrationFields": [
            {"id": "size", "label": "T-shirt size", "required": True},
            {"label": "Team", "required": True},
            {"label": "Notes"},
        ],
    })

    errors = missing_required_fields(event, {"Team": "  "})

    assert errors == {"size": 'Please fill in "T-shirt size"', "Team": 'Please fill in "Team"'}
    assert missing_required_fields(event, {"size": "M", "Team": "Red"}) == {}


# ----- uploads -----

def test_proof_upload_rules():
    assert validate_upload("proof", "image/png", 1024) == "image/png"

    with pytest.raises(UploadRejectedError, match="Invalid file type"):
        validate_upload("proof", "image/gif", 1024)
    with pytest.raises(UploadRejectedError, match="must not exceed 5MB"):
        validate_upload("proof", "application/pdf", 5 * MB + 1)
    with pytest.raises(UploadRejectedError, match="Proof of residency is required"):
        validate_upload("proof", "image/png", 0)


def test_attachment_upload_rules():
    assert validate_upload("attachment", "image/gif", 9 * MB) == "image/gif"

    with pytest.raises(UploadRejectedError) as exc:
        validate_upload("attachment", "text/plain", 10)
    assert exc.value.field == "attachment"


def test_generic_content_type_falls_back_to_filename():
    assert resolve_content_type("application/octet-stream", "proof.PDF") == "application/pdf"
    assert resolve_content_type(None, "photo.jpg") == "image/jpeg"
    assert resolve_content_type("IMAGE/PNG", "x") == "image/png"
    assert validate_upload("proof", "", 10, filename="scan.png") == "image/png"
