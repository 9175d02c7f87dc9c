"""
Form-field checks run before any network call.

Each validator returns an error message, or None when the value is fine.
``collect_errors`` turns a mapping of field -> message into the inline error
map a form shows next to its fields.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Union
from urllib.parse import urlparse
import re

from email_validator import EmailNotValidError, validate_email as check_email_address

NAME_RE = re.compile(r"^[a-zA-Z\s]+$")
PHONE_RE = re.compile(r"^09\d{9}$")

MIN_PASSWORD_LENGTH = 8


def _blank(value: Optional[str]) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def validate_email(email: Optional[str]) -> Optional[str]:
    if _blank(email):
        return "Please enter your email."
    try:
        # same rules EmailStr applies when the profile is written
        check_email_address(email, check_deliverability=False)
    except (EmailNotValidError, TypeError):
        return "Please enter a valid email address."
    return None


def validate_password(password: Optional[str]) -> Optional[str]:
    if _blank(password):
        return "Please enter your password."
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    return None


def validate_confirm_password(password: Optional[str], confirm_password: Optional[str]) -> Optional[str]:
    if _blank(confirm_password):
        return "Please confirm your password."
    if password != confirm_password:
        return "Passwords do not match."
    return None


def validate_name(name: Optional[str]) -> Optional[str]:
    if _blank(name):
        return "Please enter a name."
    if not NAME_RE.match(name):
        return "Name can only contain letters and spaces."
    return None


def validate_phone_number(phone: Optional[str]) -> Optional[str]:
    if _blank(phone):
        return "Please enter a contact number."
    if not PHONE_RE.match(phone):
        return "Contact number must be 11 digits (09XXXXXXXXX)."
    return None


def validate_required(value: Any, field_name: str) -> Optional[str]:
    if value is None or value == "" or (isinstance(value, str) and value.strip() == ""):
        return f"{field_name} is required."
    return None


def validate_date(value: Union[str, date, None], allow_past: bool = False, today: Optional[date] = None) -> Optional[str]:
    """Dates compare at day granularity; today itself is never 'in the past'."""
    if not value:
        return "Please select a date."
    if isinstance(value, datetime):
        selected = value.date()
    elif isinstance(value, date):
        selected = value
    else:
        try:
            selected = datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
        except ValueError:
            return "Please select a valid date."
    if not allow_past and selected < (today or date.today()):
        return "Date cannot be in the past."
    return None


def validate_url(url: Optional[str]) -> Optional[str]:
    """Empty is allowed; anything else must be an absolute URL."""
    if _blank(url):
        return None
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return "Please enter a valid URL."
    return None


def check_duplicate(items: Iterable[Any], field: str, value: Optional[str], exclude_id: Optional[str] = None) -> bool:
    """Case-insensitive duplicate check over records or dicts."""
    if value is None:
        return False
    needle = value.lower()
    for item in items:
        get = item.get if isinstance(item, dict) else lambda k, _i=item: getattr(_i, k, None)
        existing = get(field)
        if isinstance(existing, str) and existing.lower() == needle and get("id") != exclude_id:
            return True
    return False


def collect_errors(checks: Dict[str, Optional[str]]) -> Dict[str, str]:
    return {field: message for field, message in checks.items() if message}
