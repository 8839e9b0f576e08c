"""
Input validation helpers.

Each validator returns a ValidationResult instead of raising so callers
can collect several errors. Pydantic request models call these from their
field validators and raise on failure.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_PATTERN = re.compile(r"^https?://.+")
UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
TAG_PATTERN = re.compile(r"<[^>]*>")
SPECIAL_CHAR_PATTERN = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

PASSWORD_MIN_LENGTH = 6
STRONG_PASSWORD_MIN_LENGTH = 8
RESOURCE_TITLE_MAX_LENGTH = 200
NOTE_MAX_LENGTH = 5000
REPORT_MAX_LENGTH = 2000
CATEGORY_ID_MAX_LENGTH = 100


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    strength: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


OK = ValidationResult(valid=True)


def _fail(error: str) -> ValidationResult:
    return ValidationResult(valid=False, error=error)


def validate_email(email: Any) -> ValidationResult:
    if not email:
        return _fail("Email is required.")
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email):
        return _fail("Please enter a valid email address.")
    return OK


def password_strength(password: str) -> str:
    """Score length, character classes and special characters into weak/medium/strong."""
    score = sum([
        len(password) >= STRONG_PASSWORD_MIN_LENGTH,
        any(c.isupper() for c in password),
        any(c.islower() for c in password),
        any(c.isdigit() for c in password),
        bool(SPECIAL_CHAR_PATTERN.search(password)),
        len(password) >= 12,
    ])
    if score >= 5:
        return "strong"
    if score >= 3:
        return "medium"
    return "weak"


def validate_password(password: Any, require_strength: bool = False) -> ValidationResult:
    """
    Validate a password.

    Login only checks the minimum length. Sign-up (require_strength=True)
    also needs 8+ characters with upper case, lower case and a digit.

    Examples:
        >>> validate_password("secret").valid
        True
        >>> validate_password("secret", require_strength=True).error
        'Password must be at least 8 characters long.'
        >>> validate_password("Secret123!", require_strength=True).strength
        'strong'
    """
    if not password or not isinstance(password, str):
        return _fail("Password is required.")

    if len(password) < PASSWORD_MIN_LENGTH:
        return _fail(f"Password must be at least {PASSWORD_MIN_LENGTH} characters.")

    if not require_strength:
        return OK

    if len(password) < STRONG_PASSWORD_MIN_LENGTH:
        return _fail(f"Password must be at least {STRONG_PASSWORD_MIN_LENGTH} characters long.")
    if not any(c.isupper() for c in password):
        return _fail("Password must include at least one uppercase letter.")
    if not any(c.islower() for c in password):
        return _fail("Password must include at least one lowercase letter.")
    if not any(c.isdigit() for c in password):
        return _fail("Password must include at least one number.")

    return ValidationResult(valid=True, strength=password_strength(password))


def validate_url(url: Any) -> ValidationResult:
    if not url:
        return _fail("URL is required.")
    if not isinstance(url, str) or not URL_PATTERN.match(url):
        return _fail("Please enter a valid URL starting with http:// or https://")
    return OK


def validate_resource_title(title: Any) -> ValidationResult:
    if not isinstance(title, str) or not title.strip():
        return _fail("Title is required.")
    if len(title) > RESOURCE_TITLE_MAX_LENGTH:
        return _fail(f"Title must be less than {RESOURCE_TITLE_MAX_LENGTH} characters.")
    return OK


def validate_note(note: Any) -> ValidationResult:
    """Notes may be empty."""
    if note and len(note) > NOTE_MAX_LENGTH:
        return _fail(f"Note must be less than {NOTE_MAX_LENGTH} characters.")
    return OK


def validate_report(report: Any) -> ValidationResult:
    if not isinstance(report, str) or not report.strip():
        return _fail("Report reason is required.")
    if len(report) > REPORT_MAX_LENGTH:
        return _fail(f"Report must be {REPORT_MAX_LENGTH} characters or fewer.")
    return OK


def validate_uuid(value: Any) -> ValidationResult:
    """None and '' are accepted (optional ids)."""
    if value is None or value == "":
        return OK
    if not isinstance(value, str):
        return _fail("Invalid UUID type.")
    if len(value) != 36:
        return _fail("Invalid UUID length.")
    if not UUID_PATTERN.match(value):
        return _fail("Invalid UUID format.")
    return OK


def _category_ids(categories: Iterable[Mapping[str, Any]]):
    for category in categories:
        yield category.get("id")
        for sub in category.get("subcategories") or []:
            yield sub.get("id")


def validate_category_id(
    category_id: Any,
    allowed_categories: Optional[Iterable[Mapping[str, Any]]] = None,
) -> ValidationResult:
    """
    Validate a category id against the categories the user can see.

    None means "all categories" and is valid. When allowed_categories is
    non-empty the id must match a category or one of its subcategories.
    """
    if category_id is None:
        return OK
    if not isinstance(category_id, str):
        return _fail("Invalid category ID type.")
    if len(category_id) > CATEGORY_ID_MAX_LENGTH:
        return _fail("Category ID exceeds maximum length.")

    allowed = list(allowed_categories or [])
    if allowed and category_id not in set(_category_ids(allowed)):
        logger.warning(f"Category ID not in allowed categories: {category_id[:36]}")
        return _fail("Category not found in allowed list.")

    return OK


def sanitize_input(text: Any, max_length: int = 1000) -> str:
    """
    Strip HTML tags, trim, and cut to max_length.

    Examples:
        >>> sanitize_input("  <b>Hello</b> world  ")
        'Hello world'
        >>> sanitize_input(None)
        ''
    """
    if not text or not isinstance(text, str):
        return ""
    return TAG_PATTERN.sub("", text).strip()[:max_length]
