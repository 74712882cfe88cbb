"""
Local checks for entity names and page bodies before they reach BookStack.

Each check returns ``(ok, message)``; ``message`` is empty when ``ok`` is
true.  Failing here gives a readable error without a 422 round-trip.
"""

# Entity names live in a VARCHAR(255) column.
MAX_NAME_LENGTH = 255
MAX_CONTENT_BYTES = 1_000_000

_OK = (True, "")


def format_validation_error(field_name: str, reason: str) -> str:
    """Join a field label and a reason, e.g. ``"Page name cannot be empty"``."""
    return f"{field_name} {reason}"


def _blank(text: str) -> bool:
    return not text or text.isspace()


def validate_name(name: str, field_name: str = "Name") -> tuple[bool, str]:
    """Check a shelf, book, chapter or page name.

    Args:
        name: Candidate name.
        field_name: Label used in the error message.
    """
    if _blank(name):
        return False, format_validation_error(field_name, "cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        reason = f"cannot exceed {MAX_NAME_LENGTH} characters"
        return False, format_validation_error(field_name, reason)
    return _OK


def validate_page_name(page_name: str) -> tuple[bool, str]:
    return validate_name(page_name, "Page name")


def validate_content(
    content: str, max_size: int = MAX_CONTENT_BYTES
) -> tuple[bool, str]:
    """Check a page body: not blank and at most *max_size* UTF-8 bytes."""
    if _blank(content):
        return False, format_validation_error("Content", "cannot be empty")
    if len(content.encode("utf-8")) > max_size:
        reason = f"exceeds maximum size of {max_size} bytes"
        return False, format_validation_error("Content", reason)
    return _OK
