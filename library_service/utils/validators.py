import re
from datetime import date

from library_service.utils.errors import ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ISBNValidator:
    """ISBN-10 / ISBN-13 checksum validation."""

    @staticmethod
    def normalize_isbn(raw: str) -> str:
        if raw is None:
            return ""
        s = re.sub(r"[^0-9Xx]", "", raw)
        return s.upper()

    @staticmethod
    def is_valid_isbn(isbn: str) -> bool:
        if not isbn:
            return False
        s = ISBNValidator.normalize_isbn(isbn)
        if len(s) == 10:
            if not s[:-1].isdigit():
                return False
            total = sum(i * int(ch) for i, ch in enumerate(s[:-1], 1))
            check = s[-1]
            if check == "X":
                check_val = 10
            elif check.isdigit():
                check_val = int(check)
            else:
                return False
            return (total + 10 * check_val) % 11 == 0
        if len(s) == 13 and s.isdigit():
            total = sum((1 if i % 2 == 0 else 3) * int(ch) for i, ch in enumerate(s[:-1]))
            return (10 - (total % 10)) % 10 == int(s[-1])
        return False


def require_text(data: dict, key: str, min_length: int = 1, message: str | None = None) -> str:
    value = data.get(key)
    value = value.strip() if isinstance(value, str) else ""
    if len(value) < min_length:
        if message is None:
            message = f"{key} is required" if min_length <= 1 else f"{key} must be at least {min_length} characters"
        raise ValidationError(message)
    return value


def optional_text(data: dict, key: str):
    value = data.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def require_email(data: dict, key: str = "email") -> str:
    value = (data.get(key) or "")
    value = value.strip().lower() if isinstance(value, str) else ""
    if not EMAIL_RE.match(value):
        raise ValidationError("Valid email is required")
    return value


def require_int(data: dict, key: str, minimum: int | None = None, maximum: int | None = None,
                message: str | None = None) -> int:
    value = data.get(key)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise ValidationError(message or f"{key} must be an integer")
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message or f"{key} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(message or f"{key} must be at least {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(message or f"{key} must be at most {maximum}")
    return value


def require_bool(data: dict, key: str) -> bool:
    value = data.get(key)
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean")
    return value


def require_isbn(data: dict, key: str = "isbn") -> str:
    value = data.get(key)
    if not isinstance(value, str) or not ISBNValidator.is_valid_isbn(value):
        raise ValidationError("Valid ISBN is required")
    return value.strip()


def require_published_year(data: dict, key: str = "published_year") -> int:
    return require_int(data, key, minimum=1000, maximum=date.today().year,
                       message="Valid published year is required")


def parse_bool_arg(value):
    """Query-string flag: 'true'/'false', anything else means 'not filtered'."""
    if value is None or value == "":
        return None
    return str(value).lower() == "true"


def parse_int_arg(args, key: str, minimum: int = 1):
    """Optional integer query-string filter; present but malformed is a 400."""
    if not args.get(key):
        return None
    return require_int(args, key, minimum=minimum)
