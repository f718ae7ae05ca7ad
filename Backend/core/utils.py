from datetime import UTC, datetime
import re

from core.constants import API_NAME_PATTERN


_API_NAME_RE = re.compile(API_NAME_PATTERN)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def naive_utc_now():
    return datetime.now(UTC).replace(tzinfo=None)


class ApiNameHelper:
    """Collection of helper methods for deriving and checking API names."""

    @staticmethod
    def derive(name: str) -> str:
        """Snake-case token for `name`, or an empty string if nothing usable remains."""
        token = _NON_ALNUM_RE.sub("_", name.strip().lower()).strip("_")
        if token and not token[0].isalpha():
            token = f"field_{token}"
        return token

    @staticmethod
    def is_valid(api_name: str) -> bool:
        return bool(api_name) and _API_NAME_RE.fullmatch(api_name) is not None

    @staticmethod
    def next_available(base: str, taken: set[str]) -> str:
        if base not in taken:
            return base
        suffix = 2
        while f"{base}_{suffix}" in taken:
            suffix += 1
        return f"{base}_{suffix}"
