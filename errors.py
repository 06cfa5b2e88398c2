from typing import Any, Dict, List


class AgriTrustError(Exception):
    pass


class ValidationError(AgriTrustError):
    """Malformed or out-of-range input. ``issues`` lists every violation."""

    def __init__(self, issues: List[Dict[str, Any]], message: str = "invalid record payload"):
        super().__init__(message)
        self.message = message
        self.issues = issues


class NotFoundError(AgriTrustError):
    def __init__(self, what: str, key: str):
        super().__init__(f"{what} not found: {key}")
        self.what = what
        self.key = key


class DuplicateRecordError(AgriTrustError):
    def __init__(self, what: str, key: str):
        super().__init__(f"{what} already exists: {key}")
        self.what = what
        self.key = key
