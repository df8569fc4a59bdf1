from typing import Optional


class CatalogError(Exception):
    """Base class for all failures raised by the catalog core."""


class NotFound(CatalogError):
    def __init__(self, what: str, key: str):
        self.what = what
        self.key = key
        super().__init__(f"{what} not found: {key}")


class DuplicateRequest(CatalogError):
    def __init__(self, existing):
        self.existing = existing
        super().__init__(f'A pending request for "{existing.movie_name}" already exists')


class AlreadyCataloged(CatalogError):
    def __init__(self, record):
        self.record = record
        super().__init__(f'"{record.name}" is already in the catalog')


class AlreadyProcessed(CatalogError):
    def __init__(self, request):
        self.request = request
        super().__init__(f"Request {request.id} is already {request.status.value}")


class InvalidInput(CatalogError):
    pass


class InvalidUrl(InvalidInput):
    def __init__(self, fragment: str, reason: Optional[str] = None):
        self.fragment = fragment
        message = f'Invalid URL: "{fragment}"'
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class StoreIOError(CatalogError):
    """Reading or writing a persisted collection failed."""


class PermissionDenied(CatalogError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("You do not have permission to use this command.")
