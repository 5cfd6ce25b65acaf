# crowdwatch/errors.py
"""
Typed errors raised by the services.
main.py maps each to an HTTP status with an {"error": message} body.
"""


class CrowdWatchError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CrowdWatchError):
    """Input constraints violated (threshold > capacity, empty name, ...)."""
    status_code = 400


class NotFound(CrowdWatchError):
    """Targeted entity missing or owned by another tenant."""
    status_code = 404


class AreaNotFound(NotFound):
    def __init__(self, area_id: int):
        super().__init__(f"Area not found with id: {area_id}")
        self.area_id = area_id


class Conflict(CrowdWatchError):
    # 400 rather than 409: existing dashboards expect it
    status_code = 400


class Unauthorized(CrowdWatchError):
    status_code = 401


class StoreError(CrowdWatchError):
    status_code = 500


class StoreTimeout(StoreError):
    status_code = 503
