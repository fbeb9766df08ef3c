"""
Scheduler errors.

Each error is a decision the caller has to react to (reject the request, pick
another slot), not a transient failure. ``status_code`` is what the HTTP layer
answers with; store errors are not wrapped and surface as 500s.
"""
from fastapi import Request
from fastapi.responses import JSONResponse


class SchedulerError(Exception):
    status_code = 400
    default_message = "Booking request rejected"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingTenantContext(SchedulerError):
    status_code = 403
    default_message = "Tenant context is required"


class InvalidTimestamp(SchedulerError):
    default_message = "Invalid scheduled_at timestamp"


class SlotUnavailable(SchedulerError):
    default_message = "Slot unavailable (booking or buffer overlap)"


class InvalidStatus(SchedulerError):
    default_message = "Invalid failure status"


class InvalidSlotLength(SchedulerError):
    default_message = "slotMinutes must be a positive integer"


class NotFound(SchedulerError):
    status_code = 404
    default_message = "Booking not found"


async def scheduler_error_handler(request: Request, exc: SchedulerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
