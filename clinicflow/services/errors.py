# clinicflow/services/errors.py
"""
Service-layer errors.

Services raise these; the FastAPI app turns them into responses in one
exception handler (see clinicflow/main.py). Every error is scoped to the
request that raised it.
"""


class ClinicError(Exception):
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ClinicError):
    """Missing or malformed input. Fixed by the caller correcting it."""

    status_code = 422


class CapacityError(ValidationError):
    """Slot full or insufficient stock."""


class StateTransitionError(ClinicError):
    """Action is not valid from the entity's current status."""

    status_code = 400


class ConflictError(ClinicError):
    """Version mismatch or a race lost at commit time. Reload and retry."""

    status_code = 409


class SlotTakenError(CapacityError, ConflictError):
    """The slot filled up between the availability check and the insert."""

    status_code = 409


class NotFoundError(ClinicError):
    status_code = 404
