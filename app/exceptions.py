"""Domain errors raised by services and rendered by the API error handler."""

from typing import Any


class KermHostError(Exception):
    """Base class for errors that map onto an API error envelope."""

    code = "ERROR"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(KermHostError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request"


class NotFound(KermHostError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"

    def __init__(self, resource: str = "Resource", message: str | None = None):
        super().__init__(message or f"{resource} not found", {"resource": resource})


class InsufficientBalance(KermHostError):
    code = "INSUFFICIENT_BALANCE"
    status_code = 402
    default_message = "Not enough coins"

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Not enough coins: {required} required, {available} available",
            {"required": required, "available": available},
        )


class BotNotApproved(KermHostError):
    code = "BOT_NOT_APPROVED"
    status_code = 403
    default_message = "Bot is not approved for deployment"


class NoCapacityAvailable(KermHostError):
    code = "NO_CAPACITY_AVAILABLE"
    status_code = 503
    default_message = "No hosting account has free capacity, try again later"


class ExternalServiceFailure(KermHostError):
    code = "EXTERNAL_SERVICE_FAILURE"
    status_code = 502
    default_message = "External service call failed"

    def __init__(self, service: str, message: str, status: int | None = None):
        self.service = service
        self.upstream_status = status
        details = {"service": service}
        if status is not None:
            details["status"] = status
        super().__init__(f"{service}: {message}", details)


class InvalidDeploymentState(KermHostError):
    code = "INVALID_DEPLOYMENT_STATE"
    status_code = 409
    default_message = "Deployment is not in a state that allows this action"


class DailyClaimCooldown(KermHostError):
    code = "DAILY_CLAIM_COOLDOWN"
    status_code = 429
    default_message = "Daily reward already claimed"

    def __init__(self, hours_remaining: int, next_claim_time: str):
        super().__init__(
            f"Daily reward already claimed, come back in {hours_remaining}h",
            {"hours_remaining": hours_remaining, "next_claim_time": next_claim_time},
        )


class MaintenanceActive(KermHostError):
    code = "MAINTENANCE"
    status_code = 503
    default_message = "Platform is under maintenance"


class EmailAlreadyRegistered(KermHostError):
    code = "EMAIL_ALREADY_REGISTERED"
    status_code = 409
    default_message = "This email belongs to another account, verify it to sign in with this identity"
