"""Error codes and no-op reasons returned by subscription use cases"""


class ErrorCode:
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SUBSCRIPTION_NOT_FOUND = "SUBSCRIPTION_NOT_FOUND"
    SUBSCRIPTION_NOT_PENDING = "SUBSCRIPTION_NOT_PENDING"
    SUBSCRIPTION_EXISTS = "SUBSCRIPTION_EXISTS"
    PLAN_NOT_FOUND = "PLAN_NOT_FOUND"
    PLAN_NOT_AVAILABLE = "PLAN_NOT_AVAILABLE"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    UNKNOWN_JOB = "UNKNOWN_JOB"
    JOB_ALREADY_RUNNING = "JOB_ALREADY_RUNNING"
    JOB_FAILED = "JOB_FAILED"


class NoOpReason:
    """Why a command left the subscription untouched"""
    ALREADY_APPLIED = "already_applied"
    ILLEGAL_TRANSITION = "illegal_transition"
    PRECONDITION_NOT_MET = "precondition_not_met"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    DUPLICATE_EVENT = "duplicate_event"
