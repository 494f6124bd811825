"""
errors.py — AppError hierarchy and error code registry.

Every error returned by the budget API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Error kinds are a closed set of AppError subclasses. The HTTP status is a
property of the kind, so the global handler never inspects message text:

  ValidationFailed       400  malformed or inconsistent input
  PermissionDenied       403  caller may not perform the action
  NotFound               404  trip, budget, member or expense missing
  Conflict               409  duplicate budget, creator invariant broken
  BusinessRuleViolation  422  valid input that breaks a budget rule

Codes are a versioned contract. Messages are human-readable prose and may be
improved at any time.
"""

from __future__ import annotations


class AppError(Exception):

    http_status: int = 500

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int | None = None,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code    = code
        self.message = message
        if http_status is not None:
            self.http_status = http_status
        self.field = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {
            "success": False,
            "message": self.message,
            "error":   payload,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class ValidationFailed(AppError):
    http_status = 400


class PermissionDenied(AppError):
    http_status = 403


class NotFound(AppError):
    http_status = 404


class Conflict(AppError):
    http_status = 409


class BusinessRuleViolation(AppError):
    http_status = 422


class AuthenticationError(AppError):
    http_status = 401


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by kind. These are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Validation (400) ───────────────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_ID                 = "INVALID_ID"
    INVALID_AMOUNT             = "INVALID_AMOUNT"
    INVALID_CURRENCY           = "INVALID_CURRENCY"
    CURRENCY_MISMATCH          = "CURRENCY_MISMATCH"
    INVALID_DATE               = "INVALID_DATE"
    INVALID_SPLIT_METHOD       = "INVALID_SPLIT_METHOD"
    INVALID_CLONE_MODE         = "INVALID_CLONE_MODE"
    SPLITS_REQUIRED            = "SPLITS_REQUIRED"
    DUPLICATE_SPLIT_USER       = "DUPLICATE_SPLIT_USER"
    SPLIT_USER_NOT_MEMBER      = "SPLIT_USER_NOT_MEMBER"
    SPLIT_USER_PAST_MEMBER     = "SPLIT_USER_PAST_MEMBER"
    SPLIT_SUM_MISMATCH         = "SPLIT_SUM_MISMATCH"
    PERCENTAGE_SUM_INVALID     = "PERCENTAGE_SUM_INVALID"
    NO_ACTIVE_MEMBERS          = "NO_ACTIVE_MEMBERS"
    PAYER_NOT_MEMBER           = "PAYER_NOT_MEMBER"
    BUDGET_MEMBER_NOT_IN_TRIP  = "BUDGET_MEMBER_NOT_IN_TRIP"
    CONFLICTING_BUDGET_INPUT   = "CONFLICTING_BUDGET_INPUT"
    IMMUTABLE_FIELD            = "IMMUTABLE_FIELD"

    # ── Permission (403) ───────────────────────────────────────────────────
    FORBIDDEN                  = "FORBIDDEN"
    NOT_TRIP_CREATOR           = "NOT_TRIP_CREATOR"
    NOT_BUDGET_MEMBER          = "NOT_BUDGET_MEMBER"
    PAST_MEMBER_READ_ONLY      = "PAST_MEMBER_READ_ONLY"
    MEMBER_RULE_DISABLED       = "MEMBER_RULE_DISABLED"
    NOT_EXPENSE_OWNER          = "NOT_EXPENSE_OWNER"

    # ── Not Found (404) ────────────────────────────────────────────────────
    TRIP_NOT_FOUND             = "TRIP_NOT_FOUND"
    BUDGET_NOT_FOUND           = "BUDGET_NOT_FOUND"
    BUDGET_MEMBER_NOT_FOUND    = "BUDGET_MEMBER_NOT_FOUND"
    EXPENSE_NOT_FOUND          = "EXPENSE_NOT_FOUND"
    NOT_FOUND                  = "NOT_FOUND"

    # ── Conflict (409) ─────────────────────────────────────────────────────
    BUDGET_EXISTS              = "BUDGET_EXISTS"
    CREATOR_INVARIANT          = "CREATOR_INVARIANT"

    # ── Business Rule (422) ────────────────────────────────────────────────
    CONTRIBUTION_BELOW_SPENT   = "CONTRIBUTION_BELOW_SPENT"
    CANNOT_RETIRE_CREATOR      = "CANNOT_RETIRE_CREATOR"

    # ── Auth (401) ─────────────────────────────────────────────────────────
    # 401 = we do not know who you are; 403 = we know, but you may not.
    TOKEN_MISSING              = "TOKEN_MISSING"
    TOKEN_INVALID              = "TOKEN_INVALID"
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"

    # ── System (500) ───────────────────────────────────────────────────────
    METHOD_NOT_ALLOWED         = "METHOD_NOT_ALLOWED"
    HTTP_ERROR                 = "HTTP_ERROR"
    INTERNAL_ERROR             = "INTERNAL_ERROR"
