# core/approval/exceptions.py
"""
Errors raised by the approval engine.

Each error carries the errCode that the JSON envelope reports to callers.
"""


class ApprovalError(Exception):
    err_code = 500
    default_message = "Approval error."

    def __init__(self, message=None, *, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFoundError(ApprovalError):
    err_code = 404
    default_message = "Approval request not found."


class InvalidStateError(ApprovalError):
    err_code = 409
    default_message = "The request is not in a state that allows this action."


class ForbiddenError(ApprovalError):
    err_code = 403
    default_message = "You are not allowed to perform this action."


class ValidationError(ApprovalError):
    err_code = 400
    default_message = "Invalid input."


class ConfigurationError(ApprovalError):
    err_code = 500
    default_message = "No approval chain is configured for this request type."
