"""
Custom exceptions for Jeopardy Trainer

This module contains all custom exceptions used throughout the application.
"""


class JeopardyTrainerException(Exception):
    """Base exception for all Jeopardy Trainer exceptions"""


class ConfigurationError(JeopardyTrainerException):
    """Raised when a feature is missing required configuration"""


class ValidationError(JeopardyTrainerException):
    """Raised when validation fails"""


class AuthenticationError(JeopardyTrainerException):
    """Raised when authentication fails"""


class AuthorizationError(JeopardyTrainerException):
    """Raised when authorization fails"""


class AccountPendingApprovalError(AuthorizationError):
    """Raised when an unapproved account tries to sign in"""


class SessionExpiredError(AuthenticationError):
    """Raised when a server-side session has expired"""


class NotFoundError(JeopardyTrainerException):
    """Raised when a user, question, game or session is not found"""


class ConflictError(JeopardyTrainerException):
    """Raised when an action conflicts with the current state"""


class DatabaseError(JeopardyTrainerException):
    """Raised when there's a database error"""


class AIServiceError(JeopardyTrainerException):
    """Raised when AI service fails"""


class SchemaValidationError(AIServiceError):
    """Raised when model output does not match the expected schema"""


class EmailDeliveryError(JeopardyTrainerException):
    """Raised when an email provider rejects a message"""
