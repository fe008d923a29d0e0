"""
Quiz Engine
Custom exception classes for structured error handling
"""

from typing import Optional, Dict, Any
from fastapi import status


class AppException(Exception):
    """Base application exception with structured error information"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


# Authentication Exceptions
class AuthenticationException(AppException):
    """Raised when no authenticated principal is present"""

    def __init__(
        self,
        message: str = "Authentication required",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTHENTICATION_FAILED",
            details=details
        )


# Authorization Exceptions
class AuthorizationException(AppException):
    """Raised when user lacks permission for an action"""

    def __init__(
        self,
        message: str = "Access denied",
        required_role: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if details is None:
            details = {}

        if required_role:
            details["required_role"] = required_role

        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="ACCESS_DENIED",
            details=details
        )


# Validation Exceptions
class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        value: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if details is None:
            details = {}

        if field:
            details["field"] = field
        if value is not None:
            details["provided_value"] = str(value)

        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_ERROR",
            details=details
        )


class QuestionDefinitionException(ValidationException):
    """Raised when a question violates its type's structural rules"""

    def __init__(self, message: str, question_type: Optional[str] = None):
        super().__init__(
            message=message,
            field="options",
            details={"question_type": question_type} if question_type else None
        )


class ValueRangeException(ValidationException):
    """Raised when value is out of allowed range"""

    def __init__(
        self,
        field: str,
        value: Any,
        min_value: Optional[Any] = None,
        max_value: Optional[Any] = None
    ):
        range_str = ""
        if min_value is not None and max_value is not None:
            range_str = f" (allowed range: {min_value} - {max_value})"
        elif min_value is not None:
            range_str = f" (minimum: {min_value})"
        elif max_value is not None:
            range_str = f" (maximum: {max_value})"

        super().__init__(
            message=f"Value for {field} is out of range{range_str}",
            field=field,
            value=value,
            details={
                "min_value": min_value,
                "max_value": max_value,
                "validation_rule": "range"
            }
        )


# Resource Exceptions
class NotFoundException(AppException):
    """Raised when requested resource is not found"""

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None
    ):
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
            details=details
        )


class QuizNotFoundException(NotFoundException):
    """Raised when quiz is not found"""

    def __init__(self, quiz_id: str):
        super().__init__(
            message="Quiz not found",
            resource_type="quiz",
            resource_id=str(quiz_id)
        )


class QuestionNotFoundException(NotFoundException):
    """Raised when question is not found in the quiz"""

    def __init__(self, question_id: str):
        super().__init__(
            message="Question not found",
            resource_type="question",
            resource_id=str(question_id)
        )


class SubmissionNotFoundException(NotFoundException):
    """Raised when submission is not found"""

    def __init__(self, submission_id: str):
        super().__init__(
            message="Submission not found",
            resource_type="submission",
            resource_id=str(submission_id)
        )


class AnswerNotFoundException(NotFoundException):
    """Raised when answer is not part of the submission"""

    def __init__(self, answer_id: str):
        super().__init__(
            message="Answer not found",
            resource_type="answer",
            resource_id=str(answer_id)
        )


# Conflict Exceptions
class ConflictException(AppException):
    """Raised when operation conflicts with current state"""

    def __init__(
        self,
        message: str = "Conflict with current state",
        conflict_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "CONFLICT"
    ):
        if details is None:
            details = {}

        if conflict_type:
            details["conflict_type"] = conflict_type

        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code=error_code,
            details=details
        )


class InvalidStatusTransitionException(ConflictException):
    """Raised when a lifecycle transition is not allowed"""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            message=f"Cannot move {entity} from '{current}' to '{target}'",
            conflict_type="status_transition",
            details={"entity": entity, "current_status": current, "target_status": target},
            error_code="INVALID_STATUS_TRANSITION"
        )


class QuizLockedException(ConflictException):
    """Raised when quiz structure is changed after students have submitted"""

    def __init__(self, quiz_id: str):
        super().__init__(
            message="Cannot modify quiz structure after students have submitted",
            conflict_type="quiz_locked",
            details={"quiz_id": str(quiz_id)}
        )


# Business Logic Exceptions
class BusinessLogicException(AppException):
    """Raised when business rules are violated"""

    def __init__(
        self,
        message: str,
        rule_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        error_code: str = "BUSINESS_RULE_VIOLATION"
    ):
        if details is None:
            details = {}

        if rule_name:
            details["violated_rule"] = rule_name

        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details
        )


class AdmissionException(BusinessLogicException):
    """Base for refusals to start or resume a quiz attempt"""

    def __init__(
        self,
        message: str,
        quiz_id: str,
        error_code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        details["quiz_id"] = str(quiz_id)
        super().__init__(
            message=message,
            rule_name="quiz_admission",
            details=details,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=error_code
        )


class QuizNotAvailableException(AdmissionException):
    """Raised when quiz is not published"""

    def __init__(self, quiz_id: str):
        super().__init__("Quiz is not available", quiz_id, "QUIZ_NOT_AVAILABLE")


class QuizNotStartedException(AdmissionException):
    """Raised before the quiz window opens"""

    def __init__(self, quiz_id: str, start_date):
        super().__init__(
            "Quiz has not started yet", quiz_id, "QUIZ_NOT_STARTED",
            details={"start_date": start_date.isoformat()}
        )


class QuizEndedException(AdmissionException):
    """Raised after the quiz window closes"""

    def __init__(self, quiz_id: str, end_date):
        super().__init__(
            "Quiz has ended", quiz_id, "QUIZ_ENDED",
            details={"end_date": end_date.isoformat()}
        )


class MaxAttemptsExceededException(AdmissionException):
    """Raised when maximum quiz attempts are exceeded"""

    def __init__(self, quiz_id: str, max_attempts: int, current_attempts: int):
        super().__init__(
            f"Maximum attempts ({max_attempts}) reached",
            quiz_id,
            "ATTEMPTS_EXHAUSTED",
            details={
                "max_attempts": max_attempts,
                "current_attempts": current_attempts
            }
        )


class NoActiveAttemptException(BusinessLogicException):
    """Raised when submitting without an in-progress attempt"""

    def __init__(self, quiz_id: str):
        super().__init__(
            message="No active quiz attempt found",
            rule_name="active_attempt_required",
            details={"quiz_id": str(quiz_id)},
            error_code="NO_ACTIVE_ATTEMPT"
        )


class TimeExpiredException(BusinessLogicException):
    """Raised when an attempt is submitted past its time limit"""

    def __init__(self, submission_id: str, elapsed_minutes: float, limit_minutes: float):
        super().__init__(
            message="Quiz time has expired",
            rule_name="time_limit",
            details={
                "submission_id": str(submission_id),
                "elapsed_minutes": round(elapsed_minutes, 2),
                "limit_minutes": limit_minutes
            },
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="TIME_EXPIRED"
        )


class QuizPublishException(BusinessLogicException):
    """Raised when quiz cannot be published"""

    def __init__(self, reason: str, quiz_id: str):
        super().__init__(
            message=reason,
            rule_name="quiz_publish",
            details={"quiz_id": str(quiz_id)}
        )


class GradeSubmissionException(BusinessLogicException):
    """Raised when a manual grade cannot be recorded"""

    def __init__(self, reason: str, submission_id: str):
        super().__init__(
            message=f"Cannot grade answer: {reason}",
            rule_name="grade_submission",
            details={"submission_id": str(submission_id), "reason": reason}
        )


# Export all exceptions
__all__ = [
    # Base
    "AppException",

    # Authentication / Authorization
    "AuthenticationException",
    "AuthorizationException",

    # Validation
    "ValidationException",
    "QuestionDefinitionException",
    "ValueRangeException",

    # Resources
    "NotFoundException",
    "QuizNotFoundException",
    "QuestionNotFoundException",
    "SubmissionNotFoundException",
    "AnswerNotFoundException",

    # Conflicts
    "ConflictException",
    "InvalidStatusTransitionException",
    "QuizLockedException",

    # Business Logic
    "BusinessLogicException",
    "AdmissionException",
    "QuizNotAvailableException",
    "QuizNotStartedException",
    "QuizEndedException",
    "MaxAttemptsExceededException",
    "NoActiveAttemptException",
    "TimeExpiredException",
    "QuizPublishException",
    "GradeSubmissionException",
]
