"""SonarFerry error types with typed error codes.

Error code ranges:
- 1xxx: Auth
- 2xxx: Config
- 3xxx: Source API
- 4xxx: Destination API
- 5xxx: Report encoding
- 6xxx: Transfer state
- 7xxx: Transfer / analysis
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Auth (1xxx)
    AUTH_FAILED = 1001

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_MISSING_REQUIRED = 2003
    CONFIG_FILE_NOT_FOUND = 2004

    # Source API (3xxx)
    SOURCE_REQUEST_FAILED = 3001
    SOURCE_UNREACHABLE = 3002
    SOURCE_NOT_FOUND = 3003

    # Destination API (4xxx)
    DESTINATION_REQUEST_FAILED = 4001
    DESTINATION_UNREACHABLE = 4002
    DESTINATION_NOT_FOUND = 4003
    DESTINATION_RATE_LIMITED = 4004

    # Report encoding (5xxx)
    SCHEMA_LOAD_FAILED = 5001
    REPORT_BUILD_FAILED = 5002
    REPORT_ENCODE_FAILED = 5003

    # State (6xxx)
    STATE_INVALID_JSON = 6001
    STATE_LOAD_FAILED = 6002
    STATE_SAVE_FAILED = 6003
    STATE_CLEAR_FAILED = 6004

    # Transfer / analysis (7xxx)
    TRANSFER_NO_BRANCHES = 7001
    ANALYSIS_FAILED = 7002
    ANALYSIS_TIMEOUT = 7003

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class SonarFerryError(Exception):
    """Base error with structured context for logs and summaries."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(SonarFerryError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def missing_required(cls, field: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_REQUIRED,
            message=f"Missing required config field: {field}",
            details={"field": field},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class AuthenticationError(SonarFerryError):
    """Rejected credentials on either server."""

    @classmethod
    def rejected(cls, service: str, reason: str) -> "AuthenticationError":
        return cls(
            code=ErrorCode.AUTH_FAILED,
            message=f"Authentication failed for {service}: {reason}",
            details={"service": service, "reason": reason},
        )


class SourceApiError(SonarFerryError):
    """Errors returned by (or while reaching) the self-hosted server."""

    @property
    def status(self) -> int:
        return int(self.details.get("status", 0))

    @classmethod
    def request_failed(cls, status: int, endpoint: str, reason: str) -> "SourceApiError":
        return cls(
            code=ErrorCode.SOURCE_REQUEST_FAILED,
            message=f"SonarQube API error ({status}): {reason}",
            retryable=status >= 500,
            details={"status": status, "endpoint": endpoint, "reason": reason},
        )

    @classmethod
    def unreachable(cls, base_url: str, endpoint: str, reason: str) -> "SourceApiError":
        return cls(
            code=ErrorCode.SOURCE_UNREACHABLE,
            message=f"Cannot connect to SonarQube server at {base_url} - {reason}",
            retryable=True,
            details={"status": 0, "endpoint": endpoint, "reason": reason},
        )

    @classmethod
    def not_found(cls, what: str) -> "SourceApiError":
        return cls(
            code=ErrorCode.SOURCE_NOT_FOUND,
            message=f"Not found on SonarQube: {what}",
            details={"status": 404, "what": what},
        )


class DestinationApiError(SonarFerryError):
    """Errors returned by (or while reaching) the cloud server."""

    @property
    def status(self) -> int:
        return int(self.details.get("status", 0))

    @classmethod
    def request_failed(cls, status: int, endpoint: str, reason: str) -> "DestinationApiError":
        return cls(
            code=ErrorCode.DESTINATION_REQUEST_FAILED,
            message=f"SonarCloud API error ({status}): {reason}",
            retryable=status >= 500,
            details={"status": status, "endpoint": endpoint, "reason": reason},
        )

    @classmethod
    def unreachable(cls, base_url: str, endpoint: str, reason: str) -> "DestinationApiError":
        return cls(
            code=ErrorCode.DESTINATION_UNREACHABLE,
            message=f"Cannot connect to SonarCloud server at {base_url} - {reason}",
            retryable=True,
            details={"status": 0, "endpoint": endpoint, "reason": reason},
        )

    @classmethod
    def not_found(cls, what: str) -> "DestinationApiError":
        return cls(
            code=ErrorCode.DESTINATION_NOT_FOUND,
            message=f"Not found on SonarCloud: {what}",
            details={"status": 404, "what": what},
        )

    @classmethod
    def rate_limited(cls, status: int, endpoint: str, retries: int) -> "DestinationApiError":
        return cls(
            code=ErrorCode.DESTINATION_RATE_LIMITED,
            message=f"Rate limited ({status}) on {endpoint}, exhausted {retries} retries",
            retryable=True,
            details={"status": status, "endpoint": endpoint, "retries": retries},
        )


class EncodingError(SonarFerryError):
    """Report model building, schema loading and wire encoding errors."""

    @classmethod
    def schema_load_failed(cls, reason: str) -> "EncodingError":
        return cls(
            code=ErrorCode.SCHEMA_LOAD_FAILED,
            message=f"Failed to load report schema: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def build_failed(cls, reason: str, **details: Any) -> "EncodingError":
        return cls(
            code=ErrorCode.REPORT_BUILD_FAILED,
            message=f"Failed to build report model: {reason}",
            details=details,
        )

    @classmethod
    def encode_failed(cls, message_type: str, reason: str) -> "EncodingError":
        return cls(
            code=ErrorCode.REPORT_ENCODE_FAILED,
            message=f"Failed to encode {message_type}: {reason}",
            details={"message_type": message_type, "reason": reason},
        )


class StateError(SonarFerryError):
    """Transfer state file errors."""

    @classmethod
    def invalid_json(cls, path: str, reason: str) -> "StateError":
        return cls(
            code=ErrorCode.STATE_INVALID_JSON,
            message=f"Invalid JSON in state file {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def load_failed(cls, path: str, reason: str) -> "StateError":
        return cls(
            code=ErrorCode.STATE_LOAD_FAILED,
            message=f"Failed to load state from {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def save_failed(cls, path: str, reason: str) -> "StateError":
        return cls(
            code=ErrorCode.STATE_SAVE_FAILED,
            message=f"Failed to save state to {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def clear_failed(cls, path: str, reason: str) -> "StateError":
        return cls(
            code=ErrorCode.STATE_CLEAR_FAILED,
            message=f"Failed to clear state at {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class TransferError(SonarFerryError):
    """Project-level transfer errors."""

    @classmethod
    def no_branches(cls, project_key: str) -> "TransferError":
        return cls(
            code=ErrorCode.TRANSFER_NO_BRANCHES,
            message=f"No branches found for project: {project_key}",
            details={"project_key": project_key},
        )


class AnalysisError(SonarFerryError):
    """Destination-side background processing errors."""

    @classmethod
    def task_failed(cls, task_id: str, status: str, reason: str) -> "AnalysisError":
        return cls(
            code=ErrorCode.ANALYSIS_FAILED,
            message=f"Analysis {status.lower()}: {reason}",
            details={"task_id": task_id, "status": status, "reason": reason},
        )

    @classmethod
    def timeout(cls, task_id: str, waited_sec: float) -> "AnalysisError":
        return cls(
            code=ErrorCode.ANALYSIS_TIMEOUT,
            message=f"Analysis timeout after {waited_sec:g} seconds",
            retryable=True,
            details={"task_id": task_id, "waited_sec": waited_sec},
        )


class InternalError(SonarFerryError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
