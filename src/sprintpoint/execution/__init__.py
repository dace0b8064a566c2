"""Tool-calling execution: error classification, orchestration and result parsing.

The orchestrator is imported from ``sprintpoint.execution.orchestrator``
directly; it depends on ``sprintpoint.utils.retry`` which in turn depends
on the classifier exported here.
"""

from .error_classifier import (
    ClassifiedError,
    ErrorKind,
    classify_error,
    is_quota_exceeded,
    is_retriable,
    parse_retry_delay,
    suggested_delay,
)
from .result_parser import (
    ResultParseError,
    extract_json_payload,
    has_json_payload,
    normalize_result,
    parse_estimation_result,
    sanitize,
    sanitize_aggressive,
)

__all__ = [
    # Error classification
    "ErrorKind",
    "ClassifiedError",
    "classify_error",
    "is_retriable",
    "is_quota_exceeded",
    "parse_retry_delay",
    "suggested_delay",
    # Result parsing
    "ResultParseError",
    "extract_json_payload",
    "has_json_payload",
    "normalize_result",
    "parse_estimation_result",
    "sanitize",
    "sanitize_aggressive",
]
