"""Estimation pipeline: context gathering, prompts and the service tying them together."""

from .context import (
    compact_sprint_data,
    extract_related_ticket_keys,
    find_parent_reference,
    format_related_context,
    gather_related_ticket_context,
    parse_related_ticket_references,
)
from .prompts import DEFAULT_ESTIMATION_PROMPT, DEFAULT_TOOL_PROMPT, build_estimation_prompt
from .service import EstimationCredentials, EstimationService, build_estimation_service

__all__ = [
    "compact_sprint_data",
    "extract_related_ticket_keys",
    "find_parent_reference",
    "format_related_context",
    "gather_related_ticket_context",
    "parse_related_ticket_references",
    "DEFAULT_ESTIMATION_PROMPT",
    "DEFAULT_TOOL_PROMPT",
    "build_estimation_prompt",
    "EstimationCredentials",
    "EstimationService",
    "build_estimation_service",
]
