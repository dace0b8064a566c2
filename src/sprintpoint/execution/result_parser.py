"""Locate, sanitize and normalize the estimation JSON in model output.

Models do not reliably emit clean JSON: the payload may sit in a fenced
block, in an untagged fence, or loose in prose, and it sometimes carries
control characters, trailing commas or single quotes. Parsing never fails
on out-of-range values; every bounded field is clamped instead.
"""

import json
import math
import re
from typing import Any, Dict, List, Optional

from sprintpoint.models.estimation import (
    UNKNOWN_FEATURE,
    AILeverage,
    EstimationResult,
    PermissionCheckItem,
    PointCandidate,
    RaisePermissionCheck,
    ReferenceTicket,
    RelatedPR,
    SimilarityBreakdown,
    SimilarTicket,
    TicketDiff,
    WorkloadFeatures,
    WorkTypeBreakdown,
)
from sprintpoint.utils.logger import get_logger
from sprintpoint.utils.story_points import (
    normalize_point,
    should_suggest_split,
    to_number,
)

logger = get_logger(__name__)

JSON_FENCE_PATTERN = re.compile(r"```json\s*\n?([\s\S]*?)\n?```")
ANY_FENCE_PATTERN = re.compile(r"```[\w-]*[ \t]*\n?([\s\S]*?)\n?```")
RAW_OBJECT_PATTERN = re.compile(r'\{[\s\S]*"estimatedPoints"[\s\S]*\}')

# Control characters except tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_BARE_KEY = re.compile(r"([{,]\s*)(\w+)(\s*:)")

REDUCTION_DOWN_ONE_LEVEL = "down_one_level"
REDUCTION_NONE = "none"


class ResultParseError(Exception):
    """Raised when no estimation JSON can be located or decoded."""

    pass


def has_json_payload(text: str) -> bool:
    """Quick check used to decide whether a recovery prompt is needed."""
    if not text:
        return False
    return "```json" in text or RAW_OBJECT_PATTERN.search(text) is not None


def extract_json_payload(text: str) -> str:
    """
    Find the JSON candidate in model output.

    Tried in order: a ```json fence, any fenced block, then a raw object
    containing "estimatedPoints". First match wins.

    Raises:
        ResultParseError: When none of the patterns match
    """
    text = text or ""
    for pattern, label in (
        (JSON_FENCE_PATTERN, "json fence"),
        (ANY_FENCE_PATTERN, "code fence"),
    ):
        match = pattern.search(text)
        if match:
            logger.debug(f"Found estimation payload in {label}")
            return match.group(1)

    match = RAW_OBJECT_PATTERN.search(text)
    if match:
        logger.debug("Found raw estimation object")
        return match.group(0)

    raise ResultParseError(
        f"No JSON block found in model response "
        f"(length: {len(text)}, preview: {text[:200]!r})"
    )


def sanitize(text: str) -> str:
    """Strip control characters and trailing commas before } or ]."""
    text = _CONTROL_CHARS.sub("", text)
    return _TRAILING_COMMA.sub(r"\1", text)


def sanitize_aggressive(text: str) -> str:
    """Second pass for almost-JSON: single quotes, bare keys and a BOM."""
    text = sanitize(text)
    text = text.replace("'", '"')
    text = _BARE_KEY.sub(r'\1"\2"\3', text)
    return text.lstrip("\ufeff").strip()


def parse_estimation_result(text: str) -> EstimationResult:
    """
    Parse model output into a normalized EstimationResult.

    Raises:
        ResultParseError: When no JSON is found or it cannot be decoded
            even after aggressive sanitization
    """
    candidate = extract_json_payload(text)

    try:
        payload = json.loads(sanitize(candidate))
    except json.JSONDecodeError:
        logger.warning("Estimation JSON invalid, retrying with aggressive sanitization")
        try:
            payload = json.loads(sanitize_aggressive(candidate))
        except json.JSONDecodeError as e:
            raise ResultParseError(f"Failed to decode estimation JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ResultParseError(
            f"Estimation JSON must be an object, got {type(payload).__name__}"
        )

    return normalize_result(payload)


def _number(value: Any, default: float = 0) -> float:
    number = to_number(value)
    if number is None or not math.isfinite(number):
        return default
    return number


def _clamp(value: Any, low: float, high: float) -> float:
    return min(high, max(low, _number(value)))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp_int(value: Any, low: int, high: int) -> int:
    return min(high, max(low, _round_half_up(_number(value))))


def _score(value: Any) -> float:
    """0-10 score with one decimal."""
    return min(10.0, max(0.0, math.floor(_number(value) * 10 + 0.5) / 10))


def _non_negative(value: Any) -> float:
    number = _number(value)
    if number <= 0:
        return 0
    return int(number) if number == int(number) else number


def _text(value: Any, default: str = "") -> str:
    if value is None or value == "":
        return default
    return value if isinstance(value, str) else str(value)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _section(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def _reasons(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [_text(item) for item in value if item is not None]
    return [_text(value)]


def _breakdown(raw: Any) -> SimilarityBreakdown:
    raw = raw if isinstance(raw, dict) else {}
    return SimilarityBreakdown(
        type_match=_clamp(raw.get("W1_typeMatch"), 0, 6),
        scope_match=_clamp(raw.get("W2_scopeMatch"), 0, 2),
        investigation_match=_clamp(raw.get("W3_investigationMatch"), 0, 1),
        pr_workload_match=_clamp(raw.get("W4_prWorkloadMatch"), 0, 1),
        lexical_bonus=0,
    )


def _reference_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    summary = raw.get("summary")
    return {
        "key": _text(raw.get("key"), "N/A"),
        "summary": None if summary is None else _text(summary),
        "points": _non_negative(raw.get("points")),
        "similarity_score": _score(raw.get("workloadSimilarityScore")),
        "breakdown": _breakdown(raw.get("workloadSimilarityBreakdown")),
        "similarity_reason": _reasons(raw.get("similarityReason")),
    }


def _diff(raw: Any) -> TicketDiff:
    raw = raw if isinstance(raw, dict) else {}
    return TicketDiff(
        scope_diff=_clamp_int(raw.get("scopeDiff"), -2, 2),
        file_diff=_clamp_int(raw.get("fileDiff"), -2, 2),
        logic_diff=_clamp_int(raw.get("logicDiff"), -2, 2),
        risk_diff=_clamp_int(raw.get("riskDiff"), -2, 2),
        diff_total=_clamp_int(raw.get("diffTotal"), -8, 8),
        diff_reason=_text(raw.get("diffReason")),
    )


def _related_prs(raw: Any) -> List[RelatedPR]:
    if not isinstance(raw, list):
        return []
    prs = []
    for pr in raw:
        if not isinstance(pr, dict):
            continue
        prs.append(
            RelatedPR(
                number=max(0, _round_half_up(_number(pr.get("number")))),
                summary=_text(pr.get("summary")),
                files_changed=max(0, _round_half_up(_number(pr.get("filesChanged")))),
                commits=max(0, _round_half_up(_number(pr.get("commits")))),
                lead_time_days=_non_negative(pr.get("leadTimeDays")),
            )
        )
    return prs


def _similar_tickets(raw: Any) -> List[SimilarTicket]:
    if not isinstance(raw, list):
        return []
    return [
        SimilarTicket(
            **_reference_fields(ticket),
            diff=_diff(ticket.get("diff")),
            related_prs=_related_prs(ticket.get("relatedPRs")),
        )
        for ticket in raw
        if isinstance(ticket, dict)
    ]


def _work_types(raw: Dict[str, Any]) -> WorkTypeBreakdown:
    return WorkTypeBreakdown(
        small_existing_change=_clamp_int(raw.get("T1_small_existing_change"), 0, 2),
        pattern_reuse=_clamp_int(raw.get("T2_pattern_reuse"), 0, 2),
        new_logic_design=_clamp_int(raw.get("T3_new_logic_design"), 0, 2),
        cross_system_impact=_clamp_int(raw.get("T4_cross_system_impact"), 0, 2),
        investigation_heavy=_clamp_int(raw.get("T5_investigation_heavy"), 0, 2),
        data_backfill_heavy=_clamp_int(raw.get("T6_data_backfill_heavy"), 0, 2),
    )


def _permission_item(raw: Any) -> PermissionCheckItem:
    raw = raw if isinstance(raw, dict) else {}
    return PermissionCheckItem(
        passed=_flag(raw.get("passed")), evidence=_text(raw.get("evidence"))
    )


def _point_candidates(raw: Any) -> List[PointCandidate]:
    if not isinstance(raw, list):
        return []
    return [
        PointCandidate(
            points=normalize_point(candidate.get("points")),
            candidate_reason=_text(candidate.get("candidateReason")),
        )
        for candidate in raw
        if isinstance(candidate, dict)
    ]


def normalize_result(payload: Dict[str, Any]) -> EstimationResult:
    """
    Clamp and default every field of a decoded estimation payload.

    Missing nested sections are filled with zero / "N/A" / "unknown"
    defaults, so consumers can rely on every key being present. The
    function is a projection: normalizing ``to_dict()`` of a result
    yields an equal result.
    """
    points = normalize_point(payload.get("estimatedPoints"))

    baseline_raw = _section(payload, "baseline")
    baseline = ReferenceTicket(**_reference_fields(baseline_raw))

    features_raw = _section(payload, "workloadFeatures")
    leverage_raw = _section(payload, "aiLeverage")
    permission_raw = _section(payload, "raisePermissionCheck")

    applied = leverage_raw.get("appliedReduction")
    result = EstimationResult(
        estimated_points=points,
        reasoning=_text(payload.get("reasoning")),
        should_split=_flag(payload.get("shouldSplit")) or should_suggest_split(points),
        split_suggestion=_text(payload.get("splitSuggestion")),
        baseline=baseline,
        work_type_breakdown=_work_types(_section(payload, "workTypeBreakdown")),
        workload_features=WorkloadFeatures(
            changed_modules_estimate=_text(
                features_raw.get("changedModulesEstimate"), UNKNOWN_FEATURE
            ),
            changed_files_estimate=_text(
                features_raw.get("changedFilesEstimate"), UNKNOWN_FEATURE
            ),
            need_query_or_backfill=_text(
                features_raw.get("needQueryOrBackfill"), UNKNOWN_FEATURE
            ),
        ),
        ai_leverage=AILeverage(
            score=_score(leverage_raw.get("score")),
            applied_reduction=(
                REDUCTION_DOWN_ONE_LEVEL
                if applied == REDUCTION_DOWN_ONE_LEVEL
                else REDUCTION_NONE
            ),
            reduction_reason=_text(leverage_raw.get("reductionReason")),
        ),
        raise_permission_check=RaisePermissionCheck(
            a=_permission_item(permission_raw.get("A")),
            b=_permission_item(permission_raw.get("B")),
            c=_permission_item(permission_raw.get("C")),
        ),
        similar_tickets=_similar_tickets(payload.get("similarTickets")),
        point_candidates=_point_candidates(payload.get("pointCandidates")),
    )

    logger.debug(
        f"Normalized estimation: {points} points, "
        f"{len(result.similar_tickets)} similar tickets"
    )
    return result


def summarize_result(result: Optional[EstimationResult]) -> str:
    """One-line description for progress logs."""
    if result is None:
        return "no result"
    split = ", split suggested" if result.should_split else ""
    return f"{result.estimated_points} points (baseline {result.baseline.key}){split}"
