"""Estimation result models.

All models serialize to the camelCase JSON shape returned by the status
endpoint; ``normalize_result`` in ``sprintpoint.execution.result_parser``
builds them from raw model output.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

UNKNOWN_FEATURE = "unknown"


@dataclass
class SimilarityBreakdown:
    """Workload similarity sub-scores (W1-W5)."""

    type_match: float = 0  # 0-6
    scope_match: float = 0  # 0-2
    investigation_match: float = 0  # 0-1
    pr_workload_match: float = 0  # 0-1
    lexical_bonus: float = 0  # retired, always 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "W1_typeMatch": self.type_match,
            "W2_scopeMatch": self.scope_match,
            "W3_investigationMatch": self.investigation_match,
            "W4_prWorkloadMatch": self.pr_workload_match,
            "W5_lexicalBonus": self.lexical_bonus,
        }


@dataclass
class ReferenceTicket:
    """Past ticket used as the estimation baseline."""

    key: str = "N/A"
    points: float = 0
    summary: Optional[str] = None
    similarity_score: float = 0
    breakdown: SimilarityBreakdown = field(default_factory=SimilarityBreakdown)
    similarity_reason: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"key": self.key}
        if self.summary is not None:
            data["summary"] = self.summary
        data.update(
            {
                "points": self.points,
                "workloadSimilarityScore": self.similarity_score,
                "workloadSimilarityBreakdown": self.breakdown.to_dict(),
                "similarityReason": list(self.similarity_reason),
            }
        )
        return data


@dataclass
class TicketDiff:
    """Per-axis workload difference between the target and a similar ticket."""

    scope_diff: int = 0
    file_diff: int = 0
    logic_diff: int = 0
    risk_diff: int = 0
    diff_total: int = 0
    diff_reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scopeDiff": self.scope_diff,
            "fileDiff": self.file_diff,
            "logicDiff": self.logic_diff,
            "riskDiff": self.risk_diff,
            "diffTotal": self.diff_total,
            "diffReason": self.diff_reason,
        }


@dataclass
class RelatedPR:
    number: int = 0
    summary: str = ""
    files_changed: int = 0
    commits: int = 0
    lead_time_days: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "summary": self.summary,
            "filesChanged": self.files_changed,
            "commits": self.commits,
            "leadTimeDays": self.lead_time_days,
        }


@dataclass
class SimilarTicket(ReferenceTicket):
    """Reference ticket with its diff against the target and linked PRs."""

    diff: TicketDiff = field(default_factory=TicketDiff)
    related_prs: List[RelatedPR] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["diff"] = self.diff.to_dict()
        data["relatedPRs"] = [pr.to_dict() for pr in self.related_prs]
        return data


@dataclass
class WorkTypeBreakdown:
    """Work type weights T1-T6, each an integer 0-2."""

    small_existing_change: int = 0
    pattern_reuse: int = 0
    new_logic_design: int = 0
    cross_system_impact: int = 0
    investigation_heavy: int = 0
    data_backfill_heavy: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "T1_small_existing_change": self.small_existing_change,
            "T2_pattern_reuse": self.pattern_reuse,
            "T3_new_logic_design": self.new_logic_design,
            "T4_cross_system_impact": self.cross_system_impact,
            "T5_investigation_heavy": self.investigation_heavy,
            "T6_data_backfill_heavy": self.data_backfill_heavy,
        }


@dataclass
class WorkloadFeatures:
    changed_modules_estimate: str = UNKNOWN_FEATURE
    changed_files_estimate: str = UNKNOWN_FEATURE
    need_query_or_backfill: str = UNKNOWN_FEATURE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "changedModulesEstimate": self.changed_modules_estimate,
            "changedFilesEstimate": self.changed_files_estimate,
            "needQueryOrBackfill": self.need_query_or_backfill,
        }


@dataclass
class AILeverage:
    """How much AI assistance is expected to shrink the work."""

    score: float = 0  # 0-10
    applied_reduction: str = "none"  # "none" or "down_one_level"
    reduction_reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "appliedReduction": self.applied_reduction,
            "reductionReason": self.reduction_reason,
        }


@dataclass
class PermissionCheckItem:
    passed: bool = False
    evidence: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"passed": self.passed, "evidence": self.evidence}


@dataclass
class RaisePermissionCheck:
    """Conditions A, B and C that allow raising the estimate above the baseline."""

    a: PermissionCheckItem = field(default_factory=PermissionCheckItem)
    b: PermissionCheckItem = field(default_factory=PermissionCheckItem)
    c: PermissionCheckItem = field(default_factory=PermissionCheckItem)

    def to_dict(self) -> Dict[str, Any]:
        return {"A": self.a.to_dict(), "B": self.b.to_dict(), "C": self.c.to_dict()}


@dataclass
class PointCandidate:
    points: float
    candidate_reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"points": self.points, "candidateReason": self.candidate_reason}


@dataclass
class EstimationResult:
    """Normalized story point estimate for one ticket."""

    estimated_points: float
    reasoning: str = ""
    should_split: bool = False
    split_suggestion: str = ""
    baseline: ReferenceTicket = field(default_factory=ReferenceTicket)
    work_type_breakdown: WorkTypeBreakdown = field(default_factory=WorkTypeBreakdown)
    workload_features: WorkloadFeatures = field(default_factory=WorkloadFeatures)
    ai_leverage: AILeverage = field(default_factory=AILeverage)
    raise_permission_check: RaisePermissionCheck = field(
        default_factory=RaisePermissionCheck
    )
    similar_tickets: List[SimilarTicket] = field(default_factory=list)
    point_candidates: List[PointCandidate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to the camelCase dictionary served to clients."""
        return {
            "estimatedPoints": self.estimated_points,
            "reasoning": self.reasoning,
            "shouldSplit": self.should_split,
            "splitSuggestion": self.split_suggestion,
            "baseline": self.baseline.to_dict(),
            "workTypeBreakdown": self.work_type_breakdown.to_dict(),
            "workloadFeatures": self.workload_features.to_dict(),
            "aiLeverage": self.ai_leverage.to_dict(),
            "raisePermissionCheck": self.raise_permission_check.to_dict(),
            "similarTickets": [t.to_dict() for t in self.similar_tickets],
            "pointCandidates": [c.to_dict() for c in self.point_candidates],
        }
