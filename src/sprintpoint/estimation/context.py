"""Context gathered before the conversation starts.

Two pieces go into the prompt: compacted sprint history (pointed tickets
only, capped and spread across sprints) and related tickets referenced in
the target ticket's description, with the pull requests that implemented
them.
"""

import asyncio
import os
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sprintpoint.integrations.base import (
    GITHUB_PR_URL_PATTERN,
    CodeHost,
    FileDiff,
    PullRequestWithFiles,
    Sprint,
    TicketSource,
)
from sprintpoint.tools.estimation_tools import truncate_patch
from sprintpoint.utils.logger import get_logger

logger = get_logger(__name__)

MAX_SPRINT_TICKETS = 100
MAX_SPRINT_DESCRIPTION_LENGTH = 500
MAX_RELATED_TICKETS = 3
MAX_KEY_CHANGES = 10
MAX_SUMMARY_DIRECTORIES = 5

SOURCE_FILE_PATTERN = re.compile(r"\.(ts|tsx|js|jsx|py|java|go|rs)$")

# Relationship markers checked in order against text around a ticket key
RELATIONSHIP_MARKERS = (
    ("similar", ("similar", "same as", "同様", "同じ")),
    ("parent", ("parent", "based on", "親", "にて")),
    ("dependency", ("depend", "blocked", "依存", "前提")),
    ("related", ("related", "see ", "関連", "参照")),
)

PARENT_PRIORITY = ("parent", "similar", "dependency", "related")


def _pointed(story_points: Any) -> bool:
    return isinstance(story_points, (int, float)) and story_points > 0


def compact_sprint_data(
    sprints: List[Sprint],
    exclude_key: Optional[str] = None,
    max_tickets: int = MAX_SPRINT_TICKETS,
) -> List[Dict[str, Any]]:
    """
    Sprint history for the prompt, trimmed to keep token use bounded.

    Only tickets with story points are kept. At most ``max_tickets`` are
    spread evenly over the sprints; remainder slots go to the first
    sprints, which are the most recent.
    """
    if not sprints:
        return []

    base, extra = divmod(max_tickets, len(sprints))
    compacted = []
    for index, sprint in enumerate(sprints):
        limit = base + (1 if index < extra else 0)
        tickets = [
            t for t in sprint.tickets if _pointed(t.story_points) and t.key != exclude_key
        ]
        entries = []
        for ticket in tickets[:limit]:
            entry: Dict[str, Any] = {
                "key": ticket.key,
                "summary": ticket.summary,
                "storyPoints": ticket.story_points,
            }
            if ticket.description:
                entry["description"] = ticket.description[:MAX_SPRINT_DESCRIPTION_LENGTH]
            if ticket.days_to_complete is not None:
                entry["daysToComplete"] = ticket.days_to_complete
            entries.append(entry)
        compacted.append({"sprintName": sprint.name, "tickets": entries})
    return compacted


def count_tickets(sprint_data: List[Dict[str, Any]]) -> int:
    return sum(len(sprint["tickets"]) for sprint in sprint_data)


@dataclass
class RelatedTicketReference:
    key: str
    relationship: str = "unknown"
    context: Optional[str] = None


def extract_related_ticket_keys(
    description: str, current_key: str, project_key: Optional[str] = None
) -> List[str]:
    """Ticket keys mentioned in ``description``, upper-cased, deduplicated, in order."""
    if not description:
        return []

    if project_key:
        pattern = re.compile(rf"\b({re.escape(project_key)}-\d+)\b", re.IGNORECASE | re.ASCII)
    else:
        pattern = re.compile(r"\b([A-Z]{2,10}-\d+)\b", re.ASCII)

    keys: List[str] = []
    for match in pattern.findall(description):
        key = match.upper()
        if key != current_key.upper() and key not in keys:
            keys.append(key)
    return keys


def _relationship(surrounding: str) -> str:
    text = surrounding.lower()
    for relationship, markers in RELATIONSHIP_MARKERS:
        if any(marker in text for marker in markers):
            return relationship
    return "unknown"


def parse_related_ticket_references(
    description: str, current_key: str, project_key: Optional[str] = None
) -> List[RelatedTicketReference]:
    """Referenced tickets with a relationship guessed from the surrounding text."""
    references = []
    for key in extract_related_ticket_keys(description, current_key, project_key):
        match = re.search(rf"(.{{0,100}}){re.escape(key)}(.{{0,100}})", description, re.IGNORECASE)
        if match is None:
            references.append(RelatedTicketReference(key=key))
            continue
        references.append(
            RelatedTicketReference(
                key=key,
                relationship=_relationship(match.group(1) + match.group(2)),
                context=match.group(0).strip(),
            )
        )
    return references


def find_parent_reference(
    references: List[RelatedTicketReference],
) -> Optional[RelatedTicketReference]:
    """The reference most likely to be the work this ticket repeats."""
    for relationship in PARENT_PRIORITY:
        for reference in references:
            if reference.relationship == relationship:
                return reference
    return references[0] if references else None


@dataclass
class RelatedTicketPR:
    number: int
    url: str
    title: str
    additions: int
    deletions: int
    changed_files: int
    file_summary: str
    key_changes: List[FileDiff] = field(default_factory=list)


@dataclass
class RelatedTicketInfo:
    key: str
    summary: str
    story_points: Optional[float]
    relationship: str
    relationship_context: Optional[str] = None
    pull_requests: List[RelatedTicketPR] = field(default_factory=list)


@dataclass
class RelatedTicketContext:
    parent: Optional[RelatedTicketInfo] = None
    related: List[RelatedTicketInfo] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.parent is None and not self.related


def summarize_files(files: List[FileDiff]) -> str:
    """Changed file counts by directory (top five) and by extension."""
    by_dir: Counter = Counter()
    by_ext: Counter = Counter()
    for f in files:
        directory = os.path.dirname(f.filename) or "(root)"
        by_dir[directory] += 1
        by_ext[os.path.splitext(f.filename)[1].lstrip(".") or "other"] += 1

    dirs = ", ".join(f"{d}: {n}" for d, n in by_dir.most_common(MAX_SUMMARY_DIRECTORIES))
    exts = ", ".join(f".{e}: {n}" for e, n in by_ext.most_common())
    return f"directories: [{dirs}], extensions: [{exts}]"


def extract_key_changes(files: List[FileDiff]) -> List[FileDiff]:
    """Source files first, then largest changes; patches truncated."""
    ordered = sorted(
        files,
        key=lambda f: (
            not SOURCE_FILE_PATTERN.search(f.filename),
            -(f.additions + f.deletions),
        ),
    )
    return [
        FileDiff(
            filename=f.filename,
            status=f.status,
            additions=f.additions,
            deletions=f.deletions,
            patch=truncate_patch(f.patch),
        )
        for f in ordered[:MAX_KEY_CHANGES]
    ]


def _related_pr(details: PullRequestWithFiles) -> RelatedTicketPR:
    pr = details.pull_request
    return RelatedTicketPR(
        number=pr.number,
        url=pr.url,
        title=pr.title,
        additions=pr.additions,
        deletions=pr.deletions,
        changed_files=pr.changed_files,
        file_summary=summarize_files(details.files),
        key_changes=extract_key_changes(details.files),
    )


async def _pull_requests_for(
    key: str, ticket_source: TicketSource, code_host: CodeHost
) -> List[RelatedTicketPR]:
    urls = await ticket_source.get_dev_panel_links(key)
    targets = []
    for url in urls:
        match = re.search(GITHUB_PR_URL_PATTERN, url)
        if match:
            targets.append((match.group(1), match.group(2), int(match.group(3))))
    if not targets:
        return []

    results = await asyncio.gather(
        *(code_host.get_pull_request_with_files(*target) for target in targets),
        return_exceptions=True,
    )
    pull_requests = []
    for target, result in zip(targets, results):
        if isinstance(result, Exception):
            logger.warning(f"Failed to fetch PR {target} for {key}: {result}")
            continue
        pull_requests.append(_related_pr(result))
    return pull_requests


async def _fetch_related_ticket(
    reference: RelatedTicketReference,
    ticket_source: TicketSource,
    code_host: Optional[CodeHost],
) -> RelatedTicketInfo:
    ticket = await ticket_source.get_issue(reference.key)
    pull_requests = []
    if code_host is not None:
        pull_requests = await _pull_requests_for(reference.key, ticket_source, code_host)
    return RelatedTicketInfo(
        key=ticket.key,
        summary=ticket.summary,
        story_points=ticket.story_points,
        relationship=reference.relationship,
        relationship_context=reference.context,
        pull_requests=pull_requests,
    )


async def gather_related_ticket_context(
    ticket_key: str,
    description: str,
    ticket_source: TicketSource,
    code_host: Optional[CodeHost] = None,
    max_related: int = MAX_RELATED_TICKETS,
) -> RelatedTicketContext:
    """
    Fetch tickets referenced in ``description`` together with their PRs.

    Lookups run concurrently; a ticket that fails to load is logged and
    left out.
    """
    project_key = ticket_key.split("-")[0] if "-" in ticket_key else None
    references = parse_related_ticket_references(description, ticket_key, project_key)
    if not references:
        return RelatedTicketContext()

    parent_reference = find_parent_reference(references)
    candidates = references[: max_related + 1]
    results = await asyncio.gather(
        *(_fetch_related_ticket(ref, ticket_source, code_host) for ref in candidates),
        return_exceptions=True,
    )

    infos: List[RelatedTicketInfo] = []
    for reference, result in zip(candidates, results):
        if isinstance(result, Exception):
            logger.warning(f"Failed to fetch related ticket {reference.key}: {result}")
            continue
        infos.append(result)

    parent = next(
        (info for info in infos if parent_reference and info.key == parent_reference.key),
        None,
    )
    related = [info for info in infos if parent is None or info.key != parent.key]
    logger.info(
        f"Related context for {ticket_key}: parent={parent.key if parent else None}, "
        f"{len(related)} related"
    )
    return RelatedTicketContext(parent=parent, related=related[:max_related])


def _points_label(points: Optional[float]) -> str:
    return f"{points:g}pt" if points else "unset"


def format_related_context(context: RelatedTicketContext) -> str:
    """Prompt section describing referenced tickets; empty when there are none."""
    if context.empty:
        return ""

    lines = [
        "",
        "=== Related tickets ===",
        "This ticket refers to earlier work. Take the following into account.",
        "",
    ]

    parent = context.parent
    if parent is not None:
        lines.append(f"## Referenced ticket: {parent.key}")
        lines.append(f"Summary: {parent.summary}")
        lines.append(f"Story points: {_points_label(parent.story_points)}")
        lines.append(f"Relationship: {parent.relationship}")
        if parent.relationship_context:
            lines.append(f"Context: {parent.relationship_context}")

        if parent.pull_requests:
            lines.append("")
            lines.append("### Pull requests of the referenced ticket:")
            for pr in parent.pull_requests:
                lines.append(f"\nPR #{pr.number}: {pr.title}")
                lines.append(
                    f"Changes: +{pr.additions}/-{pr.deletions}, files: {pr.changed_files}"
                )
                lines.append(f"Files: {pr.file_summary}")
                if pr.key_changes:
                    lines.append("\nKey changed files:")
                    for change in pr.key_changes:
                        lines.append(
                            f"- {change.filename} ({change.status}: "
                            f"+{change.additions}/-{change.deletions})"
                        )
                        if change.patch:
                            lines.extend(["```diff", change.patch, "```"])

    if context.related:
        lines.append("\n## Other related tickets:")
        for info in context.related:
            lines.append(f"- {info.key}: {info.summary} ({_points_label(info.story_points)})")

    lines.append("\n=== End of related tickets ===\n")
    return "\n".join(lines)
