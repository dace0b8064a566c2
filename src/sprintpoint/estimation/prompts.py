"""Prompt templates for story point estimation.

Templates use ``{name}`` placeholders filled with plain string replacement
so the JSON examples inside them need no escaping. Both templates can be
overridden per request.
"""

import json
from typing import Any, Dict, List, Optional

DEFAULT_TOOL_PROMPT = """## Tools (required)

You can gather information with the following tools:

{toolDocs}

### Target ticket
Ticket key: **{targetTicketKey}**

### Repositories to search
{repositories}

### Required steps (run them in this order)

**Step 0: search related pull requests first**
1. Call search_pull_requests with the main keywords from the ticket title and
   description (feature names, components, technical terms). Run it for every
   repository listed above, e.g.
   search_pull_requests({"keywords": "CSV export", "repo": "owner/name"}).
2. If keyword search finds nothing, call list_recent_prs for the repository
   and pick pull requests whose titles look related.
3. For relevant pull requests, call analyze_code_changes to check files,
   changed lines and complexity.
4. Call get_ticket_pull_requests for {targetTicketKey} to see whether the
   target ticket already has pull requests.

Do not produce an estimate before running these searches.

### Other tools
If the description mentions another ticket (e.g. "same as KT-1234"), call
get_jira_ticket with that real key. Never call tools with placeholder keys.

### Baseline restriction
The baseline must be chosen from the tickets in the sprint history section.
Tool results may support the reasoning but are never the baseline.

---

"""

DEFAULT_ESTIMATION_PROMPT = """You are an expert in agile story point estimation.

Estimate the story points of the new ticket using the past tickets below.

## Rules
1. Points must be one of 0.5, 1, 2, 3, 5, 8, 13.
2. When torn between two values, choose the larger one.
3. When the work reaches 13 points, suggest splitting the ticket.

## Work type fingerprint
Rate each work type 0 (absent), 1 (partial) or 2 (dominant):
- T1 small change to existing code
- T2 reuse of an existing pattern
- T3 new logic or design
- T4 impact across systems
- T5 investigation or bug hunting
- T6 data backfill heavy work

## Workload similarity (0-10)
For each past ticket with a matching fingerprint:
- W1 work type match (0-6)
- W2 scope match (0-2)
- W3 investigation match (0-1)
- W4 pull request workload match (0-1), only when PR metrics are known
- W5 lexical bonus is always 0; shared vocabulary is not evidence
Pick the highest scoring ticket as the baseline, skipping candidates two or
more scale steps away from the rest.

## Raising above the baseline
The estimate may exceed the baseline points only when all of A, B and C hold,
each backed by evidence:
- A: the scope is clearly larger than the baseline
- B: the work includes investigation or recovery the baseline did not
- C: pull request metrics show more files, commits or lead time

## AI leverage
Score 0-10 how much AI assistance shortens the work. Set appliedReduction to
"down_one_level" only when the work is mostly pattern reuse and the score is
high; otherwise "none".

## Sprint history
{sprintData}

## Target ticket
Summary: {ticketSummary}
Description: {ticketDescription}

## Output format (JSON)
Output exactly one JSON object inside a code block tagged json:
```json
{
  "estimatedPoints": 3,
  "reasoning": "why this estimate",
  "shouldSplit": false,
  "splitSuggestion": "",
  "workTypeBreakdown": {
    "T1_small_existing_change": 0,
    "T2_pattern_reuse": 0,
    "T3_new_logic_design": 0,
    "T4_cross_system_impact": 0,
    "T5_investigation_heavy": 0,
    "T6_data_backfill_heavy": 0
  },
  "workloadFeatures": {
    "changedModulesEstimate": "unknown",
    "changedFilesEstimate": "unknown",
    "needQueryOrBackfill": "unknown"
  },
  "baseline": {
    "key": "KT-1",
    "summary": "baseline ticket summary",
    "points": 3,
    "workloadSimilarityScore": 8.5,
    "workloadSimilarityBreakdown": {
      "W1_typeMatch": 6,
      "W2_scopeMatch": 1.5,
      "W3_investigationMatch": 1,
      "W4_prWorkloadMatch": 0,
      "W5_lexicalBonus": 0
    },
    "similarityReason": ["reason"]
  },
  "similarTickets": [
    {
      "key": "KT-2",
      "summary": "similar ticket summary",
      "points": 2,
      "workloadSimilarityScore": 7,
      "workloadSimilarityBreakdown": {
        "W1_typeMatch": 5,
        "W2_scopeMatch": 1,
        "W3_investigationMatch": 1,
        "W4_prWorkloadMatch": 0,
        "W5_lexicalBonus": 0
      },
      "similarityReason": ["reason"],
      "diff": {
        "scopeDiff": 0,
        "fileDiff": 1,
        "logicDiff": 0,
        "riskDiff": 0,
        "diffTotal": 1,
        "diffReason": "how the target differs"
      },
      "relatedPRs": [
        {"number": 1, "summary": "pr summary", "filesChanged": 3, "commits": 2, "leadTimeDays": 1.5}
      ]
    }
  ],
  "aiLeverage": {
    "score": 5,
    "appliedReduction": "none",
    "reductionReason": ""
  },
  "raisePermissionCheck": {
    "A": {"passed": false, "evidence": ""},
    "B": {"passed": false, "evidence": ""},
    "C": {"passed": false, "evidence": ""}
  },
  "pointCandidates": [
    {"points": 3, "candidateReason": "why 3"},
    {"points": 5, "candidateReason": "why 5"}
  ]
}
```"""

NO_DESCRIPTION = "No description"
NO_REPOSITORIES = "(no repositories selected; search without a repo filter)"


def format_repositories(repositories: Optional[List[str]]) -> str:
    if not repositories:
        return NO_REPOSITORIES
    return "\n".join(f"- {repo}" for repo in repositories)


def build_estimation_prompt(
    ticket_key: str,
    ticket_summary: str,
    ticket_description: str,
    sprint_data: List[Dict[str, Any]],
    tool_docs: str,
    repositories: Optional[List[str]] = None,
    related_context: str = "",
    custom_prompt: Optional[str] = None,
    tool_prompt: Optional[str] = None,
) -> str:
    """Tool instructions followed by the estimation prompt and related-ticket context."""
    instructions = (
        (tool_prompt or DEFAULT_TOOL_PROMPT)
        .replace("{toolDocs}", tool_docs)
        .replace("{targetTicketKey}", ticket_key)
        .replace("{repositories}", format_repositories(repositories))
    )
    estimation = (
        (custom_prompt or DEFAULT_ESTIMATION_PROMPT)
        .replace("{ticketSummary}", ticket_summary)
        .replace("{ticketDescription}", ticket_description or NO_DESCRIPTION)
        .replace("{sprintData}", json.dumps(sprint_data, indent=2, ensure_ascii=False))
    )
    return instructions + estimation + related_context
