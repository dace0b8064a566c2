"""Jira and GitHub collaborators used for context gathering and tools."""

from .base import (
    CodeHost,
    FileDiff,
    IntegrationError,
    PullRequest,
    PullRequestWithFiles,
    Sprint,
    Ticket,
    TicketSource,
)

__all__ = [
    "CodeHost",
    "FileDiff",
    "IntegrationError",
    "PullRequest",
    "PullRequestWithFiles",
    "Sprint",
    "Ticket",
    "TicketSource",
]
