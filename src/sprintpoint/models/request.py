"""Estimation request accepted by the start endpoint and the CLI."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EstimationRequest(BaseModel):
    """Ticket identity, sprint scope and optional prompt overrides.

    Field names are snake_case; the JSON body uses the camelCase aliases.
    """

    model_config = ConfigDict(populate_by_name=True)

    ticket_key: str = Field(..., alias="ticketKey", min_length=1)
    ticket_summary: str = Field(..., alias="ticketSummary", min_length=1)
    ticket_description: str = Field(default="", alias="ticketDescription")
    board_id: int = Field(..., alias="boardId", gt=0)
    sprint_count: Optional[int] = Field(default=None, alias="sprintCount", ge=1, le=50)
    custom_prompt: Optional[str] = Field(default=None, alias="customPrompt")
    tool_prompt: Optional[str] = Field(default=None, alias="mcpPrompt")
    selected_repositories: List[str] = Field(
        default_factory=list, alias="selectedRepositories"
    )

    @field_validator("ticket_key", "ticket_summary", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("ticket_description", mode="before")
    @classmethod
    def default_description(cls, value):
        return value or ""

    @field_validator("custom_prompt", "tool_prompt", mode="before")
    @classmethod
    def empty_prompt_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value
