"""Shared argument models and response helpers for TeamCity tools."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from teamcity_mcp.core.errors import error_to_response
from teamcity_mcp.core.locator import FilterCriteria
from teamcity_mcp.core.responses import ErrorCode, ErrorType, error_response

logger = logging.getLogger(__name__)


class PaginationArgs(BaseModel):
    """Pagination intent: one page, or every page up to ``max_pages``."""

    model_config = ConfigDict(extra="forbid")

    page: int = Field(default=1, ge=1, description="1-based page number")
    page_size: Optional[int] = Field(default=None, ge=1, description="Items per page")
    all: Optional[bool] = Field(default=None, description="Fetch every page")
    max_pages: Optional[int] = Field(default=None, ge=1, description="Page bound when all=true")

    @model_validator(mode="after")
    def validate_page_with_all(self) -> "PaginationArgs":
        if self.all and self.page != 1:
            raise ValueError("page cannot be combined with all=true")
        return self


class CollectionArgs(PaginationArgs):
    """Filters accepted by collection tools."""

    locator: Optional[str] = Field(default=None, description="Raw TeamCity locator")
    project_id: Optional[str] = None
    build_type_id: Optional[str] = None
    status: Optional[str] = None
    branch: Optional[str] = None
    tag: Optional[str] = None
    since_date: Optional[str] = None
    until_date: Optional[str] = None
    running: Optional[bool] = None
    canceled: Optional[bool] = None
    name: Optional[str] = None
    archived: Optional[bool] = None
    parent_project_id: Optional[str] = None

    def to_criteria(self) -> FilterCriteria:
        return FilterCriteria(
            locator=self.locator,
            project_id=self.project_id,
            build_type_id=self.build_type_id,
            status=self.status,
            branch=self.branch,
            tag=self.tag,
            since_date=self.since_date,
            until_date=self.until_date,
            running=self.running,
            canceled=self.canceled,
            name=self.name,
            archived=self.archived,
            parent_project_id=self.parent_project_id,
        )


class TraversalArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    project_id: str = Field(min_length=1)
    max_depth: Optional[int] = Field(default=None, ge=0, le=20)


def validation_error_response(exc: ValidationError) -> dict:
    """Convert a pydantic ValidationError into a VALIDATION_ERROR envelope."""
    problems = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    message = problems[0]["message"] if len(problems) == 1 else f"{len(problems)} invalid arguments"
    return asdict(
        error_response(
            message,
            error_code=ErrorCode.VALIDATION_ERROR,
            error_type=ErrorType.VALIDATION,
            remediation="Check the tool arguments and try again",
            details={"errors": problems},
        )
    )


async def run_tool(action: Callable[[], Awaitable[Dict[str, Any]]]) -> dict:
    """Run a tool body, converting known exceptions to error envelopes.

    Unknown exceptions are re-raised so FastMCP reports them as failures.
    """
    try:
        return await action()
    except ValidationError as exc:
        return validation_error_response(exc)
    except Exception as exc:
        response = error_to_response(exc)
        if response is None:
            raise
        logger.warning("Tool failed with %s: %s", type(exc).__name__, exc)
        return response
