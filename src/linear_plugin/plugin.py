"""
Plugin registry: named actions and context providers offered to the agent
runtime.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from . import actions, providers
from .service import SERVICE_NAME


@dataclass(frozen=True)
class Action:
    name: str
    description: str
    handler: Callable[..., Awaitable[actions.ActionResult]]
    similes: tuple[str, ...] = ()
    examples: tuple[str, ...] = field(default=(), compare=False)


@dataclass(frozen=True)
class Provider:
    name: str
    description: str
    get: Callable[[Any], Awaitable[dict[str, Any]]]


def validate(runtime: Any) -> bool:
    """An action is usable only while the Linear service is registered."""
    return runtime.get_service(SERVICE_NAME) is not None


_ACTIONS = (
    Action(
        "create-issue",
        "Create a new issue in Linear",
        actions.create_issue,
        ("create-linear-issue", "new-issue", "add-issue", "file-issue"),
        ("Create a new issue: Fix login button not working on mobile devices",),
    ),
    Action(
        "get-issue",
        "Get details of a specific Linear issue",
        actions.get_issue,
        ("show-issue", "view-issue", "issue-details"),
        ("Show me issue ENG-123", "What's the status of the login bug?"),
    ),
    Action(
        "update-issue",
        "Update an existing Linear issue",
        actions.update_issue,
        ("edit-issue", "modify-issue", "change-issue"),
        ('Update issue ENG-123 title to "Fix login button on all devices"',),
    ),
    Action(
        "delete-issue",
        "Delete (archive) an issue in Linear",
        actions.delete_issue,
        ("archive-issue", "remove-issue", "close-issue"),
        ("Delete issue ENG-123",),
    ),
    Action(
        "search-issues",
        "Search for issues in Linear with various filters",
        actions.search_issues,
        ("find-issues", "list-issues", "query-issues"),
        ("Show me all open bugs", "What is John working on?"),
    ),
    Action(
        "create-comment",
        "Add a comment to a Linear issue",
        actions.create_comment,
        ("comment-on-issue", "add-comment", "reply-to-issue"),
        ("Comment on ENG-123: This looks good to me",),
    ),
    Action(
        "list-teams",
        "List teams in Linear with optional filters",
        actions.list_teams,
        ("show-teams", "get-teams", "view-teams"),
        ("Show me all teams",),
    ),
    Action(
        "list-projects",
        "List projects in Linear with optional filters",
        actions.list_projects,
        ("show-projects", "get-projects", "view-projects"),
        ("Show me all projects", "What projects is the engineering team working on?"),
    ),
    Action(
        "get-activity",
        "Get recent Linear activity",
        actions.get_activity,
        ("show-activity", "view-activity", "linear-history"),
        ("Show me recent Linear activity",),
    ),
    Action(
        "clear-activity",
        "Clear the Linear activity log",
        actions.clear_activity,
        ("reset-activity", "delete-activity"),
        ("Clear the Linear activity log",),
    ),
)

ACTIONS: dict[str, Action] = {a.name: a for a in _ACTIONS}

PROVIDERS: dict[str, Provider] = {
    p.name: p
    for p in (
        Provider("LINEAR_ISSUES", "Recently updated Linear issues", providers.issues_provider),
        Provider("LINEAR_TEAMS", "Teams in the Linear workspace", providers.teams_provider),
        Provider("LINEAR_PROJECTS", "Active Linear projects", providers.projects_provider),
        Provider("LINEAR_ACTIVITY", "Recent Linear activity", providers.activity_provider),
    )
}


def get_action(name: str) -> Action | None:
    key = (name or "").strip().lower().replace("_", "-")
    if key in ACTIONS:
        return ACTIONS[key]
    for action in _ACTIONS:
        if key in action.similes:
            return action
    return None
