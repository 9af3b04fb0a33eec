"""
LinearService: one Linear client plus one activity ledger per running
instance.

Every public remote operation runs the blocking client call off the event
loop, records exactly one ledger entry (success or failure) once the call
returns, and re-raises failures as LinearAPIError with a readable message.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from .activity import ActivityLedger
from .config import Settings, load_settings
from .errors import (
    LinearAPIError,
    LinearAuthenticationError,
    LinearConfigurationError,
    LinearRateLimitError,
)
from .linear import LinearClient
from .logs import log_event
from .models import (
    ActivityItem,
    Comment,
    CommentInput,
    Issue,
    IssueInput,
    IssueRelations,
    IssueUpdate,
    Label,
    Project,
    ResourceType,
    SearchFilters,
    Team,
    User,
    WorkflowState,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "linear"
ALL_RELATIONS = ("team", "state", "assignee", "project", "labels")

# Common words for workflow states, matched against the state's type
STATE_TYPE_SYNONYMS = {
    "done": "completed",
    "complete": "completed",
    "completed": "completed",
    "closed": "completed",
    "todo": "unstarted",
    "to do": "unstarted",
    "open": "unstarted",
    "in progress": "started",
    "started": "started",
    "doing": "started",
    "backlog": "backlog",
    "canceled": "canceled",
    "cancelled": "canceled",
}

T = TypeVar("T")


def _wrap(e: Exception, message: str) -> LinearAPIError:
    if isinstance(e, LinearRateLimitError):
        return LinearRateLimitError(message, reset_time=e.reset_time, response=e.response)
    if isinstance(e, LinearAuthenticationError):
        return LinearAuthenticationError(message, response=e.response)
    if isinstance(e, LinearAPIError):
        return LinearAPIError(message, status=e.status, response=e.response)
    return LinearAPIError(message)


class LinearService:
    def __init__(self, runtime: Any = None, settings: Settings | None = None) -> None:
        if settings is None:
            settings = load_settings(runtime.get_setting if runtime is not None else None)
        if not settings.linear_api_key:
            raise LinearConfigurationError("Linear API key is required")
        self.runtime = runtime
        self.settings = settings
        self.workspace_id = settings.linear_workspace_id
        self.default_team_key = settings.default_team_key
        self.client = LinearClient(
            settings.linear_api_key, settings.linear_api_url, settings.linear_timeout_seconds
        )
        self.activity = ActivityLedger()

    @classmethod
    async def start(cls, runtime: Any = None, settings: Settings | None = None) -> LinearService:
        service = cls(runtime, settings)
        await service.validate_connection()
        log_event(logger, "linear_service_started", workspace=service.workspace_id)
        return service

    async def stop(self) -> None:
        self.activity.clear()
        log_event(logger, "linear_service_stopped")

    async def validate_connection(self) -> None:
        try:
            viewer = await asyncio.to_thread(self.client.viewer)
        except Exception as e:
            raise LinearAuthenticationError("Failed to authenticate with Linear API") from e
        log_event(logger, "linear_connected", user=viewer.email or viewer.name)

    # ----- Activity ledger -----
    def _log_activity(
        self,
        action: str,
        resource_type: ResourceType,
        resource_id: str,
        details: dict[str, Any],
        success: bool,
        error: str | None = None,
    ) -> None:
        self.activity.record(action, resource_type, resource_id, details, success, error)

    def _failed(
        self,
        action: str,
        resource_type: ResourceType,
        resource_id: str,
        details: dict[str, Any],
        what: str,
        e: Exception,
    ) -> LinearAPIError:
        msg = str(e) or e.__class__.__name__
        self._log_activity(action, resource_type, resource_id, details, False, msg)
        log_event(logger, "linear_call_failed", logging.ERROR, action=action, error=msg)
        return _wrap(e, f"Failed to {what}: {msg}")

    def get_activity_log(
        self, limit: int | None = None, filter: dict[str, Any] | None = None
    ) -> list[ActivityItem]:
        return self.activity.query(limit, filter)

    def clear_activity_log(self) -> None:
        self.activity.clear()
        log_event(logger, "linear_activity_cleared")

    # ----- Teams -----
    async def get_teams(self) -> list[Team]:
        try:
            teams = await asyncio.to_thread(self.client.teams)
        except Exception as e:
            raise self._failed("list_teams", "team", "all", {}, "fetch teams", e) from e
        self._log_activity("list_teams", "team", "all", {"count": len(teams)}, True)
        return teams

    async def get_team(self, team_id: str) -> Team:
        try:
            team = await asyncio.to_thread(self.client.team, team_id)
        except Exception as e:
            raise self._failed("get_team", "team", team_id, {}, "fetch team", e) from e
        self._log_activity("get_team", "team", team_id, {"name": team.name}, True)
        return team

    # ----- Issues -----
    async def create_issue(self, data: IssueInput) -> Issue:
        try:
            issue = await asyncio.to_thread(self.client.create_issue, data)
        except Exception as e:
            raise self._failed(
                "create_issue", "issue", "new", data.to_graphql(), "create issue", e
            ) from e
        self._log_activity(
            "create_issue", "issue", issue.id, {"title": data.title, "teamId": data.team_id}, True
        )
        return issue

    async def get_issue(self, issue_id: str) -> Issue:
        try:
            issue = await asyncio.to_thread(self.client.issue, issue_id)
        except Exception as e:
            raise self._failed("get_issue", "issue", issue_id, {}, "fetch issue", e) from e
        self._log_activity(
            "get_issue", "issue", issue_id, {"title": issue.title, "identifier": issue.identifier}, True
        )
        return issue

    async def update_issue(self, issue_id: str, updates: IssueUpdate) -> Issue:
        details = updates.to_graphql()
        try:
            issue = await asyncio.to_thread(self.client.update_issue, issue_id, updates)
        except Exception as e:
            raise self._failed("update_issue", "issue", issue_id, details, "update issue", e) from e
        self._log_activity("update_issue", "issue", issue_id, details, True)
        return issue

    async def delete_issue(self, issue_id: str) -> None:
        """Archive the issue; Linear keeps archived issues out of active views."""
        try:
            await asyncio.to_thread(self.client.archive_issue, issue_id)
        except Exception as e:
            raise self._failed("delete_issue", "issue", issue_id, {}, "archive issue", e) from e
        self._log_activity("delete_issue", "issue", issue_id, {"archived": True}, True)

    async def search_issues(self, filters: SearchFilters) -> list[Issue]:
        try:
            issues = await asyncio.to_thread(self.client.issues, filters)
        except Exception as e:
            raise self._failed(
                "search_issues", "issue", "search", filters.to_dict(), "search issues", e
            ) from e
        self._log_activity(
            "search_issues", "issue", "search", {"filters": filters.to_dict(), "count": len(issues)}, True
        )
        return issues

    # ----- Comments -----
    async def create_comment(self, data: CommentInput) -> Comment:
        try:
            comment = await asyncio.to_thread(self.client.create_comment, data)
        except Exception as e:
            raise self._failed(
                "create_comment", "comment", "new", data.to_graphql(), "create comment", e
            ) from e
        self._log_activity(
            "create_comment",
            "comment",
            comment.id,
            {"issueId": data.issue_id, "bodyLength": len(data.body)},
            True,
        )
        return comment

    # ----- Projects -----
    async def get_projects(self, team_id: str | None = None) -> list[Project]:
        try:
            projects = await asyncio.to_thread(self.client.projects)
            if team_id:
                team_lists = await asyncio.gather(
                    *(asyncio.to_thread(self.client.project_teams, p.id) for p in projects)
                )
                projects = [
                    p for p, teams in zip(projects, team_lists) if any(t.id == team_id for t in teams)
                ]
        except Exception as e:
            raise self._failed(
                "list_projects", "project", "all", {"teamId": team_id}, "fetch projects", e
            ) from e
        self._log_activity(
            "list_projects", "project", "all", {"count": len(projects), "teamId": team_id}, True
        )
        return projects

    async def get_project(self, project_id: str) -> Project:
        try:
            project = await asyncio.to_thread(self.client.project, project_id)
        except Exception as e:
            raise self._failed("get_project", "project", project_id, {}, "fetch project", e) from e
        self._log_activity("get_project", "project", project_id, {"name": project.name}, True)
        return project

    # ----- Users -----
    async def get_users(self) -> list[User]:
        try:
            users = await asyncio.to_thread(self.client.users)
        except Exception as e:
            raise self._failed("list_users", "user", "all", {}, "fetch users", e) from e
        self._log_activity("list_users", "user", "all", {"count": len(users)}, True)
        return users

    async def get_current_user(self) -> User:
        try:
            user = await asyncio.to_thread(self.client.viewer)
        except Exception as e:
            raise self._failed("get_current_user", "user", "current", {}, "fetch current user", e) from e
        self._log_activity(
            "get_current_user", "user", user.id, {"email": user.email, "name": user.name}, True
        )
        return user

    # ----- Labels / workflow states -----
    async def get_labels(self, team_id: str | None = None) -> list[Label]:
        try:
            labels = await asyncio.to_thread(self.client.issue_labels, team_id)
        except Exception as e:
            raise self._failed("list_labels", "label", "all", {"teamId": team_id}, "fetch labels", e) from e
        self._log_activity("list_labels", "label", "all", {"count": len(labels), "teamId": team_id}, True)
        return labels

    async def get_workflow_states(self, team_id: str) -> list[WorkflowState]:
        try:
            states = await asyncio.to_thread(self.client.workflow_states, team_id)
        except Exception as e:
            raise self._failed(
                "list_workflow_states", "team", team_id, {}, "fetch workflow states", e
            ) from e
        self._log_activity("list_workflow_states", "team", team_id, {"count": len(states)}, True)
        return states

    # ----- Relation accessors (explicit enrichment fan-out) -----
    async def _maybe(self, fn: Callable[[str], T], arg: str | None) -> T | None:
        if not arg:
            return None
        return await asyncio.to_thread(fn, arg)

    async def issue_relations(
        self, issue: Issue, include: Iterable[str] = ALL_RELATIONS
    ) -> IssueRelations:
        wanted = set(include)
        try:
            team, state, assignee, project, labels = await asyncio.gather(
                self._maybe(self.client.team, issue.team_id if "team" in wanted else None),
                self._maybe(self.client.workflow_state, issue.state_id if "state" in wanted else None),
                self._maybe(self.client.user, issue.assignee_id if "assignee" in wanted else None),
                self._maybe(self.client.project, issue.project_id if "project" in wanted else None),
                self._maybe(self.client.labels_of_issue, issue.id if "labels" in wanted else None),
            )
        except Exception as e:
            raise _wrap(e, f"Failed to load details for {issue.identifier or issue.id}: {e}") from e
        return IssueRelations(team=team, state=state, assignee=assignee, project=project, labels=labels or [])

    async def team_details(self, team: Team) -> tuple[list[User], list[Project]]:
        try:
            members, projects = await asyncio.gather(
                asyncio.to_thread(self.client.team_members, team.id),
                asyncio.to_thread(self.client.team_projects, team.id),
            )
        except Exception as e:
            raise _wrap(e, f"Failed to load details for team {team.key}: {e}") from e
        return members, projects

    async def project_teams(self, project: Project) -> list[Team]:
        try:
            return await asyncio.to_thread(self.client.project_teams, project.id)
        except Exception as e:
            raise _wrap(e, f"Failed to load teams for project {project.name}: {e}") from e

    # ----- Name -> id resolution -----
    async def find_team(self, key_or_name: str) -> Team | None:
        needle = key_or_name.strip().lower()
        teams = await self.get_teams()
        for team in teams:
            if needle in (team.key.lower(), team.id.lower()):
                return team
        for team in teams:
            if team.name.lower() == needle:
                return team
        return None

    async def resolve_user_id(self, who: str) -> str | None:
        needle = who.strip().lower()
        if needle in ("me", "myself", "i"):
            return (await self.get_current_user()).id
        users = await self.get_users()
        for u in users:
            if needle in ((u.email or "").lower(), u.name.lower(), (u.display_name or "").lower(), u.id):
                return u.id
        for u in users:
            if needle in u.name.lower() or needle in (u.display_name or "").lower():
                return u.id
        return None

    async def resolve_label_ids(self, names: Iterable[str]) -> tuple[list[str], list[str]]:
        """Return (label ids, names that matched no label)."""
        wanted = [n.strip() for n in names if n and n.strip()]
        if not wanted:
            return [], []
        by_name = {lb.name.lower(): lb.id for lb in await self.get_labels()}
        ids: list[str] = []
        missing: list[str] = []
        for name in wanted:
            label_id = by_name.get(name.lower())
            if label_id is None:
                missing.append(name)
            elif label_id not in ids:
                ids.append(label_id)
        return ids, missing

    async def resolve_state_id(self, name: str, team_id: str) -> str | None:
        needle = name.strip().lower()
        states = await self.get_workflow_states(team_id)
        for st in states:
            if st.name.lower() == needle:
                return st.id
        state_type = STATE_TYPE_SYNONYMS.get(needle)
        if state_type:
            typed = sorted((s for s in states if s.type == state_type), key=lambda s: s.position)
            if typed:
                return typed[0].id
        return None
