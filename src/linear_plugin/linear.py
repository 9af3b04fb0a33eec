"""
Minimal Linear GraphQL client using stdlib urllib.
"""

from __future__ import annotations

import json
import re
import urllib.error
import urllib.request
from typing import Any

from .config import DEFAULT_API_URL
from .errors import LinearAPIError, LinearAuthenticationError, LinearRateLimitError
from .models import (
    Comment,
    CommentInput,
    Issue,
    IssueInput,
    IssueUpdate,
    Label,
    Project,
    SearchFilters,
    Team,
    User,
    WorkflowState,
)

PAGE_SIZE = 100
MAX_COLLECTION_ITEMS = 250
DEFAULT_SEARCH_LIMIT = 50

TEAM_FIELDS = "id name key description"
USER_FIELDS = "id name email displayName active"
STATE_FIELDS = "id name type color position"
LABEL_FIELDS = "id name color"
PROJECT_FIELDS = "id name description url state progress startDate targetDate"
ISSUE_FIELDS = (
    "id identifier title description priority priorityLabel url createdAt updatedAt"
    " archivedAt dueDate estimate team { id } state { id } assignee { id } project { id }"
)
COMMENT_FIELDS = "id body createdAt issue { id }"

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)


def _any_of(clauses: list[dict[str, Any]]) -> dict[str, Any]:
    return clauses[0] if len(clauses) == 1 else {"or": clauses}


def issue_filter(filters: SearchFilters) -> dict[str, Any] | None:
    """Translate SearchFilters into a Linear IssueFilter (None when unfiltered)."""
    clauses: list[dict[str, Any]] = []
    if filters.query:
        clauses.append(
            {
                "or": [
                    {"title": {"containsIgnoreCase": filters.query}},
                    {"description": {"containsIgnoreCase": filters.query}},
                ]
            }
        )
    if filters.states:
        clauses.append(
            _any_of([{"state": {"name": {"eqIgnoreCase": s}}} for s in filters.states])
        )
    if filters.assignees:
        opts: list[dict[str, Any]] = []
        for a in filters.assignees:
            if a.lower() in ("unassigned", "none"):
                opts.append({"assignee": {"null": True}})
            elif "@" in a:
                opts.append({"assignee": {"email": {"eqIgnoreCase": a}}})
            elif _UUID_RE.match(a):
                opts.append({"assignee": {"id": {"eq": a}}})
            else:
                opts.append({"assignee": {"name": {"containsIgnoreCase": a}}})
                opts.append({"assignee": {"displayName": {"containsIgnoreCase": a}}})
        clauses.append(_any_of(opts))
    if filters.labels:
        clauses.append(
            _any_of([{"labels": {"some": {"name": {"eqIgnoreCase": lb}}}} for lb in filters.labels])
        )
    if filters.priorities:
        clauses.append({"priority": {"in": list(filters.priorities)}})
    if filters.team:
        if _UUID_RE.match(filters.team):
            clauses.append({"team": {"id": {"eq": filters.team}}})
        else:
            clauses.append(
                {
                    "team": {
                        "or": [
                            {"key": {"eqIgnoreCase": filters.team}},
                            {"name": {"eqIgnoreCase": filters.team}},
                        ]
                    }
                }
            )
    if filters.project:
        if _UUID_RE.match(filters.project):
            clauses.append({"project": {"id": {"eq": filters.project}}})
        else:
            clauses.append({"project": {"name": {"containsIgnoreCase": filters.project}}})
    if not clauses:
        return None
    return clauses[0] if len(clauses) == 1 else {"and": clauses}


class LinearClient:
    def __init__(self, api_key: str, api_url: str = DEFAULT_API_URL, timeout: int = 8) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout

    # ----- Helpers -----
    def _post_json(self, payload: dict[str, Any]) -> Any:
        body = json.dumps(payload).encode("utf-8")
        req = urllib.request.Request(
            self.api_url,
            data=body,
            headers={
                "User-Agent": "LinearPlugin/1.0",
                "Content-Type": "application/json",
                "Authorization": self.api_key,
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # nosec B310
                data = resp.read()
        except urllib.error.HTTPError as e:
            raise self._http_error(e) from e
        except urllib.error.URLError as e:
            raise LinearAPIError(f"Linear request failed: {e.reason}") from e
        try:
            return json.loads(data.decode("utf-8"))
        except ValueError as e:
            raise LinearAPIError("Linear returned a non-JSON response") from e

    def _http_error(self, e: urllib.error.HTTPError) -> LinearAPIError:
        try:
            detail = json.loads(e.read().decode("utf-8"))
        except Exception:
            detail = None
        message = _first_error_message(detail) or f"HTTP {e.code}"
        if e.code in (401, 403):
            return LinearAuthenticationError(message, response=detail)
        if e.code == 429:
            reset = e.headers.get("X-RateLimit-Requests-Reset") if e.headers else None
            return LinearRateLimitError(
                message, reset_time=int(reset) if reset and reset.isdigit() else None, response=detail
            )
        return LinearAPIError(message, status=e.code, response=detail)

    def _graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        resp = self._post_json({"query": query, "variables": variables or {}})
        errors = resp.get("errors") if isinstance(resp, dict) else None
        if errors:
            message = _first_error_message(resp) or "GraphQL error"
            code = ((errors[0] or {}).get("extensions") or {}).get("code")
            if code == "AUTHENTICATION_ERROR":
                raise LinearAuthenticationError(message, response=resp)
            if code == "RATELIMITED":
                raise LinearRateLimitError(message, response=resp)
            raise LinearAPIError(message, response=resp)
        data = resp.get("data") if isinstance(resp, dict) else None
        return data or {}

    def _paginate(
        self,
        query: str,
        field: str,
        variables: dict[str, Any] | None = None,
        limit: int = MAX_COLLECTION_ITEMS,
    ) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        after: str | None = None
        while len(out) < limit:
            page_vars = {**(variables or {}), "first": min(PAGE_SIZE, limit - len(out)), "after": after}
            conn = self._graphql(query, page_vars).get(field) or {}
            out.extend(conn.get("nodes") or [])
            info = conn.get("pageInfo") or {}
            if not info.get("hasNextPage") or not info.get("endCursor"):
                break
            after = info["endCursor"]
        return out[:limit]

    def _single(self, query: str, field: str, variables: dict[str, Any]) -> dict[str, Any]:
        node = self._graphql(query, variables).get(field)
        if not node:
            raise LinearAPIError(f"{field} not found", status=404)
        return node

    # ----- Viewer / users -----
    def viewer(self) -> User:
        return User.from_node(self._single(f"query {{ viewer {{ {USER_FIELDS} }} }}", "viewer", {}))

    def users(self) -> list[User]:
        q = (
            "query($first: Int!, $after: String) { users(first: $first, after: $after) {"
            f" nodes {{ {USER_FIELDS} }} pageInfo {{ hasNextPage endCursor }} }} }}"
        )
        return [User.from_node(n) for n in self._paginate(q, "users")]

    def user(self, user_id: str) -> User:
        q = f"query($id: String!) {{ user(id: $id) {{ {USER_FIELDS} }} }}"
        return User.from_node(self._single(q, "user", {"id": user_id}))

    # ----- Teams -----
    def teams(self) -> list[Team]:
        q = (
            "query($first: Int!, $after: String) { teams(first: $first, after: $after) {"
            f" nodes {{ {TEAM_FIELDS} }} pageInfo {{ hasNextPage endCursor }} }} }}"
        )
        return [Team.from_node(n) for n in self._paginate(q, "teams")]

    def team(self, team_id: str) -> Team:
        q = f"query($id: String!) {{ team(id: $id) {{ {TEAM_FIELDS} }} }}"
        return Team.from_node(self._single(q, "team", {"id": team_id}))

    def team_members(self, team_id: str) -> list[User]:
        q = f"query($id: String!) {{ team(id: $id) {{ members(first: 100) {{ nodes {{ {USER_FIELDS} }} }} }} }}"
        node = self._single(q, "team", {"id": team_id})
        return [User.from_node(n) for n in (node.get("members") or {}).get("nodes") or []]

    def team_projects(self, team_id: str) -> list[Project]:
        q = f"query($id: String!) {{ team(id: $id) {{ projects(first: 100) {{ nodes {{ {PROJECT_FIELDS} }} }} }} }}"
        node = self._single(q, "team", {"id": team_id})
        return [Project.from_node(n) for n in (node.get("projects") or {}).get("nodes") or []]

    # ----- Issues -----
    def create_issue(self, data: IssueInput) -> Issue:
        q = (
            "mutation($input: IssueCreateInput!) { issueCreate(input: $input) {"
            f" success issue {{ {ISSUE_FIELDS} }} }} }}"
        )
        res = self._graphql(q, {"input": data.to_graphql()}).get("issueCreate") or {}
        if not res.get("success") or not res.get("issue"):
            raise LinearAPIError("Failed to create issue", response=res)
        return Issue.from_node(res["issue"])

    def issue(self, issue_id: str) -> Issue:
        # accepts a UUID or an identifier such as ENG-123
        q = f"query($id: String!) {{ issue(id: $id) {{ {ISSUE_FIELDS} }} }}"
        return Issue.from_node(self._single(q, "issue", {"id": issue_id}))

    def update_issue(self, issue_id: str, data: IssueUpdate) -> Issue:
        q = (
            "mutation($id: String!, $input: IssueUpdateInput!) { issueUpdate(id: $id, input: $input) {"
            f" success issue {{ {ISSUE_FIELDS} }} }} }}"
        )
        res = self._graphql(q, {"id": issue_id, "input": data.to_graphql()}).get("issueUpdate") or {}
        if not res.get("success") or not res.get("issue"):
            raise LinearAPIError("Failed to update issue", response=res)
        return Issue.from_node(res["issue"])

    def archive_issue(self, issue_id: str) -> bool:
        # Linear has no hard delete through this path; archive moves it out of active views
        q = "mutation($id: String!) { issueArchive(id: $id) { success } }"
        res = self._graphql(q, {"id": issue_id}).get("issueArchive") or {}
        if not res.get("success"):
            raise LinearAPIError("Failed to archive issue", response=res)
        return True

    def issues(self, filters: SearchFilters) -> list[Issue]:
        variables: dict[str, Any] = {"first": min(filters.limit or DEFAULT_SEARCH_LIMIT, MAX_COLLECTION_ITEMS)}
        flt = issue_filter(filters)
        if flt is not None:
            variables["filter"] = flt
        if filters.order_by:
            variables["orderBy"] = filters.order_by
        q = (
            "query($first: Int!, $filter: IssueFilter, $orderBy: PaginationOrderBy) {"
            " issues(first: $first, filter: $filter, orderBy: $orderBy) {"
            f" nodes {{ {ISSUE_FIELDS} }} }} }}"
        )
        conn = self._graphql(q, variables).get("issues") or {}
        return [Issue.from_node(n) for n in conn.get("nodes") or []]

    def labels_of_issue(self, issue_id: str) -> list[Label]:
        q = f"query($id: String!) {{ issue(id: $id) {{ labels(first: 50) {{ nodes {{ {LABEL_FIELDS} }} }} }} }}"
        node = self._single(q, "issue", {"id": issue_id})
        return [Label.from_node(n) for n in (node.get("labels") or {}).get("nodes") or []]

    # ----- Comments -----
    def create_comment(self, data: CommentInput) -> Comment:
        q = (
            "mutation($input: CommentCreateInput!) { commentCreate(input: $input) {"
            f" success comment {{ {COMMENT_FIELDS} }} }} }}"
        )
        res = self._graphql(q, {"input": data.to_graphql()}).get("commentCreate") or {}
        if not res.get("success") or not res.get("comment"):
            raise LinearAPIError("Failed to create comment", response=res)
        return Comment.from_node(res["comment"])

    # ----- Projects -----
    def projects(self) -> list[Project]:
        q = (
            "query($first: Int!, $after: String) { projects(first: $first, after: $after) {"
            f" nodes {{ {PROJECT_FIELDS} }} pageInfo {{ hasNextPage endCursor }} }} }}"
        )
        return [Project.from_node(n) for n in self._paginate(q, "projects")]

    def project(self, project_id: str) -> Project:
        q = f"query($id: String!) {{ project(id: $id) {{ {PROJECT_FIELDS} }} }}"
        return Project.from_node(self._single(q, "project", {"id": project_id}))

    def project_teams(self, project_id: str) -> list[Team]:
        q = f"query($id: String!) {{ project(id: $id) {{ teams(first: 50) {{ nodes {{ {TEAM_FIELDS} }} }} }} }}"
        node = self._single(q, "project", {"id": project_id})
        return [Team.from_node(n) for n in (node.get("teams") or {}).get("nodes") or []]

    # ----- Labels / workflow states -----
    def issue_labels(self, team_id: str | None = None) -> list[Label]:
        q = (
            "query($first: Int!, $after: String, $filter: IssueLabelFilter) {"
            " issueLabels(first: $first, after: $after, filter: $filter) {"
            f" nodes {{ {LABEL_FIELDS} }} pageInfo {{ hasNextPage endCursor }} }} }}"
        )
        variables = {"filter": {"team": {"id": {"eq": team_id}}}} if team_id else {}
        return [Label.from_node(n) for n in self._paginate(q, "issueLabels", variables)]

    def workflow_states(self, team_id: str) -> list[WorkflowState]:
        q = (
            "query($first: Int!, $after: String, $filter: WorkflowStateFilter) {"
            " workflowStates(first: $first, after: $after, filter: $filter) {"
            f" nodes {{ {STATE_FIELDS} }} pageInfo {{ hasNextPage endCursor }} }} }}"
        )
        variables = {"filter": {"team": {"id": {"eq": team_id}}}}
        return [WorkflowState.from_node(n) for n in self._paginate(q, "workflowStates", variables)]

    def workflow_state(self, state_id: str) -> WorkflowState:
        q = f"query($id: String!) {{ workflowState(id: $id) {{ {STATE_FIELDS} }} }}"
        return WorkflowState.from_node(self._single(q, "workflowState", {"id": state_id}))


def _first_error_message(resp: Any) -> str | None:
    if not isinstance(resp, dict):
        return None
    errors = resp.get("errors") or []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("message")
    return None
