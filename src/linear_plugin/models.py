"""
Records exchanged with Linear, transient request payloads, and the
activity ledger entry.

Remote records are built from GraphQL nodes. Relations of an issue are
kept as ids; resolve them with the explicit accessors on the service.
"""

from __future__ import annotations

import copy
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Literal

ResourceType = Literal["issue", "project", "comment", "label", "user", "team"]

# 0 = No priority, 1 = Urgent, 2 = High, 3 = Normal, 4 = Low
PRIORITY_LABELS: tuple[str, ...] = ("No priority", "Urgent", "High", "Normal", "Low")
DEFAULT_PRIORITY = 3


def priority_label(priority: int | None) -> str:
    if priority is None or not 0 <= priority < len(PRIORITY_LABELS):
        return PRIORITY_LABELS[0]
    return PRIORITY_LABELS[priority]


def _rel_id(node: dict[str, Any], key: str) -> str | None:
    rel = node.get(key)
    if isinstance(rel, dict):
        return rel.get("id")
    return None


# ----- Activity ledger -----


def _activity_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ActivityItem:
    action: str
    resource_type: ResourceType
    resource_id: str
    details: Mapping[str, Any]
    success: bool
    error: str | None = None
    id: str = field(default_factory=_activity_id)
    timestamp: str = field(default_factory=_now_iso)

    def __post_init__(self) -> None:
        # read-only snapshot; callers cannot reach the stored details
        object.__setattr__(self, "details", MappingProxyType(copy.deepcopy(dict(self.details))))

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "details": copy.deepcopy(dict(self.details)),
            "success": self.success,
        }
        if self.error is not None:
            d["error"] = self.error
        return d


# ----- Transient request payloads -----


@dataclass
class SearchFilters:
    query: str | None = None
    states: list[str] | None = None
    assignees: list[str] | None = None
    labels: list[str] | None = None
    priorities: list[int] | None = None
    team: str | None = None
    project: str | None = None
    limit: int | None = None
    # Linear orders descending on the chosen timestamp
    order_by: Literal["createdAt", "updatedAt"] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v not in (None, [], "")}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchFilters:
        """Accept the option-bag shape (`state`, `assignee`, `label`, `priority`)."""

        def _list(*keys: str) -> list[Any] | None:
            for k in keys:
                v = data.get(k)
                if v in (None, "", []):
                    continue
                return list(v) if isinstance(v, (list, tuple)) else [v]
            return None

        priorities = _list("priorities", "priority")
        limit = data.get("limit")
        return cls(
            query=data.get("query") or None,
            states=_list("states", "state"),
            assignees=_list("assignees", "assignee"),
            labels=_list("labels", "label"),
            priorities=[int(p) for p in priorities] if priorities else None,
            team=data.get("team") or None,
            project=data.get("project") or None,
            limit=int(limit) if limit else None,
            order_by=data.get("order_by") or data.get("orderBy") or None,
        )


def _date_str(value: date | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


@dataclass
class IssueInput:
    title: str
    team_id: str
    description: str | None = None
    priority: int | None = None
    assignee_id: str | None = None
    label_ids: list[str] | None = None
    project_id: str | None = None
    state_id: str | None = None
    estimate: int | None = None
    due_date: date | str | None = None

    def to_graphql(self) -> dict[str, Any]:
        payload = {
            "title": self.title,
            "teamId": self.team_id,
            "description": self.description,
            "priority": self.priority,
            "assigneeId": self.assignee_id,
            "labelIds": self.label_ids,
            "projectId": self.project_id,
            "stateId": self.state_id,
            "estimate": self.estimate,
            "dueDate": _date_str(self.due_date),
        }
        return {k: v for k, v in payload.items() if v is not None}


@dataclass
class IssueUpdate:
    title: str | None = None
    description: str | None = None
    priority: int | None = None
    assignee_id: str | None = None
    label_ids: list[str] | None = None
    project_id: str | None = None
    state_id: str | None = None
    estimate: int | None = None
    due_date: date | str | None = None

    def to_graphql(self) -> dict[str, Any]:
        payload = {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "assigneeId": self.assignee_id,
            "labelIds": self.label_ids,
            "projectId": self.project_id,
            "stateId": self.state_id,
            "estimate": self.estimate,
            "dueDate": _date_str(self.due_date),
        }
        return {k: v for k, v in payload.items() if v is not None}

    def fields(self) -> list[str]:
        return list(self.to_graphql().keys())

    def is_empty(self) -> bool:
        return not self.fields()


@dataclass
class CommentInput:
    issue_id: str
    body: str

    def to_graphql(self) -> dict[str, Any]:
        return {"issueId": self.issue_id, "body": self.body}


# ----- Remote records -----


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    key: str
    description: str | None = None

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> Team:
        return cls(
            id=node["id"],
            name=node.get("name") or "",
            key=node.get("key") or "",
            description=node.get("description"),
        )


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str | None = None
    display_name: str | None = None
    active: bool = True

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> User:
        return cls(
            id=node["id"],
            name=node.get("name") or "",
            email=node.get("email"),
            display_name=node.get("displayName"),
            active=node.get("active", True) is not False,
        )


@dataclass(frozen=True)
class WorkflowState:
    id: str
    name: str
    type: str  # backlog | unstarted | started | completed | canceled
    color: str | None = None
    position: float = 0.0

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> WorkflowState:
        return cls(
            id=node["id"],
            name=node.get("name") or "",
            type=node.get("type") or "",
            color=node.get("color"),
            position=float(node.get("position") or 0.0),
        )


@dataclass(frozen=True)
class Label:
    id: str
    name: str
    color: str | None = None

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> Label:
        return cls(id=node["id"], name=node.get("name") or "", color=node.get("color"))


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    description: str | None = None
    url: str | None = None
    state: str | None = None  # planned | started | paused | completed | canceled
    progress: float = 0.0
    start_date: str | None = None
    target_date: str | None = None

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> Project:
        return cls(
            id=node["id"],
            name=node.get("name") or "",
            description=node.get("description") or None,
            url=node.get("url"),
            state=node.get("state"),
            progress=float(node.get("progress") or 0.0),
            start_date=node.get("startDate"),
            target_date=node.get("targetDate"),
        )


@dataclass(frozen=True)
class Issue:
    id: str
    identifier: str
    title: str
    description: str | None = None
    priority: int = 0
    priority_label: str = PRIORITY_LABELS[0]
    url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    archived_at: str | None = None
    due_date: str | None = None
    estimate: float | None = None
    team_id: str | None = None
    state_id: str | None = None
    assignee_id: str | None = None
    project_id: str | None = None

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> Issue:
        priority = int(node.get("priority") or 0)
        return cls(
            id=node["id"],
            identifier=node.get("identifier") or "",
            title=node.get("title") or "",
            description=node.get("description"),
            priority=priority,
            priority_label=node.get("priorityLabel") or priority_label(priority),
            url=node.get("url"),
            created_at=node.get("createdAt"),
            updated_at=node.get("updatedAt"),
            archived_at=node.get("archivedAt"),
            due_date=node.get("dueDate"),
            estimate=node.get("estimate"),
            team_id=_rel_id(node, "team"),
            state_id=_rel_id(node, "state"),
            assignee_id=_rel_id(node, "assignee"),
            project_id=_rel_id(node, "project"),
        )

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "identifier": self.identifier,
            "title": self.title,
            "url": self.url,
        }


@dataclass(frozen=True)
class Comment:
    id: str
    body: str
    created_at: str | None = None
    issue_id: str | None = None

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> Comment:
        return cls(
            id=node["id"],
            body=node.get("body") or "",
            created_at=node.get("createdAt"),
            issue_id=_rel_id(node, "issue"),
        )


@dataclass(frozen=True)
class IssueRelations:
    """Relations of one issue, resolved by an explicit fan-out."""

    team: Team | None = None
    state: WorkflowState | None = None
    assignee: User | None = None
    project: Project | None = None
    labels: list[Label] = field(default_factory=list)
