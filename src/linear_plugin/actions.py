"""
Named operations exposed to the agent runtime.

Every handler takes the free-text message plus an optional options bag,
reports its outcome through the callback, and returns an ActionResult.
Remote failures are caught here and turned into failed results.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .errors import LinearAPIError
from .interpreter import (
    Ambiguous,
    Interpretation,
    NotFound,
    ParseFailed,
    Resolved,
    apply_default_team,
    ask_model,
    asks_for_all,
    extract_issue_id,
    filters_from_criteria,
    format_disambiguation,
    parse_priority,
    resolve_issue,
)
from .logs import log_event
from .models import (
    DEFAULT_PRIORITY,
    CommentInput,
    Issue,
    IssueInput,
    IssueUpdate,
    SearchFilters,
    Team,
    priority_label,
)
from .prompts import (
    CREATE_COMMENT_TEMPLATE,
    CREATE_ISSUE_TEMPLATE,
    DELETE_ISSUE_TEMPLATE,
    GET_ISSUE_TEMPLATE,
    LIST_PROJECTS_TEMPLATE,
    LIST_TEAMS_TEMPLATE,
    SEARCH_ISSUES_TEMPLATE,
    UPDATE_ISSUE_TEMPLATE,
)
from .runtime import Callback
from .service import SERVICE_NAME, LinearService

logger = logging.getLogger(__name__)

ACTIVITY_DISPLAY_COUNT = 10
TEAM_MEMBER_PREVIEW = 5

_CREATE_PREFIX_RE = re.compile(
    r"^\s*(?:please\s+)?(?:create|file|open|add|make|report)\s+(?:a\s+|an\s+)?(?:new\s+)?"
    r"(?:high\s+priority\s+|urgent\s+|low\s+priority\s+)?(?:issue|ticket|bug(?:\s+report)?|task)\b\s*(?:for|about)?\s*",
    re.IGNORECASE,
)
_COMMENT_RE = re.compile(
    r"(?:comment\s+on|add.*?comment.*?to)\s+[A-Za-z][A-Za-z0-9]*-\d+\s*:?\s*(.*)",
    re.IGNORECASE | re.DOTALL,
)
_UPDATE_TITLE_RE = re.compile(r"title\s+to\s+[\"“']?(.+?)[\"”']?\s*$", re.IGNORECASE)
_UPDATE_PRIORITY_RE = re.compile(r"priority\s+to\s+(\w+)", re.IGNORECASE)
# Status and assignee values end at "and", a comma or the end of the text
_UPDATE_STATUS_RE = re.compile(
    r"(?:status|state)\s+to\s+[\"“']?(.+?)[\"”']?\s*(?:,|\band\b|$)", re.IGNORECASE
)
_UPDATE_ASSIGNEE_RE = re.compile(r"assign(?:\s+it)?\s+to\s+(.+?)\s*(?:,|\band\b|$)", re.IGNORECASE)


@dataclass
class ActionResult:
    success: bool
    text: str | None = None
    data: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        for key in ("text", "data", "error"):
            val = getattr(self, key)
            if val is not None:
                out[key] = val
        return out


Handler = Callable[..., Awaitable[ActionResult]]


# ----- Shared helpers -----


async def _emit(callback: Callback | None, text: str) -> None:
    if callback is not None:
        await callback(text)


async def _reply(
    callback: Callback | None, text: str, success: bool = True, data: dict[str, Any] | None = None
) -> ActionResult:
    await _emit(callback, text)
    return ActionResult(success=success, text=text, data=data, error=None if success else text)


def _service(runtime: Any) -> LinearService:
    service = runtime.get_service(SERVICE_NAME)
    if not service:
        raise LinearAPIError("Linear service not available")
    return service


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def _priority_or_default(value: Any) -> int:
    # 0 is "No priority" and must survive
    p = parse_priority(value)
    return p if p is not None else DEFAULT_PRIORITY


def operation(what: str) -> Callable[[Handler], Handler]:
    """Convert any failure inside a handler into a failed ActionResult."""

    def deco(fn: Handler) -> Handler:
        @functools.wraps(fn)
        async def wrapper(
            runtime: Any,
            message: str | None,
            options: dict[str, Any] | None = None,
            callback: Callback | None = None,
        ) -> ActionResult:
            try:
                return await fn(runtime, (message or "").strip(), dict(options or {}), callback)
            except Exception as e:
                logger.exception("Failed to %s", what)
                log_event(logger, "action_failed", logging.ERROR, action=what, error=str(e))
                text = f"❌ Failed to {what}: {e}"
                await _emit(callback, text)
                return ActionResult(success=False, text=text, error=str(e))

        return wrapper

    return deco


async def _status_names(service: LinearService, issues: list[Issue]) -> list[str | None]:
    rels = await asyncio.gather(*(service.issue_relations(i, include=("state",)) for i in issues))
    return [r.state.name if r.state else None for r in rels]


async def _target_issue(
    runtime: Any,
    service: LinearService,
    text: str,
    template: str,
    options: dict[str, Any],
    verb: str,
    callback: Callback | None,
) -> tuple[Issue | None, ActionResult | None, Interpretation]:
    """Resolve the request to one issue, or produce the user-facing reply."""
    if not text and not options.get("issueId"):
        result = await _reply(callback, f"Please specify which issue to {verb}.", success=False)
        return None, result, Interpretation("none")

    resolution, interp = await resolve_issue(
        runtime, service, text, template, options, service.default_team_key
    )
    if isinstance(resolution, Resolved):
        return await service.get_issue(resolution.issue_id), None, interp
    if isinstance(resolution, Ambiguous):
        statuses = await _status_names(service, resolution.candidates)
        body = format_disambiguation(list(zip(resolution.candidates, statuses)), verb)
        data = {
            "multipleResults": True,
            "issues": [
                {**c.summary(), "status": s} for c, s in zip(resolution.candidates, statuses)
            ],
        }
        return None, await _reply(callback, body, success=True, data=data), interp
    if isinstance(resolution, NotFound):
        body = "No issues found matching your description. Please provide the issue ID (e.g. ENG-123)."
        result = await _reply(callback, body, success=False, data={"criteria": resolution.criteria})
        return None, result, interp
    if isinstance(resolution, ParseFailed):
        body = f"Please specify an issue ID (e.g. ENG-123) to {verb}."
        return None, await _reply(callback, body, success=False), interp
    raise TypeError(f"unexpected resolution: {resolution!r}")


def fallback_title(text: str) -> str:
    """Title for a new issue when the model gave none."""
    if ":" in text:
        head, tail = text.split(":", 1)
        if tail.strip() and _CREATE_PREFIX_RE.match(head + " "):
            return tail.strip()
    stripped = _CREATE_PREFIX_RE.sub("", text, count=1).strip(" :-")
    return stripped or text.strip()


def fallback_comment_body(text: str) -> str | None:
    m = _COMMENT_RE.search(text)
    if m and m.group(1).strip():
        return m.group(1).strip()
    issue_id = extract_issue_id(text)
    if issue_id:
        tail = text.split(issue_id, 1)[1]
        if tail.lstrip().startswith(":") and tail.lstrip()[1:].strip():
            return tail.lstrip()[1:].strip()
    return None


def fallback_updates(text: str) -> dict[str, Any]:
    found: dict[str, Any] = {}
    for key, rx in (
        ("title", _UPDATE_TITLE_RE),
        ("priority", _UPDATE_PRIORITY_RE),
        ("status", _UPDATE_STATUS_RE),
        ("assignee", _UPDATE_ASSIGNEE_RE),
    ):
        m = rx.search(text)
        if m and m.group(1).strip():
            found[key] = m.group(1).strip()
    return found


_UPDATE_KEYS = (
    "title",
    "description",
    "priority",
    "assigneeId",
    "assignee",
    "stateId",
    "status",
    "state",
    "labelIds",
    "labels",
    "projectId",
    "estimate",
    "dueDate",
)


async def _build_update(
    service: LinearService, issue: Issue, src: dict[str, Any]
) -> tuple[IssueUpdate, list[str]]:
    """Map requested changes onto ids; names that match nothing are returned."""
    updates = IssueUpdate()
    unresolved: list[str] = []
    if src.get("title"):
        updates.title = str(src["title"])
    if src.get("description"):
        updates.description = str(src["description"])
    if src.get("priority") is not None:
        updates.priority = parse_priority(src["priority"])
        if updates.priority is None:
            unresolved.append(f'priority "{src["priority"]}"')
    if src.get("assigneeId"):
        updates.assignee_id = str(src["assigneeId"])
    elif src.get("assignee"):
        updates.assignee_id = await service.resolve_user_id(str(src["assignee"]))
        if updates.assignee_id is None:
            unresolved.append(f'assignee "{src["assignee"]}"')
    status = src.get("status") or src.get("state")
    if src.get("stateId"):
        updates.state_id = str(src["stateId"])
    elif status:
        if issue.team_id:
            updates.state_id = await service.resolve_state_id(str(status), issue.team_id)
        if updates.state_id is None:
            unresolved.append(f'status "{status}"')
    if src.get("labelIds"):
        updates.label_ids = [str(x) for x in src["labelIds"]]
    elif src.get("labels"):
        names = src["labels"] if isinstance(src["labels"], list) else [src["labels"]]
        ids, missing = await service.resolve_label_ids(names)
        updates.label_ids = ids or None
        unresolved.extend(f'label "{n}"' for n in missing)
    if src.get("projectId"):
        updates.project_id = str(src["projectId"])
    if src.get("estimate") is not None:
        updates.estimate = int(src["estimate"])
    if src.get("dueDate"):
        updates.due_date = str(src["dueDate"])
    return updates, unresolved


# ----- Issues -----


@operation("create issue")
async def create_issue(
    runtime: Any, text: str, options: dict[str, Any], callback: Callback | None
) -> ActionResult:
    service = _service(runtime)
    team: Team | None = None

    if options.get("title") and options.get("teamId"):
        data = IssueInput(
            title=str(options["title"]),
            team_id=str(options["teamId"]),
            description=str(options["description"]) if options.get("description") else None,
            priority=_priority_or_default(options.get("priority")),
            assignee_id=str(options["assigneeId"]) if options.get("assigneeId") else None,
            label_ids=list(options["labelIds"]) if options.get("labelIds") else None,
            project_id=str(options["projectId"]) if options.get("projectId") else None,
        )
    else:
        if not text:
            return await _reply(callback, "Please describe the issue to create.", success=False)
        parsed = await ask_model(runtime, text, CREATE_ISSUE_TEMPLATE)
        if parsed is not None and parsed.get("shouldCreate") is False:
            return await _reply(
                callback, "Not enough information to create an issue.", success=False
            )
        parsed = parsed or {}
        title = str(parsed.get("title") or "").strip() or fallback_title(text)

        team_ref = apply_default_team(
            parsed.get("teamKey") or parsed.get("team") or options.get("team"),
            text,
            service.default_team_key,
        )
        if team_ref:
            team = await service.find_team(str(team_ref))
            if team is None:
                log_event(logger, "team_not_found", logging.WARNING, team=team_ref)
        if team is None:
            teams = await service.get_teams()
            if not teams:
                return await _reply(
                    callback, "No teams available in the Linear workspace.", success=False
                )
            team = teams[0]

        assignee_id = None
        if parsed.get("assignee"):
            assignee_id = await service.resolve_user_id(str(parsed["assignee"]))
        label_ids = None
        if parsed.get("labels"):
            labels = parsed["labels"] if isinstance(parsed["labels"], list) else [parsed["labels"]]
            ids, missing = await service.resolve_label_ids(labels)
            label_ids = ids or None
            if missing:
                log_event(logger, "labels_not_found", logging.WARNING, labels=missing)

        data = IssueInput(
            title=title,
            team_id=team.id,
            description=parsed.get("description") or None,
            priority=_priority_or_default(parsed.get("priority")),
            assignee_id=assignee_id,
            label_ids=label_ids,
        )

    issue = await service.create_issue(data)
    log_event(logger, "issue_created", identifier=issue.identifier)
    lines = [f"✅ Created issue {issue.identifier}: {issue.title}"]
    if team is not None:
        lines.append(f"Team: {team.name} ({team.key})")
    lines.append(f"Priority: {priority_label(data.priority)}")
    if issue.url:
        lines.append(f"View it at: {issue.url}")
    summary = {**issue.summary(), "teamName": team.name if team else None}
    return await _reply(callback, "\n".join(lines), data={"issue": summary})


@operation("get issue")
async def get_issue(
    runtime: Any, text: str, options: dict[str, Any], callback: Callback | None
) -> ActionResult:
    service = _service(runtime)
    issue, early, _interp = await _target_issue(
        runtime, service, text, GET_ISSUE_TEMPLATE, options, "view", callback
    )
    if issue is None:
        return early  # type: ignore[return-value]

    rel = await service.issue_relations(issue)
    details = {
        "id": issue.id,
        "identifier": issue.identifier,
        "title": issue.title,
        "description": issue.description,
        "priority": issue.priority,
        "priorityLabel": issue.priority_label,
        "url": issue.url,
        "createdAt": issue.created_at,
        "updatedAt": issue.updated_at,
        "dueDate": issue.due_date,
        "estimate": issue.estimate,
        "assignee": (
            {"id": rel.assignee.id, "name": rel.assignee.name, "email": rel.assignee.email}
            if rel.assignee
            else None
        ),
        "state": (
            {"id": rel.state.id, "name": rel.state.name, "type": rel.state.type, "color": rel.state.color}
            if rel.state
            else None
        ),
        "team": {"id": rel.team.id, "name": rel.team.name, "key": rel.team.key} if rel.team else None,
        "labels": [{"id": lb.id, "name": lb.name, "color": lb.color} for lb in rel.labels],
        "project": {"id": rel.project.id, "name": rel.project.name} if rel.project else None,
    }

    lines = [f"📋 {issue.identifier}: {issue.title}", ""]
    lines.append(f"Status: {rel.state.name if rel.state else 'Unknown'}")
    lines.append(f"Priority: {issue.priority_label}")
    lines.append(f"Assignee: {rel.assignee.name if rel.assignee else 'Unassigned'}")
    if rel.team:
        lines.append(f"Team: {rel.team.name} ({rel.team.key})")
    if rel.project:
        lines.append(f"Project: {rel.project.name}")
    if rel.labels:
        lines.append("Labels: " + ", ".join(lb.name for lb in rel.labels))
    if issue.due_date:
        lines.append(f"Due: {issue.due_date}")
    if issue.description:
        lines += ["", f"Description: {issue.description}"]
    if issue.url:
        lines += ["", f"View in Linear: {issue.url}"]
    return await _reply(callback, "\n".join(lines), data={"issue": details})


@operation("update issue")
async def update_issue(
    runtime: Any, text: str, options: dict[str, Any], callback: Callback | None
) -> ActionResult:
    service = _service(runtime)
    issue, early, interp = await _target_issue(
        runtime, service, text, UPDATE_ISSUE_TEMPLATE, options, "update", callback
    )
    if issue is None:
        return early  # type: ignore[return-value]

    if any(k in options for k in _UPDATE_KEYS):
        src = options
    else:
        model_updates = interp.fields.get("updates")
        src = model_updates if isinstance(model_updates, dict) and model_updates else fallback_updates(text)

    updates, unresolved = await _build_update(service, issue, src)
    if updates.is_empty() and unresolved:
        body = "; ".join(f"Unknown {u}" for u in unresolved)
        body = f"❌ Nothing changed on {issue.identifier}. {body}."
        return await _reply(callback, body, success=False, data={"unresolved": unresolved})
    if updates.is_empty():
        return await _reply(
            callback,
            f"What would you like to change on {issue.identifier}? "
            'For example: "Update ENG-123 title to ..." or "set priority to high".',
            success=False,
        )

    updated = await service.update_issue(issue.id, updates)
    fields = updates.fields()
    log_event(logger, "issue_updated", identifier=updated.identifier, fields=fields)
    body = f"✅ Updated issue {updated.identifier}: {updated.title}\nChanged: {', '.join(fields)}"
    if unresolved:
        body += "\nNot changed: " + ", ".join(f"unknown {u}" for u in unresolved)
    if updated.url:
        body += f"\nView it at: {updated.url}"
    data = {"issue": updated.summary(), "updates": fields, "unresolved": unresolved}
    return await _reply(callback, body, data=data)


@operation("delete issue")
async def delete_issue(
    runtime: Any, text: str, options: dict[str, Any], callback: Callback | None
) -> ActionResult:
    service = _service(runtime)
    issue, early, _interp = await _target_issue(
        runtime, service, text, DELETE_ISSUE_TEMPLATE, options, "delete", callback
    )
    if issue is None:
        return early  # type: ignore[return-value]

    log_event(logger, "issue_archiving", identifier=issue.identifier)
    await service.delete_issue(issue.id)
    body = (
        f'✅ Successfully archived issue {issue.identifier}: "{issue.title}"\n\n'
        "The issue has been moved to the archived state and will no longer appear in active views."
    )
    data = {"issueId": issue.id, "identifier": issue.identifier, "title": issue.title, "archived": True}
    return await _reply(callback, body, data=data)


@operation("search issues")
async def search_issues(
    runtime: Any, text: str, options: dict[str, Any], callback: Callback | None
) -> ActionResult:
    service = _service(runtime)
    default_team = service.default_team_key

    if isinstance(options.get("filters"), dict):
        filters = SearchFilters.from_dict(options["filters"])
        filters.team = apply_default_team(filters.team, text, default_team)
    elif not text:
        return await _reply(callback, "Please provide search criteria for issues.", success=False)
    else:
        parsed = await ask_model(runtime, text, SEARCH_ISSUES_TEMPLATE)
        if parsed is None:
            filters = SearchFilters(query=text, team=apply_default_team(None, text, default_team))
        else:
            filters = filters_from_criteria(parsed, text, default_team)

    if filters.assignees and any(a.lower() == "me" for a in filters.assignees):
        me = await service.get_current_user()
        filters.assignees = [me.email or me.id if a.lower() == "me" else a for a in filters.assignees]

    if options.get("limit"):
        filters.limit = int(options["limit"])
    filters.limit = filters.limit or 10

    issues = await service.search_issues(filters)
    if not issues:
        return await _reply(
            callback,
            "No issues found matching your search criteria.",
            data={"issues": [], "filters": filters.to_dict(), "count": 0},
        )

    rels = await asyncio.gather(
        *(service.issue_relations(i, include=("state", "assignee", "team")) for i in issues)
    )
    lines = []
    for n, (issue, rel) in enumerate(zip(issues, rels), 1):
        lines.append(
            f"{n}. {issue.identifier}: {issue.title}\n"
            f"   Status: {rel.state.name if rel.state else 'No state'}"
            f" | Priority: {priority_label(issue.priority)}"
            f" | Assignee: {rel.assignee.name if rel.assignee else 'Unassigned'}"
        )
    body = f"📋 Found {_plural(len(issues), 'issue')}:\n\n" + "\n\n".join(lines)
    data = {
        "issues": [
            {
                **issue.summary(),
                "priority": issue.priority,
                "state": {"name": rel.state.name, "type": rel.state.type} if rel.state else None,
                "assignee": (
                    {"name": rel.assignee.name, "email": rel.assignee.email} if rel.assignee else None
                ),
                "team": {"name": rel.team.name, "key": rel.team.key} if rel.team else None,
                "createdAt": issue.created_at,
                "updatedAt": issue.updated_at,
            }
            for issue, rel in zip(issues, rels)
        ],
        "filters": filters.to_dict(),
        "count": len(issues),
    }
    return await _reply(callback, body, data=data)


# ----- Comments -----


@operation("create comment")
async def create_comment(
    runtime: Any, text: str, options: dict[str, Any], callback: Callback | None
) -> ActionResult:
    service = _service(runtime)
    if not text and not options.get("issueId"):
        return await _reply(
            callback, "Please provide a message with the issue ID and comment content.", success=False
        )

    issue, early, interp = await _target_issue(
        runtime, service, text, CREATE_COMMENT_TEMPLATE, options, "comment on", callback
    )
    if issue is None:
        return early  # type: ignore[return-value]

    body = options.get("body") or interp.fields.get("commentBody") or fallback_comment_body(text)
    if not body or not str(body).strip():
        return await _reply(
            callback,
            'Please specify the comment content. Example: "Comment on ENG-123: This looks good"',
            success=False,
        )
    body = str(body).strip()

    comment = await service.create_comment(CommentInput(issue_id=issue.id, body=body))
    reply = f'✅ Comment added to issue {issue.identifier}: "{body}"'
    return await _reply(
        callback, reply, data={"commentId": comment.id, "issueId": issue.id, "identifier": issue.identifier}
    )


# ----- Teams / projects -----


@operation("list teams")
async def list_teams(
    runtime: Any, text: str, options: dict[str, Any], callback: Callback | None
) -> ActionResult:
    service = _service(runtime)
    name_filter = options.get("nameFilter")
    specific = options.get("specificTeam")
    include_details = bool(options.get("includeDetails"))

    if text and not (name_filter or specific):
        parsed = await ask_model(runtime, text, LIST_TEAMS_TEMPLATE) or {}
        name_filter = parsed.get("nameFilter") or None
        specific = parsed.get("specificTeam") or None
        include_details = include_details or parsed.get("includeDetails") is True

    teams = await service.get_teams()
    if specific:
        needle = str(specific).lower()
        teams = [t for t in teams if needle in (t.key.lower(), t.name.lower())]
    elif name_filter:
        keywords = str(name_filter).lower().split()
        teams = [
            t for t in teams if any(k in f"{t.name} {t.description or ''}".lower() for k in keywords)
        ]

    if not teams:
        if specific:
            body = f'No team found matching "{specific}".'
        elif name_filter:
            body = f'No teams found matching "{name_filter}".'
        else:
            body = "No teams found in Linear."
        return await _reply(callback, body, data={"teams": []})

    detailed = include_details or bool(specific)
    extra: list[tuple[list[Any], list[Any]]] = []
    if detailed:
        extra = list(await asyncio.gather(*(service.team_details(t) for t in teams)))

    blocks = []
    for n, team in enumerate(teams, 1):
        info = f"{n}. {team.name} ({team.key})"
        if team.description:
            info += f"\n   {team.description}"
        if detailed:
            members, projects = extra[n - 1]
            info += f"\n   Members: {len(members)} | Projects: {len(projects)}"
            if specific and members:
                names = ", ".join(m.name for m in members[:TEAM_MEMBER_PREVIEW])
                more = " ..." if len(members) > TEAM_MEMBER_PREVIEW else ""
                info += f"\n   Team members: {names}{more}"
        blocks.append(info)

    if specific and len(teams) == 1:
        header = "📋 Team Details:"
    elif name_filter:
        header = f'📋 Found {_plural(len(teams), "team")} matching "{name_filter}":'
    else:
        header = f"📋 Found {_plural(len(teams), 'team')}:"

    data = {
        "teams": [
            {
                "id": t.id,
                "name": t.name,
                "key": t.key,
                "description": t.description,
                **(
                    {"memberCount": len(extra[i][0]), "projectCount": len(extra[i][1])}
                    if detailed
                    else {}
                ),
            }
            for i, t in enumerate(teams)
        ],
        "count": len(teams),
        "filters": {"name": name_filter, "specific": specific},
    }
    return await _reply(callback, f"{header}\n\n" + "\n\n".join(blocks), data=data)


@operation("list projects")
async def list_projects(
    runtime: Any, text: str, options: dict[str, Any], callback: Callback | None
) -> ActionResult:
    service = _service(runtime)
    team_ref = options.get("teamId") or options.get("team")
    state_filter = options.get("state")
    show_all = bool(options.get("showAll")) or asks_for_all(text)

    if text and not team_ref:
        parsed = await ask_model(runtime, text, LIST_PROJECTS_TEMPLATE) or {}
        team_ref = parsed.get("teamFilter") or None
        state_filter = state_filter or parsed.get("stateFilter") or None
        show_all = show_all or parsed.get("showAll") is True

    if not show_all:
        team_ref = apply_default_team(team_ref, text, service.default_team_key)

    team: Team | None = None
    if team_ref and not show_all:
        team = await service.find_team(str(team_ref))
        if team is None:
            return await _reply(callback, f'No team found matching "{team_ref}".', data={"projects": []})

    projects = await service.get_projects(team.id if team else None)
    if state_filter:
        projects = [p for p in projects if (p.state or "").lower() == str(state_filter).lower()]

    scope = f" for team {team.name}" if team else ""
    if not projects:
        return await _reply(callback, f"No projects found in Linear{scope}.", data={"projects": []})

    team_lists = await asyncio.gather(*(service.project_teams(p) for p in projects))
    lines = []
    for n, (project, teams) in enumerate(zip(projects, team_lists), 1):
        names = ", ".join(t.name for t in teams) or "No teams"
        desc = f" - {project.description}" if project.description else ""
        state = f" [{project.state}]" if project.state else ""
        lines.append(f"{n}. {project.name}{desc}{state} (Teams: {names})")

    data = {
        "projects": [
            {
                "id": p.id,
                "name": p.name,
                "description": p.description,
                "url": p.url,
                "teams": [{"id": t.id, "name": t.name, "key": t.key} for t in teams],
                "state": p.state,
                "progress": p.progress,
                "startDate": p.start_date,
                "targetDate": p.target_date,
            }
            for p, teams in zip(projects, team_lists)
        ],
        "count": len(projects),
        "teamId": team.id if team else None,
    }
    body = f"📁 Found {_plural(len(projects), 'project')}{scope}:\n" + "\n".join(lines)
    return await _reply(callback, body, data=data)


# ----- Activity -----


@operation("get activity")
async def get_activity(
    runtime: Any, text: str, options: dict[str, Any], callback: Callback | None
) -> ActionResult:
    service = _service(runtime)
    flt = options.get("filter") if isinstance(options.get("filter"), dict) else None
    activity = service.get_activity_log(options.get("limit"), flt)

    if not activity:
        return await _reply(
            callback, "No recent Linear activity found.", data={"activity": [], "count": 0}
        )

    shown = activity[-ACTIVITY_DISPLAY_COUNT:]
    lines = []
    for n, item in enumerate(shown, 1):
        mark = "✓" if item.success else "✗"
        failed = f" (failed: {item.error})" if item.error else ""
        lines.append(
            f"{n}. {mark} {item.timestamp} {item.action} {item.resource_type} {item.resource_id}{failed}"
        )
    body = "📊 Recent Linear activity:\n" + "\n".join(lines)
    return await _reply(
        callback, body, data={"activity": [i.to_dict() for i in shown], "count": len(activity)}
    )


@operation("clear activity")
async def clear_activity(
    runtime: Any, text: str, options: dict[str, Any], callback: Callback | None
) -> ActionResult:
    service = _service(runtime)
    service.clear_activity_log()
    return await _reply(
        callback,
        "✅ Linear activity log has been cleared.",
        data={"message": "Activity log cleared successfully"},
    )
