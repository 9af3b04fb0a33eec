"""
Prompt templates for request interpretation.

Each template has a single `{{userMessage}}` substitution point and asks
the model for one JSON object.
"""

from __future__ import annotations

PLACEHOLDER = "{{userMessage}}"

_TARGET_FIELDS = """  "directId": "Issue identifier if one is named (e.g. ENG-123, COM2-7), else null",
  "searchBy": {
    "title": "Words from the issue title if the issue is described instead of named",
    "assignee": "Assignee name or email, or 'me'",
    "priority": "urgent/high/normal/low or 1/2/3/4",
    "team": "Team name or key",
    "state": "Workflow state name such as In Progress, Done, Todo",
    "recency": "latest/newest if the user refers to the most recent issue"
  }"""

GET_ISSUE_TEMPLATE = f"""Identify which Linear issue the user wants to see.

User request: "{PLACEHOLDER}"

Return ONLY a JSON object:
{{
{_TARGET_FIELDS}
}}

Use directId when an identifier is present; otherwise fill only the searchBy fields that are clearly mentioned."""

UPDATE_ISSUE_TEMPLATE = f"""Identify the Linear issue the user wants to change and the changes requested.

User request: "{PLACEHOLDER}"

Return ONLY a JSON object:
{{
{_TARGET_FIELDS},
  "updates": {{
    "title": "New title",
    "description": "New description",
    "priority": "urgent/high/normal/low or 1/2/3/4",
    "status": "New workflow state name",
    "assignee": "New assignee name or email, or 'me'",
    "labels": ["label names"],
    "estimate": 3,
    "dueDate": "YYYY-MM-DD"
  }}
}}

Only include update fields the user asked to change."""

DELETE_ISSUE_TEMPLATE = f"""Identify the Linear issue the user wants to delete or archive.

User request: "{PLACEHOLDER}"

Return ONLY a JSON object (no markdown formatting, no code blocks):
{{
{_TARGET_FIELDS}
}}"""

CREATE_COMMENT_TEMPLATE = f"""Identify the Linear issue to comment on and the comment text.

User request: "{PLACEHOLDER}"

Return ONLY a JSON object:
{{
{_TARGET_FIELDS},
  "commentBody": "The exact comment to post"
}}"""

CREATE_ISSUE_TEMPLATE = f"""Create a new Linear issue based on the user's request.

User request: "{PLACEHOLDER}"

When creating the issue:
1. The title should be clear and concise
2. The description should include all relevant details from the request
3. Set teamKey only if a team is named
4. Set priority if mentioned (1=Urgent, 2=High, 3=Normal, 4=Low)

Return ONLY a JSON object:
{{
  "title": "Clear, actionable issue title",
  "description": "Detailed description",
  "teamKey": "Team key or name, or null",
  "priority": 3,
  "assignee": "Assignee name or email, or null",
  "labels": ["label names"],
  "shouldCreate": true
}}"""

SEARCH_ISSUES_TEMPLATE = f"""Extract search criteria from the user's request for Linear issues.

User request: "{PLACEHOLDER}"

The user might express searches in various ways:
- "Show me what John is working on" -> assignee filter
- "My high priority bugs" -> assignee (current user) + priority + label
- "Unassigned tasks in the backend team" -> no assignee + team filter
- "Bugs that are almost done" -> label + state filter
- "Show me the newest open issues" -> state + recency

Return ONLY a JSON object:
{{
  "query": "General search text for title/description",
  "states": ["state names like In Progress, Done, Todo, Backlog"],
  "assignees": ["assignee names or emails, or 'me' for current user"],
  "priorities": ["urgent/high/normal/low or 1/2/3/4"],
  "teams": ["team names or keys"],
  "labels": ["label names"],
  "project": "project name",
  "hasAssignee": true,
  "recency": "latest if the user wants the most recent issues",
  "limit": 10
}}

Only include fields that are clearly mentioned or implied. For "my" issues, set assignees to ["me"]."""

LIST_TEAMS_TEMPLATE = f"""Extract team filter criteria from the user's request.

User request: "{PLACEHOLDER}"

Return ONLY a JSON object:
{{
  "nameFilter": "Keywords to search in team names",
  "specificTeam": "Specific team name or key if looking for one team",
  "showAll": true,
  "includeDetails": false
}}

Only include fields that are clearly mentioned."""

LIST_PROJECTS_TEMPLATE = f"""Extract project filter criteria from the user's request.

User request: "{PLACEHOLDER}"

Return ONLY a JSON object:
{{
  "teamFilter": "Team name or key if the user names one",
  "stateFilter": "planned/started/paused/completed/canceled if mentioned",
  "showAll": true
}}

Only include fields that are clearly mentioned."""
