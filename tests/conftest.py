import dataclasses
import json
import types

import pytest

import linear_plugin.handler as handler_mod
import linear_plugin.service as service_mod
from linear_plugin.config import load_settings
from linear_plugin.errors import LinearAPIError
from linear_plugin.models import Comment, Issue, Label, Project, Team, User, WorkflowState
from linear_plugin.service import SERVICE_NAME, LinearService

ENV_KEYS = (
    "LINEAR_API_KEY",
    "LINEAR_WORKSPACE_ID",
    "LINEAR_DEFAULT_TEAM_KEY",
    "LINEAR_API_URL",
    "LINEAR_TIMEOUT_SECONDS",
    "LLM_MODEL",
    "LLM_MAX_RETRIES",
    "WEBHOOK_SHARED_SECRET",
)


class FakeLinearClient:
    """In-memory stand-in for LinearClient; records every call."""

    def __init__(self, *_a, **_k):
        self.calls = []
        self.searches = []
        self.fail = {}
        self.search_results = None
        self.me = User("user-me", "Me Myself", "me@example.com", "me")
        self.users_ = [
            self.me,
            User("user-john", "John Doe", "john@example.com", "john"),
        ]
        self.teams_ = [
            Team("team-eng", "Engineering", "ENG", "Core product"),
            Team("team-des", "Design", "DES", None),
        ]
        self.states = {
            "team-eng": [
                WorkflowState("st-todo", "Todo", "unstarted", "#ccc", 1.0),
                WorkflowState("st-prog", "In Progress", "started", "#ff0", 2.0),
                WorkflowState("st-done", "Done", "completed", "#0f0", 3.0),
            ]
        }
        self.labels_ = [Label("lb-bug", "Bug", "#f00"), Label("lb-feat", "Feature", "#00f")]
        self.projects_ = [
            Project("proj-a", "Alpha", "First", None, "started", 0.5),
            Project("proj-b", "Beta", None, None, "completed", 1.0),
        ]
        self.project_team_map = {"proj-a": ["team-eng"], "proj-b": ["team-des"]}
        self.issues_ = {}
        self.archived = []
        self.comments = []
        self.created = []
        self.updated = []
        self.add_issue("iss-123", "ENG-123", "Fix login button", state_id="st-prog")

    def add_issue(self, id_, identifier, title, team_id="team-eng", state_id="st-todo", **kw):
        issue = Issue(
            id=id_,
            identifier=identifier,
            title=title,
            team_id=team_id,
            state_id=state_id,
            url=f"https://linear.app/x/issue/{identifier}",
            **kw,
        )
        self.issues_[id_] = issue
        return issue

    def _call(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail:
            raise self.fail[name]

    def viewer(self):
        self._call("viewer")
        return self.me

    def users(self):
        self._call("users")
        return list(self.users_)

    def user(self, user_id):
        self._call("user", user_id)
        return next(u for u in self.users_ if u.id == user_id)

    def teams(self):
        self._call("teams")
        return list(self.teams_)

    def team(self, team_id):
        self._call("team", team_id)
        for t in self.teams_:
            if t.id == team_id:
                return t
        raise LinearAPIError("team not found", status=404)

    def team_members(self, team_id):
        self._call("team_members", team_id)
        return list(self.users_)

    def team_projects(self, team_id):
        self._call("team_projects", team_id)
        return [p for p in self.projects_ if team_id in self.project_team_map.get(p.id, [])]

    def create_issue(self, data):
        self._call("create_issue", data)
        self.created.append(data)
        n = 200 + len(self.created)
        return self.add_issue(f"iss-{n}", f"ENG-{n}", data.title, team_id=data.team_id)

    def issue(self, issue_id):
        self._call("issue", issue_id)
        for i in self.issues_.values():
            if issue_id in (i.id, i.identifier):
                return i
        raise LinearAPIError("issue not found", status=404)

    def update_issue(self, issue_id, data):
        self._call("update_issue", issue_id, data)
        self.updated.append((issue_id, data))
        old = self.issues_[issue_id]
        new = dataclasses.replace(old, title=data.title or old.title)
        self.issues_[issue_id] = new
        return new

    def archive_issue(self, issue_id):
        self._call("archive_issue", issue_id)
        self.archived.append(issue_id)
        return True

    def issues(self, filters):
        self._call("issues", filters)
        self.searches.append(filters)
        if self.search_results is not None:
            return list(self.search_results)
        return list(self.issues_.values())[: filters.limit or 50]

    def labels_of_issue(self, issue_id):
        self._call("labels_of_issue", issue_id)
        return []

    def create_comment(self, data):
        self._call("create_comment", data)
        self.comments.append(data)
        return Comment(f"cm-{len(self.comments)}", data.body, None, data.issue_id)

    def projects(self):
        self._call("projects")
        return list(self.projects_)

    def project(self, project_id):
        self._call("project", project_id)
        return next(p for p in self.projects_ if p.id == project_id)

    def project_teams(self, project_id):
        self._call("project_teams", project_id)
        ids = self.project_team_map.get(project_id, [])
        return [t for t in self.teams_ if t.id in ids]

    def issue_labels(self, team_id=None):
        self._call("issue_labels", team_id)
        return list(self.labels_)

    def workflow_states(self, team_id):
        self._call("workflow_states", team_id)
        return list(self.states.get(team_id, []))

    def workflow_state(self, state_id):
        self._call("workflow_state", state_id)
        for states in self.states.values():
            for s in states:
                if s.id == state_id:
                    return s
        raise LinearAPIError("state not found", status=404)


class FakeRuntime:
    """Runtime double: canned model replies and a plain service registry."""

    def __init__(self, replies=None, settings=None):
        self.replies = list(replies or [])
        self.prompts = []
        self.settings = dict(settings or {})
        self.services = {}

    def get_setting(self, key):
        return self.settings.get(key)

    async def use_model(self, prompt):
        self.prompts.append(prompt)
        if not self.replies:
            return None
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply if reply is None or isinstance(reply, str) else json.dumps(reply)

    def get_service(self, name):
        return self.services.get(name)


class Collector:
    def __init__(self):
        self.texts = []

    async def __call__(self, text):
        self.texts.append(text)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setitem(handler_mod.__dict__, "_runtime", None)


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeLinearClient()
    monkeypatch.setitem(service_mod.__dict__, "LinearClient", lambda *_a, **_k: client)
    return client


def make_service(default_team=None):
    settings = load_settings(
        {"LINEAR_API_KEY": "lin_api_test", "LINEAR_DEFAULT_TEAM_KEY": default_team}.get
    )
    return LinearService(settings=settings)


@pytest.fixture
def service(fake_client):
    return make_service()


@pytest.fixture
def make_runtime(fake_client):
    def _make(replies=None, default_team=None):
        rt = FakeRuntime(replies)
        rt.services[SERVICE_NAME] = make_service(default_team)
        return rt

    return _make


@pytest.fixture
def callback():
    return Collector()


def fake_boto3(reply_text="{}", calls=None):
    class FakeBedrock:
        def invoke_model(self, modelId, body, accept, contentType):
            if calls is not None:
                calls.append({"modelId": modelId, "body": json.loads(body)})
            return {
                "body": types.SimpleNamespace(
                    read=lambda: json.dumps({"content": [{"text": reply_text}]}).encode("utf-8")
                )
            }

    class BotoModule:
        def client(self, name):
            if name == "bedrock-runtime":
                return FakeBedrock()
            raise ValueError(name)

    return BotoModule()
