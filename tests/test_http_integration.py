import json

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from Guard.input_sanitizer import InputSanitizer, InputValidationOptions
from Guard.login_flow import login_with_password, register_account
from Guard.request_context import CallerContext, client_ip
from guard_integration import GuardIntegration, apply_guard_to_app


def build_app(guard):
    app = FastAPI(lifespan=guard.lifespan)
    apply_guard_to_app(app, guard)

    @app.post("/graphql")
    async def graphql(request: Request):
        payload = await request.json()
        return {"data": {"echo": payload.get("variables")}}

    @app.get("/graphql")
    async def graphql_get():
        return {"data": None}

    @app.post("/upload")
    async def upload(request: Request):
        return {"ok": True}

    @app.post("/login")
    async def login(request: Request):
        body = await request.json()
        context = CallerContext.from_request(request)
        user = login_with_password(
            request.app.state.guard,
            context,
            lambda: {"id": 1} if body.get("password") == "correct" else None,
            username=body.get("username"),
        )
        return {"user": user}

    @app.post("/register")
    async def register(request: Request):
        context = CallerContext.from_request(request)
        return {"account": register_account(request.app.state.guard, context, lambda: {"id": 2})}

    return app


@pytest.fixture
def guard(clock, hasher):
    integration = GuardIntegration(
        hasher=hasher,
        clock=clock,
        input_options=InputValidationOptions(skip_operations=frozenset({"SaveTemplate"})),
    )
    yield integration
    integration.shutdown()


@pytest.fixture
def client(guard):
    with TestClient(build_app(guard)) as test_client:
        yield test_client


def test_clean_variables_reach_the_handler(client):
    variables = {"name": "Alice", "tags": ["a", "b"]}
    response = client.post("/graphql", json={"query": "{ x }", "variables": variables})
    assert response.status_code == 200
    assert response.json() == {"data": {"echo": variables}}


def test_dangerous_variables_rejected(client):
    response = client.post(
        "/graphql",
        json={"operationName": "AddComment", "variables": {"input": {"text": "<script>alert(1)</script>"}}},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "DANGEROUS_INPUT"
    assert body["extensions"]["path"] == "variables.input.text"


def test_dangerous_query_string_variables_rejected(client):
    response = client.get("/graphql", params={"variables": json.dumps({"q": "javascript:alert(1)"})})
    assert response.status_code == 400


def test_skipped_operation_passes(client):
    response = client.post(
        "/graphql",
        json={"operationName": "SaveTemplate", "variables": {"html": "<iframe src=x>"}},
    )
    assert response.status_code == 200


def test_other_paths_are_not_scanned(client):
    response = client.post("/upload", json={"variables": {"x": "<script>"}})
    assert response.status_code == 200


def test_login_errors_are_rendered(client):
    for _ in range(2):
        response = client.post("/login", json={"username": "alice", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["extensions"] == {"code": "INVALID_CREDENTIALS"}

    response = client.post("/login", json={"username": "alice", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["extensions"]["remainingAttempts"] == 2

    for _ in range(2):
        response = client.post("/login", json={"username": "alice", "password": "nope"})
    assert response.status_code == 423
    assert response.json()["code"] == "ACCOUNT_LOCKED"
    assert response.json()["extensions"]["remainingMinutes"] == 30


def test_rate_limited_login_sets_retry_after(client):
    for _ in range(5):
        assert client.post("/login", json={"username": "bob", "password": "correct"}).status_code == 200
    response = client.post("/login", json={"username": "bob", "password": "correct"})
    assert response.status_code == 429
    assert response.headers["retry-after"] == "900"
    assert response.json()["extensions"]["retryAfter"] == 900


def test_missing_username_is_bad_request(client):
    response = client.post("/login", json={"password": "x"})
    assert response.status_code == 400
    assert response.json()["code"] == "USERNAME_OR_EMAIL_REQUIRED"


def test_lifespan_starts_and_stops_sweepers(guard):
    with TestClient(build_app(guard)):
        assert guard.running
    assert not guard.running


class _FakeRequest:
    def __init__(self, headers, host):
        self.headers = headers
        self.client = type("Client", (), {"host": host})() if host else None
        self.scope = {}


def test_client_ip_ignores_forwarding_headers_from_untrusted_peer():
    forged = {"x-forwarded-for": "203.0.113.5", "x-real-ip": "203.0.113.6"}
    assert client_ip(_FakeRequest(forged, "198.51.100.9"), trusted_proxies=[]) == "198.51.100.9"
    assert client_ip(_FakeRequest(forged, "198.51.100.9"), trusted_proxies=["10.0.0.0/8"]) == "198.51.100.9"
    assert client_ip(_FakeRequest({}, None), trusted_proxies=[]) == "unknown"


def test_client_ip_honours_trusted_proxy():
    proxies = ["10.0.0.0/8"]
    chain = {"x-forwarded-for": "198.51.100.1, 203.0.113.5, 10.0.0.2"}
    assert client_ip(_FakeRequest(chain, "10.0.0.1"), trusted_proxies=proxies) == "203.0.113.5"
    assert client_ip(_FakeRequest({"x-real-ip": "203.0.113.6"}, "10.0.0.1"), trusted_proxies=proxies) == "203.0.113.6"
    assert client_ip(_FakeRequest({}, "10.0.0.1"), trusted_proxies=proxies) == "10.0.0.1"


def test_rotating_forwarded_for_does_not_escape_registration_limit(client):
    statuses = [
        client.post("/register", headers={"x-forwarded-for": f"10.9.0.{i}"}).status_code for i in range(11)
    ]
    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429


def test_sanitizer_instance_is_shared_with_middleware(guard):
    assert isinstance(guard.sanitizer, InputSanitizer)
    assert guard.sanitizer.options.skip_operations == frozenset({"SaveTemplate"})
