"""Tests for kerm.json parsing and fetching."""
import httpx
import pytest

from app.exceptions import ExternalServiceFailure, ValidationError
from app.services.bots import manifest
from app.services.bots.manifest import normalize_repo, parse_manifest

VALID = {
    "bot-name": "Kerm MD",
    "description": "Multi-device WhatsApp bot",
    "env": {
        "SESSION_ID": {"description": "Session string", "required": True},
        "PREFIX": {"description": "Command prefix", "value": "."},
    },
    "logo": "https://img.example.org/kerm.png",
}


@pytest.mark.parametrize(
    "raw",
    [
        "kerm-dev/kerm-md",
        "https://github.com/kerm-dev/kerm-md",
        "github.com/kerm-dev/kerm-md.git",
        " https://www.github.com/kerm-dev/kerm-md/ ",
    ],
)
def test_normalize_repo_accepts_urls(raw):
    assert normalize_repo(raw) == "kerm-dev/kerm-md"


@pytest.mark.parametrize("raw", ["", "kerm-md", "a/b/c", "https://gitlab.com/a/b"])
def test_normalize_repo_rejects_garbage(raw):
    with pytest.raises(ValidationError):
        normalize_repo(raw)


def test_parse_manifest():
    parsed = parse_manifest(VALID)
    assert parsed.name == "Kerm MD"
    assert parsed.env["PREFIX"]["value"] == "."
    assert parsed.logo == "https://img.example.org/kerm.png"
    assert parsed.documentation_link is None


def test_parse_manifest_reports_missing_fields():
    with pytest.raises(ValidationError) as exc:
        parse_manifest({"bot-name": "x"})
    assert exc.value.details["missing_fields"] == ["description", "env"]


@pytest.mark.parametrize(
    "env",
    [
        ["SESSION_ID"],
        {"1BAD": {}},
        {"OK": "not an object"},
        {"OK": {"value": {"nested": True}}},
    ],
)
def test_parse_manifest_rejects_bad_env(env):
    with pytest.raises(ValidationError):
        parse_manifest({**VALID, "env": env})


def _mock_github(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(manifest.httpx, "AsyncClient", client_factory)


async def test_fetch_manifest_reads_raw_file(monkeypatch):
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, json=VALID)

    _mock_github(monkeypatch, handler)

    parsed = await manifest.fetch_manifest("kerm-dev/kerm-md", "dev")

    assert parsed.name == "Kerm MD"
    assert requested == ["https://raw.githubusercontent.com/kerm-dev/kerm-md/dev/kerm.json"]


async def test_fetch_manifest_missing_file_is_validation_error(monkeypatch):
    _mock_github(monkeypatch, lambda request: httpx.Response(404, text="404: Not Found"))

    with pytest.raises(ValidationError):
        await manifest.fetch_manifest("kerm-dev/kerm-md")


async def test_fetch_manifest_upstream_error(monkeypatch):
    _mock_github(monkeypatch, lambda request: httpx.Response(503))

    with pytest.raises(ExternalServiceFailure) as exc:
        await manifest.fetch_manifest("kerm-dev/kerm-md")
    assert exc.value.upstream_status == 503
