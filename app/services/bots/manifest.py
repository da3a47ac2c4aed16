"""kerm.json manifest fetching and validation"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from app.exceptions import ExternalServiceFailure, ValidationError
from app.services.heroku import heroku_settings
from app.utils.constants import BOT_MANIFEST_FILE, GITHUB_REPO_PATTERN, REQUIRED_MANIFEST_FIELDS
from app.utils.logger import get_logger

logger = get_logger("manifest")

RAW_GITHUB_URL = "https://raw.githubusercontent.com"
MANIFEST_TIMEOUT = 15.0

_REPO_RE = re.compile(GITHUB_REPO_PATTERN)


@dataclass
class BotManifest:
    name: str
    description: str
    env: dict[str, dict[str, Any]] = field(default_factory=dict)
    logo: Optional[str] = None
    documentation_link: Optional[str] = None


def normalize_repo(github_repo: str) -> str:
    """Accept 'owner/name' or a github.com URL and return 'owner/name'."""
    repo = (github_repo or "").strip()
    repo = re.sub(r"^(https?://)?(www\.)?github\.com/", "", repo)
    repo = repo.removesuffix(".git").strip("/")
    if not _REPO_RE.match(repo):
        raise ValidationError(
            "Invalid repository, expected 'owner/name'", {"github_repo": github_repo}
        )
    return repo


def parse_manifest(data: Any) -> BotManifest:
    """Validate a decoded kerm.json document.

    ``env`` maps variable names to objects with optional ``description``,
    ``value`` (default) and ``required`` (defaults to true).
    """
    if not isinstance(data, dict):
        raise ValidationError(f"{BOT_MANIFEST_FILE} must be a JSON object")

    missing = [name for name in REQUIRED_MANIFEST_FIELDS if name not in data]
    if missing:
        raise ValidationError(
            f"{BOT_MANIFEST_FILE} is missing required fields", {"missing_fields": missing}
        )

    env = data["env"]
    if not isinstance(env, dict):
        raise ValidationError(f"'env' in {BOT_MANIFEST_FILE} must be an object")

    schema: dict[str, dict[str, Any]] = {}
    for key, config in env.items():
        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", key):
            raise ValidationError(f"Invalid environment variable name: {key}")
        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ValidationError(f"Environment variable {key} must be described by an object")
        if "value" in config and config["value"] is not None and not isinstance(config["value"], (str, int, float, bool)):
            raise ValidationError(f"Default value of {key} must be a scalar")
        schema[key] = config

    name = str(data["bot-name"]).strip()
    if not name:
        raise ValidationError("'bot-name' cannot be empty")

    return BotManifest(
        name=name[:100],
        description=str(data["description"]),
        env=schema,
        logo=data.get("logo"),
        documentation_link=data.get("documentation-link"),
    )


async def fetch_manifest(github_repo: str, branch: Optional[str] = None) -> BotManifest:
    """Download and validate kerm.json from the repository's branch."""
    branch = branch or heroku_settings.source_branch
    url = f"{RAW_GITHUB_URL}/{github_repo}/{branch}/{BOT_MANIFEST_FILE}"
    try:
        async with httpx.AsyncClient(timeout=MANIFEST_TIMEOUT, follow_redirects=True) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        raise ExternalServiceFailure("github", f"could not fetch {BOT_MANIFEST_FILE}: {e}") from e

    if response.status_code == 404:
        raise ValidationError(
            f"{BOT_MANIFEST_FILE} not found on branch {branch} of {github_repo}",
            {"github_repo": github_repo},
        )
    if response.status_code >= 400:
        raise ExternalServiceFailure("github", f"HTTP {response.status_code} fetching {url}", response.status_code)

    try:
        data = response.json()
    except ValueError:
        raise ValidationError(f"{BOT_MANIFEST_FILE} is not valid JSON")

    logger.info(f"Fetched manifest of {github_repo}@{branch}")
    return parse_manifest(data)
