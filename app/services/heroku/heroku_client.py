"""Heroku platform API client"""

from typing import Any, Optional

import httpx

from app.exceptions import ExternalServiceFailure
from app.services.heroku.heroku_config import HerokuSettings, heroku_settings
from app.utils.logger import get_logger

logger = get_logger("heroku")

SERVICE_NAME = "heroku"
ACCEPT_HEADER = "application/vnd.heroku+json; version=3"


def _headers(api_key: str) -> dict:
    return {
        "Authorization": f"Bearer {api_key}",
        "Accept": ACCEPT_HEADER,
        "Content-Type": "application/json",
    }


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:300] or response.reason_phrase
    return body.get("message") or body.get("id") or response.reason_phrase


class HerokuClient:
    """Client bound to one hosting account's API key.

    Every method raises ExternalServiceFailure on transport errors, timeouts
    and non-2xx responses.
    """

    def __init__(self, api_key: str, config: Optional[HerokuSettings] = None):
        self.api_key = api_key
        self.config = config or heroku_settings

    @property
    def base_url(self) -> str:
        return self.config.api_url.rstrip("/")

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.config.request_timeout) as client:
                response = await client.request(method, url, headers=_headers(self.api_key), json=json)
        except httpx.TimeoutException as e:
            raise ExternalServiceFailure(SERVICE_NAME, f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise ExternalServiceFailure(SERVICE_NAME, f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(f"Heroku API error {response.status_code} on {method} {path}: {message}")
            raise ExternalServiceFailure(SERVICE_NAME, message, status=response.status_code)

        if not response.content:
            return None
        return response.json()

    async def create_app(self, name: str, region: Optional[str] = None) -> dict:
        logger.info(f"Creating Heroku app {name}")
        return await self._request(
            "POST", "/apps", json={"name": name, "region": region or self.config.region}
        )

    async def deploy_from_source(self, app_name: str, github_repo: str, branch: Optional[str] = None) -> dict:
        """Start a build from the repository tarball of ``branch``."""
        branch = branch or self.config.source_branch
        source_url = f"https://github.com/{github_repo}/tarball/{branch}"
        logger.info(f"Starting build of {github_repo}@{branch} on {app_name}")
        return await self._request(
            "POST",
            f"/apps/{app_name}/builds",
            json={"source_blob": {"url": source_url, "version": branch}},
        )

    async def set_config_vars(self, app_name: str, config_vars: dict[str, str]) -> dict:
        return await self._request("PATCH", f"/apps/{app_name}/config-vars", json=config_vars)

    async def create_log_session(self, app_name: str, lines: Optional[int] = None, tail: bool = False) -> str:
        """Return a short-lived logplex URL for the app's recent logs."""
        data = await self._request(
            "POST",
            f"/apps/{app_name}/log-sessions",
            json={"lines": lines or self.config.log_lines, "tail": tail},
        )
        return data["logplex_url"]

    async def fetch_recent_logs(self, app_name: str, lines: Optional[int] = None) -> str:
        logplex_url = await self.create_log_session(app_name, lines=lines)
        try:
            async with httpx.AsyncClient(timeout=self.config.request_timeout) as client:
                response = await client.get(logplex_url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalServiceFailure(SERVICE_NAME, f"could not read logs of {app_name}: {e}") from e
        return response.text

    async def restart_app(self, app_name: str) -> None:
        """Restart every dyno of the app."""
        logger.info(f"Restarting dynos of {app_name}")
        await self._request("DELETE", f"/apps/{app_name}/dynos")

    async def delete_app(self, app_name: str) -> None:
        logger.info(f"Deleting Heroku app {app_name}")
        await self._request("DELETE", f"/apps/{app_name}")

    async def get_app(self, app_name: str) -> dict:
        return await self._request("GET", f"/apps/{app_name}")

    async def get_account(self) -> dict:
        return await self._request("GET", "/account")


async def validate_api_key(api_key: str, config: Optional[HerokuSettings] = None) -> Optional[dict]:
    """Account info for a valid key, None when Heroku rejects it.

    Transport failures are not a verdict on the key and propagate as
    ExternalServiceFailure.
    """
    try:
        return await HerokuClient(api_key, config).get_account()
    except ExternalServiceFailure as e:
        if e.upstream_status in (401, 403):
            logger.warning("Heroku rejected API key during validation")
            return None
        raise
