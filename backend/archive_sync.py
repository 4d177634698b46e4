"""
Best-effort mirror of persisted events into a Gitea repository.

Each event is appended to `events/<YYYY>-<MM>.json`, a pretty-printed JSON
array, through the Gitea contents API:

- GET the document (404 means "start from an empty list").
- Append the event.
- POST to create, or PUT with the fetched `sha` to update. Gitea rejects
  a PUT whose `sha` is no longer current; that sync is then abandoned.

`ArchiveSync.sync` never raises. The event is already in the event store,
so every failure is logged and dropped, and nothing is retried.
"""

import base64
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

import httpx

from errors import ArchiveSyncFailure
from log_config import get_logger
from models import Event

STALE_REVISION_STATUSES = {409, 422}

logger = get_logger("archive")


@dataclass(frozen=True)
class ArchiveConfig:
    url: str
    token: str
    owner: str
    repo: str

    @classmethod
    def from_settings(cls, settings) -> Optional["ArchiveConfig"]:
        values = (settings.gitea_url, settings.gitea_token, settings.gitea_owner, settings.gitea_repo)
        if not all(values):
            return None
        url, token, owner, repo = values
        return cls(url=url.rstrip("/"), token=token, owner=owner, repo=repo)


class StaleRevision(ArchiveSyncFailure):
    pass


def monthly_path(created_at: int) -> str:
    ts = datetime.fromtimestamp(created_at, timezone.utc)
    return f"events/{ts.year}-{ts.month:02d}.json"


class GiteaArchive:
    """Thin client over the two contents-API calls the sync needs."""

    def __init__(self, config: ArchiveConfig, *, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.config.url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"token {self.config.token}", "Accept": "application/json"},
        )

    def _contents_url(self, path: str) -> str:
        return f"/api/v1/repos/{self.config.owner}/{self.config.repo}/contents/{path}"

    def fetch(self, path: str) -> Tuple[List[Any], Optional[str]]:
        """Return the archived events at `path` and the revision `sha`."""
        with self._client() as client:
            response = client.get(self._contents_url(path))
        if response.status_code == 404:
            return [], None
        if response.status_code != 200:
            raise ArchiveSyncFailure(f"fetch {path} failed: {response.status_code}")

        data = response.json()
        if not isinstance(data, dict):
            raise ArchiveSyncFailure(f"unexpected contents response for {path}")
        content = data.get("content") or ""
        if data.get("encoding") == "base64":
            content = base64.b64decode(content).decode("utf-8")
        events = json.loads(content) if content.strip() else []
        if not isinstance(events, list):
            raise ArchiveSyncFailure(f"{path} does not hold a JSON array")
        return events, data.get("sha")

    def store(self, path: str, events: List[Any], sha: Optional[str], message: str) -> None:
        content = json.dumps(events, indent=2)
        body = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        with self._client() as client:
            if sha:
                body["sha"] = sha
                response = client.put(self._contents_url(path), json=body)
            else:
                response = client.post(self._contents_url(path), json=body)

        if sha and response.status_code in STALE_REVISION_STATUSES:
            raise StaleRevision(f"{path} changed since revision {sha}")
        if response.is_error:
            raise ArchiveSyncFailure(
                f"write {path} failed: {response.status_code} {response.text[:200]}"
            )


class ArchiveSync:
    def __init__(self, archive: Optional[GiteaArchive]):
        self.archive = archive

    @classmethod
    def from_settings(cls, settings) -> "ArchiveSync":
        config = ArchiveConfig.from_settings(settings)
        if config is None:
            return cls(None)
        return cls(GiteaArchive(config, timeout=settings.archive_timeout_seconds))

    def sync(self, event: Event) -> None:
        if self.archive is None:
            logger.warning("archive not configured, skipping sync of event %s", event.id)
            return

        path = monthly_path(event.created_at)
        try:
            events, sha = self.archive.fetch(path)
            events.append(event.model_dump())
            message = f"Add event: {datetime.now(timezone.utc).isoformat()}"
            self.archive.store(path, events, sha, message)
        except StaleRevision as e:
            logger.warning("archive sync of event %s abandoned: %s", event.id, e)
            return
        except Exception:
            logger.exception("archive sync of event %s to %s failed", event.id, path)
            return

        logger.info("appended event %s to %s", event.id, path)
