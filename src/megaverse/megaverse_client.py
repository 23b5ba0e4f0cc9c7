"""
Megaverse Client for API communication.

Every call returns a CallOutcome (Success, NotFound, RateLimited, OtherError)
rather than raising; retries are the caller's business (see utils.retry).
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Optional

from requests import RequestException, Response, Session
from requests.adapters import HTTPAdapter

from megaverse.schemas import (CallOutcome, EntityKind, EntityType, NotFound,
                               OtherError, Position, RateLimited, Success)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityRoute:
    """Wire path for an entity type and how to serialize its attributes"""
    path: str
    attributes: Callable[[EntityKind], Dict[str, str]]


ENTITY_ROUTES: Dict[EntityType, EntityRoute] = {
    EntityType.POLYANET: EntityRoute("polyanets", lambda kind: {}),
    EntityType.SOLOON: EntityRoute("soloons", lambda kind: {"color": kind.color.value.lower()}),
    EntityType.COMETH: EntityRoute(
        "comeths", lambda kind: {"direction": kind.direction.value.lower()}
    ),
}


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a Retry-After header into seconds.

    Accepts both delta-seconds ("2") and HTTP-date forms. Returns None when the
    header is missing or unparseable.
    """
    if value is None:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def classify_response(response: Response) -> CallOutcome:
    """Map an HTTP response onto a CallOutcome."""
    status = response.status_code
    if 200 <= status < 300:
        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = None
        return Success(payload)
    if status == 404:
        return NotFound(response.text)
    if status == 429:
        return RateLimited(parse_retry_after(response.headers.get("Retry-After")))
    return OtherError(status, response.text)


class MegaverseClient:
    """Client for interacting with the megaverse challenge API"""

    ROOT_URL: str = "https://challenge.crossmint.io/api"
    CALLER_FIELD: str = "candidateId"

    def __init__(
        self,
        candidate_id: Optional[str] = None,
        base_url: Optional[str] = None,
        pool_size: int = 5,
        timeout: float = 10.0,
    ):
        """
        Initialize the megaverse client.

        Args:
            candidate_id: Caller identity. If not provided, reads from CANDIDATE_ID env var.
            base_url: API root. If not provided, reads from MEGAVERSE_URL_BASE env var.
            pool_size: Connections kept open; match the scheduler's concurrency.
            timeout: Per-request timeout in seconds.
        """
        self.ROOT_URL = (base_url or os.getenv("MEGAVERSE_URL_BASE", self.ROOT_URL)).rstrip("/")

        self.candidate_id = candidate_id or os.getenv("CANDIDATE_ID")
        if not self.candidate_id:
            raise ValueError("CANDIDATE_ID not found in environment or parameters")

        self.timeout = timeout
        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self._session = Session()
        self._session.headers.update(self.headers)
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> CallOutcome:
        url = f"{self.ROOT_URL}/{path.lstrip('/')}"
        try:
            response = self._session.request(method, url, json=body, timeout=self.timeout)
        except RequestException as e:
            logger.error(f"{method} {url} failed: {type(e).__name__}: {e}")
            return OtherError(None, str(e))

        outcome = classify_response(response)
        if isinstance(outcome, OtherError):
            logger.error(f"{method} {url} returned {response.status_code}: {response.text}")
        else:
            logger.debug(f"{method} {url} -> {response.status_code}")
        return outcome

    def _identity(self, position: Position) -> Dict[str, Any]:
        return {
            self.CALLER_FIELD: self.candidate_id,
            "row": position.row,
            "column": position.column,
        }

    @staticmethod
    def _route(kind: EntityKind) -> EntityRoute:
        route = ENTITY_ROUTES.get(kind.type)
        if route is None:
            raise ValueError(f"No API route for entity kind {kind}")
        return route

    def get_map(self) -> CallOutcome:
        """
        Get the current (observed) map.

        Example response:
            {"map": {"content": [[null, {"type": 0}], ...]}}
        """
        return self._request("GET", f"map/{self.candidate_id}")

    def get_goal(self) -> CallOutcome:
        """
        Get the goal (desired) map.

        Example response:
            {"goal": [["SPACE", "POLYANET"], ["RED_SOLOON", "UP_COMETH"]]}
        """
        return self._request("GET", f"map/{self.candidate_id}/goal")

    def create_entity(self, kind: EntityKind, position: Position) -> CallOutcome:
        """
        Create one entity at a position.

        Args:
            kind: Entity to create (must not be Empty)
            position: Target cell
        """
        route = self._route(kind)
        body = self._identity(position)
        body.update(route.attributes(kind))
        return self._request("POST", route.path, body)

    def delete_entity(self, kind: EntityKind, position: Position) -> CallOutcome:
        """
        Delete the entity of the given kind at a position.

        Deleting where nothing exists is not an error on the server side; the
        retry policy also treats a 404 here as done.
        """
        route = self._route(kind)
        return self._request("DELETE", route.path, self._identity(position))

    def close(self):
        """Close the session"""
        if hasattr(self, "_session"):
            self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
