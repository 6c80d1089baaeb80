"""
Membership directory clients.

The trip roster is owned by the trips service. The budget engine only
reads it, on every operation, and never caches it.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol
import logging

import httpx

from tripledger.core.config import settings
from tripledger.core.errors import DirectoryUnavailableError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RosterMember:
    """A current trip member as reported by the directory."""
    user_id: str
    name: Optional[str] = None
    username: Optional[str] = None
    is_creator: bool = False


class MembershipDirectory(Protocol):
    def get_current_members(self, trip_id: str) -> List[RosterMember]:
        ...


class StaticMembershipDirectory:
    """In-memory roster, used for tests and local development."""

    def __init__(self, rosters: Optional[Dict[str, Iterable[RosterMember]]] = None):
        self._rosters: Dict[str, List[RosterMember]] = {
            trip_id: list(members) for trip_id, members in (rosters or {}).items()
        }

    def set_members(self, trip_id: str, members: Iterable[RosterMember]) -> None:
        self._rosters[trip_id] = list(members)

    def remove_member(self, trip_id: str, user_id: str) -> None:
        self._rosters[trip_id] = [m for m in self._rosters.get(trip_id, []) if m.user_id != user_id]

    def get_current_members(self, trip_id: str) -> List[RosterMember]:
        if trip_id not in self._rosters:
            raise NotFoundError("Trip not found", field="trip_id")
        return list(self._rosters[trip_id])


class HttpMembershipDirectory:
    """Reads trip rosters from the trips service over HTTP."""

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.Client] = None):
        self.base_url = (base_url or settings.MEMBERSHIP_SERVICE_URL).rstrip("/")
        self._client = client or httpx.Client(timeout=settings.MEMBERSHIP_TIMEOUT_SECONDS)

    def get_current_members(self, trip_id: str) -> List[RosterMember]:
        url = f"{self.base_url}/trips/{trip_id}/members"
        try:
            response = self._client.get(url)
            if response.status_code == 404:
                raise NotFoundError("Trip not found", field="trip_id")
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Membership directory HTTP error: {e.response.status_code} - {e.response.text}")
            raise DirectoryUnavailableError(f"Membership directory returned {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"Membership directory network error: {e}")
            raise DirectoryUnavailableError("Membership directory is unreachable")
        except ValueError:
            logger.error(f"Membership directory returned invalid JSON for trip {trip_id}")
            raise DirectoryUnavailableError("Membership directory returned an invalid response")

        if isinstance(payload, dict):
            payload = payload.get("data", payload.get("members", []))
        members = []
        for entry in payload or []:
            user_id = entry.get("user_id") or entry.get("userId") or entry.get("id")
            if user_id is None:
                logger.warning(f"Skipping roster entry without user id for trip {trip_id}: {entry}")
                continue
            members.append(RosterMember(
                user_id=str(user_id),
                name=entry.get("name"),
                username=entry.get("username"),
                is_creator=bool(entry.get("is_creator", entry.get("isCreator", False))),
            ))
        logger.debug(f"Fetched {len(members)} members for trip {trip_id}")
        return members
