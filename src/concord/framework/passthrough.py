"""
Passthrough route policy.

Every loaded operation can be exposed directly at
``POST {base}/{Unit}/{operation}``. That is convenient, but it should only
happen on purpose for public actions and queries:

- **inclusions**: routes exposed directly, each with a justification
- **exclusions**: routes kept off the public surface; calls to them fall
  through to the Requesting mediator and are served by route rules
- anything unlisted is exposed too, with a startup warning
- the Requesting unit itself is never exposed

Routes are written relative to the base path (``/Resource/getResource``).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class RouteDecision(str, Enum):
    INCLUDED = "included"
    EXCLUDED = "excluded"
    UNVERIFIED = "unverified"
    HIDDEN = "hidden"

    @property
    def exposed(self) -> bool:
        return self in (RouteDecision.INCLUDED, RouteDecision.UNVERIFIED)


@dataclass(frozen=True)
class RoutePolicy:
    inclusions: Mapping[str, str] = field(default_factory=dict)
    exclusions: frozenset[str] = frozenset()
    hidden_units: frozenset[str] = frozenset({"Requesting"})

    def __post_init__(self) -> None:
        overlap = set(self.inclusions) & set(self.exclusions)
        if overlap:
            raise ValueError(f"routes both included and excluded: {sorted(overlap)}")

    def decide(self, route: str) -> RouteDecision:
        unit = route.strip("/").split("/", 1)[0]
        if unit in self.hidden_units:
            return RouteDecision.HIDDEN
        if route in self.inclusions:
            return RouteDecision.INCLUDED
        if route in self.exclusions:
            return RouteDecision.EXCLUDED
        return RouteDecision.UNVERIFIED

    def justification(self, route: str) -> str | None:
        return self.inclusions.get(route)


INCLUSIONS: dict[str, str] = {
    "/Resource/getResource": "publicly expose read-only resource details",
    "/Resource/listResources": "allow unauthenticated browsing of available resources",
    "/Resource/listResourcesByOwner": "enable clients to load owner-scoped resource lists",
    "/TimeBoundedResource/getTimeWindow": "share availability windows for scheduling purposes",
    "/Following/isFollowing": "expose read-only following checks for UI state",
    "/Following/getFollowees": "support listing who a user follows for public profiles",
    "/Following/getFollowers": "support listing followers where visibility is allowed",
    "/NotificationLog/listNotificationsWithContent": "publish human-readable notifications for UI rendering",
    "/NotificationLog/getNotificationWithContent": "fetch a single notification with parsed content for detail views",
}

EXCLUSIONS: frozenset[str] = frozenset(
    {
        "/TimeBoundedResource/listExpiredResources",
        "/Resource/createResource",
        "/Resource/updateResource",
        "/Resource/deleteResource",
        "/TimeBoundedResource/defineTimeWindow",
        "/TimeBoundedResource/expireResource",
        "/TimeBoundedResource/deleteTimeWindow",
        "/Following/follow",
        "/Following/unfollow",
        "/NotificationLog/logNotification",
        "/NotificationLog/markAsDelivered",
        "/NotificationLog/dismissNotification",
        "/NotificationLog/clearDismissedNotifications",
        "/NotificationLog/getNotifications",
    }
)

DEFAULT_POLICY = RoutePolicy(inclusions=INCLUSIONS, exclusions=EXCLUSIONS)

__all__ = ["RouteDecision", "RoutePolicy", "INCLUSIONS", "EXCLUSIONS", "DEFAULT_POLICY"]
