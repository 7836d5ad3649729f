from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from feedback_client.application.exceptions import ValidationError
from feedback_client.domain.value_objects.enums import PayloadBaseType

ENDPOINT_CONVERSATION = "/conversation"
ENDPOINT_MESSAGES = "/messages"
ENDPOINT_EVENTS = "/events"
ENDPOINT_DEVICES = "/devices"
ENDPOINT_PEOPLE = "/people"
ENDPOINT_SURVEYS_POST = "/surveys/{id}/respond"


@dataclass(frozen=True, slots=True)
class Route:
    method: str
    path: str

    def resolve(self, body: dict[str, Any]) -> str:
        if "{id}" not in self.path:
            return self.path
        survey_id = body.get("id")
        if not survey_id:
            raise ValidationError(f"payload for {self.path} has no id")
        return self.path.format(id=survey_id)


ROUTES: dict[PayloadBaseType, Route] = {
    PayloadBaseType.MESSAGE: Route("POST", ENDPOINT_MESSAGES),
    PayloadBaseType.EVENT: Route("POST", ENDPOINT_EVENTS),
    PayloadBaseType.DEVICE: Route("PUT", ENDPOINT_DEVICES),
    PayloadBaseType.SDK: Route("PUT", ENDPOINT_CONVERSATION),
    PayloadBaseType.APP_RELEASE: Route("PUT", ENDPOINT_CONVERSATION),
    PayloadBaseType.PERSON: Route("PUT", ENDPOINT_PEOPLE),
    PayloadBaseType.SURVEY: Route("POST", ENDPOINT_SURVEYS_POST),
}


def route_for(base_type: PayloadBaseType) -> Route:
    return ROUTES[base_type]


def messages_fetch_path(
    *, count: int | None = None, after_id: str | None = None, before_id: str | None = None,
) -> str:
    query = urlencode({
        "count": "" if count is None else str(count),
        "after_id": after_id or "",
        "before_id": before_id or "",
    })
    return f"{ENDPOINT_CONVERSATION}?{query}"
