"""Admission request and response types shared by the validators."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Optional, Union

STATUS_FAILURE = "Failure"

REASON_BAD_REQUEST = "BadRequest"
REASON_INVALID = "Invalid"
REASON_UNAUTHORIZED = "Unauthorized"
REASON_FORBIDDEN = "Forbidden"
REASON_INTERNAL_ERROR = "InternalError"

RawObject = Optional[Union[bytes, str]]


class Operation(str, enum.Enum):
    """The kind of change an admission request asks for."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


@dataclass(frozen=True)
class GroupVersionResource:
    """Identifies the resource a validator handles."""

    group: str
    version: str
    resource: str


@dataclass(frozen=True)
class UserInfo:
    """The user who sent the request."""

    username: str = ""
    uid: str = ""
    groups: tuple[str, ...] = ()


@dataclass
class Request:
    """An admission request carrying the raw JSON of the new and old objects."""

    operation: Operation
    user_info: UserInfo = field(default_factory=UserInfo)
    obj: RawObject = None
    old_obj: RawObject = None
    name: str = ""
    namespace: str = ""
    uid: str = ""
    dry_run: Optional[bool] = None

    def __post_init__(self) -> None:
        self.operation = Operation(self.operation)

    def object_json(self) -> dict[str, Any]:
        """Decode the object under review; for deletions that is the old object."""
        raw = self.old_obj if self.operation is Operation.DELETE else self.obj
        return _decode(raw)

    def old_object_json(self) -> dict[str, Any]:
        """Decode the object as it was before the request."""
        return _decode(self.old_obj)


def _decode(raw: RawObject) -> dict[str, Any]:
    if raw is None or len(raw) == 0:
        raise ValueError("request carries no object: unexpected end of JSON input")
    data = json.loads(raw)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


@dataclass
class Status:
    """Why a request was refused."""

    status: str = STATUS_FAILURE
    message: str = ""
    reason: str = ""
    code: int = 0


@dataclass
class Response:
    """The verdict on an admission request."""

    allowed: bool = False
    result: Optional[Status] = None


class InvalidRequestError(Exception):
    """The request is not valid for the resource."""


class NotFoundError(LookupError):
    """A referenced object does not exist."""


class AlreadyExistsError(Exception):
    """An object to be created exists already."""


class EscalationError(Exception):
    """The requesting user would gain permissions they do not hold."""


def response_allowed() -> Response:
    return Response(allowed=True)


def response_bad_request(message: str) -> Response:
    return response_failure(message, REASON_BAD_REQUEST, HTTPStatus.BAD_REQUEST)


def response_failure(message: str, reason: str, code: int) -> Response:
    return Response(
        allowed=False,
        result=Status(status=STATUS_FAILURE, message=message, reason=reason, code=int(code)),
    )


def set_escalation_response(response: Response, error: Optional[BaseException]) -> Response:
    """Allow the response if there was no escalation error, otherwise forbid it."""
    if error is None:
        response.allowed = True
        return response
    response.allowed = False
    response.result = Status(
        status=STATUS_FAILURE,
        message=str(error),
        reason=REASON_FORBIDDEN,
        code=int(HTTPStatus.FORBIDDEN),
    )
    return response