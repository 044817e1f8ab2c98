"""Validation of updates to feature flags."""

from __future__ import annotations

from http import HTTPStatus
from typing import Optional

from cattlegate.admission import (
    REASON_INVALID,
    GroupVersionResource,
    Operation,
    Request,
    Response,
    response_allowed,
    response_failure,
)
from cattlegate.objects import Feature


def is_update_allowed(old: Optional[Feature], new: Optional[Feature]) -> bool:
    """A locked feature's value may only stay the same or move to the locked value."""
    if old is None or new is None:
        return False
    if new.locked_value is None:
        return True
    if old.value is None and new.value is None:
        return True
    if old.value is not None and new.value is not None and old.value == new.value:
        return True
    if new.value is not None and new.value == new.locked_value:
        return True
    return False


class FeatureValidator:
    """Refuses changes to a feature whose value is locked."""

    gvr = GroupVersionResource("management.cattle.io", "v3", "features")

    def operations(self) -> tuple[Operation, ...]:
        return (Operation.UPDATE,)

    def admit(self, request: Request) -> Response:
        new = Feature.from_dict(request.object_json())
        if request.operation is Operation.CREATE:
            old = Feature()
        else:
            old = Feature.from_dict(request.old_object_json())

        if not is_update_allowed(old, new):
            locked = str(new.locked_value).lower()
            return response_failure(
                f"feature flag cannot be changed from current value: {locked}",
                REASON_INVALID,
                HTTPStatus.BAD_REQUEST,
            )
        return response_allowed()