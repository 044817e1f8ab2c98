"""Validation of global roles."""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from cattlegate.admission import (
    EscalationError,
    GroupVersionResource,
    Operation,
    Request,
    Response,
    response_allowed,
    response_bad_request,
    set_escalation_response,
)
from cattlegate.objects import GlobalRole, PolicyRule

ConfirmNoEscalation = Callable[[Request, Sequence[PolicyRule], str], None]


class GlobalRoleValidator:
    """Checks that global roles are well formed and do not escalate privileges.

    ``confirm_no_escalation(request, rules, namespace)`` raises EscalationError
    when the requesting user does not hold the given rules.
    """

    gvr = GroupVersionResource("management.cattle.io", "v3", "globalroles")

    def __init__(self, confirm_no_escalation: ConfirmNoEscalation) -> None:
        self._confirm_no_escalation = confirm_no_escalation

    def operations(self) -> tuple[Operation, ...]:
        return (Operation.UPDATE, Operation.CREATE)

    def admit(self, request: Request) -> Response:
        role = GlobalRole.from_dict(request.object_json())

        # An object being deleted may still need its finalizers removed.
        if role.deletion_timestamp is not None:
            return response_allowed()

        if any(not rule.verbs for rule in role.rules):
            return response_bad_request(
                "GlobalRole.Rules: PolicyRules must have at least one verb"
            )

        error: Optional[EscalationError] = None
        try:
            self._confirm_no_escalation(request, role.rules, "")
        except EscalationError as exc:
            error = exc
        return set_escalation_response(Response(), error)