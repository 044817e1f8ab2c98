"""Validation of global role bindings."""

from __future__ import annotations

from http import HTTPStatus
from typing import Callable, Optional, Protocol, Sequence

from cattlegate.admission import (
    REASON_UNAUTHORIZED,
    EscalationError,
    GroupVersionResource,
    NotFoundError,
    Operation,
    Request,
    Response,
    response_allowed,
    response_failure,
    set_escalation_response,
)
from cattlegate.objects import GlobalRole, GlobalRoleBinding, PolicyRule

ConfirmNoEscalation = Callable[[Request, Sequence[PolicyRule], str], None]


class _GlobalRoleCache(Protocol):
    def get(self, name: str) -> GlobalRole: ...


class GlobalRoleBindingValidator:
    """Checks that a binding grants no more than the requesting user holds.

    ``global_roles.get(name)`` raises NotFoundError for unknown roles.
    """

    gvr = GroupVersionResource("management.cattle.io", "v3", "globalrolebindings")

    def __init__(
        self, global_roles: _GlobalRoleCache, confirm_no_escalation: ConfirmNoEscalation
    ) -> None:
        self._global_roles = global_roles
        self._confirm_no_escalation = confirm_no_escalation

    def operations(self) -> tuple[Operation, ...]:
        return (Operation.CREATE, Operation.UPDATE, Operation.DELETE)

    def admit(self, request: Request) -> Response:
        binding = GlobalRoleBinding.from_dict(request.object_json())

        try:
            role = self._global_roles.get(binding.global_role_name)
        except NotFoundError:
            if request.operation is Operation.DELETE:
                return response_allowed()
            if request.operation is Operation.UPDATE and binding.deletion_timestamp is not None:
                return response_allowed()
            return response_failure(
                f"referenced globalRole {binding.name} not found, only deletions allowed",
                REASON_UNAUTHORIZED,
                HTTPStatus.UNAUTHORIZED,
            )

        error: Optional[EscalationError] = None
        try:
            self._confirm_no_escalation(request, role.rules, "")
        except EscalationError as exc:
            error = exc
        return set_escalation_response(Response(), error)