"""Validation of cluster role template bindings."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence

from cattlegate.admission import (
    EscalationError,
    GroupVersionResource,
    InvalidRequestError,
    NotFoundError,
    Operation,
    Request,
    Response,
    response_allowed,
    response_bad_request,
    set_escalation_response,
)
from cattlegate.objects import ClusterRoleTemplateBinding, PolicyRule, RoleTemplate

ConfirmNoEscalation = Callable[[Request, Sequence[PolicyRule], str], None]


class _RoleTemplateSource(Protocol):
    def get(self, name: str) -> RoleTemplate: ...

    def rules_from_template(self, template: RoleTemplate) -> Sequence[PolicyRule]: ...


def validate_update_fields(
    old: ClusterRoleTemplateBinding, new: ClusterRoleTemplateBinding
) -> None:
    """Raise InvalidRequestError if the update changes a field that may not change."""
    if old.role_template_name != new.role_template_name:
        invalid = "referenced roleTemplate"
    elif old.cluster_name != new.cluster_name:
        invalid = "clusterName"
    elif old.user_name != new.user_name and old.user_name:
        invalid = "userName"
    elif old.user_principal_name != new.user_principal_name and old.user_principal_name:
        invalid = "userPrincipalName"
    elif old.group_name != new.group_name and old.group_name:
        invalid = "groupName"
    elif old.group_principal_name != new.group_principal_name and old.group_principal_name:
        invalid = "groupPrincipalName"
    elif (new.group_name or old.group_principal_name) and (
        new.user_name or old.user_principal_name
    ):
        invalid = "both user and group"
    else:
        return
    raise InvalidRequestError(
        f"cannot update {invalid} for clusterRoleTemplateBinding {old.name}"
    )


class ClusterRoleTemplateBindingValidator:
    """Checks bindings of role templates to users or groups in a cluster.

    ``role_templates.get(name)`` returns a role template or raises NotFoundError;
    ``role_templates.rules_from_template(template)`` resolves its rules.
    ``confirm_no_escalation(request, rules, namespace)`` raises EscalationError
    when the requesting user does not hold the rules.
    """

    gvr = GroupVersionResource("management.cattle.io", "v3", "clusterroletemplatebindings")

    def __init__(
        self, role_templates: _RoleTemplateSource, confirm_no_escalation: ConfirmNoEscalation
    ) -> None:
        self._role_templates = role_templates
        self._confirm_no_escalation = confirm_no_escalation

    def operations(self) -> tuple[Operation, ...]:
        return (Operation.UPDATE, Operation.CREATE)

    def admit(self, request: Request) -> Response:
        if request.operation is Operation.UPDATE:
            try:
                old = ClusterRoleTemplateBinding.from_dict(request.old_object_json())
                new = ClusterRoleTemplateBinding.from_dict(request.object_json())
            except ValueError as exc:
                raise ValueError(f"failed to get old and new CRTB from request: {exc}") from exc
            try:
                validate_update_fields(old, new)
            except InvalidRequestError as exc:
                return response_bad_request(str(exc))

        try:
            binding = ClusterRoleTemplateBinding.from_dict(request.object_json())
        except ValueError as exc:
            raise ValueError(f"failed to get binding crtb from request: {exc}") from exc

        if request.operation is Operation.CREATE:
            try:
                self._validate_create_fields(binding)
            except InvalidRequestError as exc:
                return response_bad_request(str(exc))

        name = binding.role_template_name
        try:
            template = self._role_templates.get(name)
        except NotFoundError:
            return response_allowed()
        except Exception as exc:
            raise RuntimeError(f"failed to get roletemplate '{name}': {exc}") from exc

        try:
            rules = self._role_templates.rules_from_template(template)
        except Exception as exc:
            raise RuntimeError(
                f"failed to resolve rules from roletemplate '{name}': {exc}"
            ) from exc

        error: Optional[EscalationError] = None
        try:
            self._confirm_no_escalation(request, rules, binding.cluster_name)
        except EscalationError as exc:
            error = exc
        return set_escalation_response(Response(), error)

    def _validate_create_fields(self, binding: ClusterRoleTemplateBinding) -> None:
        has_user = bool(binding.user_name or binding.user_principal_name)
        has_group = bool(binding.group_name or binding.group_principal_name)
        if has_user == has_group:
            raise InvalidRequestError(
                "binding must target either a user [userId]/[userPrincipalId] "
                "OR a group [groupId]/[groupPrincipalId]"
            )
        if not binding.cluster_name:
            raise InvalidRequestError("missing required field 'clusterName'")
        try:
            template = self._role_templates.get(binding.role_template_name)
        except Exception as exc:
            raise InvalidRequestError(
                f"unknown reference roleTemplate '{binding.role_template_name}': {exc}"
            ) from exc
        if template.locked:
            raise InvalidRequestError(
                f"referenced role '{template.display_name}' is locked and cannot be assigned"
            )