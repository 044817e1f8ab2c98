"""Validation of project role template bindings."""

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
from cattlegate.objects import PolicyRule, ProjectRoleTemplateBinding, RoleTemplate

ConfirmNoEscalation = Callable[[Request, Sequence[PolicyRule], str], None]


class _RoleTemplateSource(Protocol):
    def get(self, name: str) -> RoleTemplate: ...

    def rules_from_template(self, template: RoleTemplate) -> Sequence[PolicyRule]: ...


def cluster_from_project(project: str) -> tuple[str, str]:
    """Split a ``cluster:project`` name into its two parts."""
    pieces = project.split(":")
    if len(pieces) < 2:
        return "", ""
    return pieces[0], pieces[1]


def validate_update_fields(
    old: ProjectRoleTemplateBinding, new: ProjectRoleTemplateBinding
) -> None:
    """Raise InvalidRequestError if the update changes a field that may not change."""
    if old.role_template_name != new.role_template_name:
        invalid = "referenced roleTemplate"
    elif old.project_name != new.project_name:
        invalid = "projectName"
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


class ProjectRoleTemplateBindingValidator:
    """Checks bindings of role templates to users or groups in a project.

    The requesting user passes if they hold the rules in the project's cluster
    (``confirm_cluster_escalation``) or else in the project itself
    (``confirm_project_escalation``); both raise EscalationError on failure.
    """

    gvr = GroupVersionResource("management.cattle.io", "v3", "projectroletemplatebindings")

    def __init__(
        self,
        role_templates: _RoleTemplateSource,
        confirm_cluster_escalation: ConfirmNoEscalation,
        confirm_project_escalation: ConfirmNoEscalation,
    ) -> None:
        self._role_templates = role_templates
        self._confirm_cluster = confirm_cluster_escalation
        self._confirm_project = confirm_project_escalation

    def operations(self) -> tuple[Operation, ...]:
        return (Operation.UPDATE, Operation.CREATE)

    def admit(self, request: Request) -> Response:
        if request.operation is Operation.UPDATE:
            try:
                old = ProjectRoleTemplateBinding.from_dict(request.old_object_json())
                new = ProjectRoleTemplateBinding.from_dict(request.object_json())
            except ValueError as exc:
                raise ValueError(f"failed to decode PRTB objects from request: {exc}") from exc
            try:
                validate_update_fields(old, new)
            except InvalidRequestError as exc:
                return response_bad_request(str(exc))

        try:
            binding = ProjectRoleTemplateBinding.from_dict(request.object_json())
        except ValueError as exc:
            raise ValueError(f"failed to decode PRTB object from request: {exc}") from exc

        if request.operation is Operation.CREATE:
            try:
                self._validate_create_fields(binding)
            except InvalidRequestError as exc:
                return response_bad_request(str(exc))

        cluster_ns, project_ns = cluster_from_project(binding.project_name)

        name = binding.role_template_name
        try:
            template = self._role_templates.get(name)
        except NotFoundError:
            return response_allowed()
        except Exception as exc:
            raise RuntimeError(
                f"failed to get referenced roleTemplate '{name}' for PRTB: {exc}"
            ) from exc

        try:
            rules = self._role_templates.rules_from_template(template)
        except Exception as exc:
            raise RuntimeError(
                f"failed to get rules from referenced roleTemplate '{name}': {exc}"
            ) from exc

        try:
            self._confirm_cluster(request, rules, cluster_ns)
        except EscalationError:
            pass
        else:
            return response_allowed()

        error: Optional[EscalationError] = None
        try:
            self._confirm_project(request, rules, project_ns)
        except EscalationError as exc:
            error = exc
        return set_escalation_response(Response(), error)

    def _validate_create_fields(self, binding: ProjectRoleTemplateBinding) -> None:
        has_user = bool(binding.user_name or binding.user_principal_name)
        has_group = bool(binding.group_name or binding.group_principal_name)
        if has_user == has_group:
            raise InvalidRequestError(
                "binding must target either a user [userId]/[userPrincipalId] "
                "OR a group [groupId]/[groupPrincipalId]"
            )
        if not binding.project_name:
            raise InvalidRequestError("binding must have field projectName set")
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