"""Mutating admission for fleet workspaces: sets up their namespace and RBAC."""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol, Sequence

from cattlegate.admission import (
    AlreadyExistsError,
    EscalationError,
    GroupVersionResource,
    Operation,
    Request,
    Response,
    response_allowed,
)
from cattlegate.objects import FleetWorkspace, PolicyRule

logger = logging.getLogger(__name__)

FLEET_ADMIN_ROLE = "fleetworkspace-admin"
MANAGEMENT_GROUP = "management.cattle.io"
RBAC_GROUP = "rbac.authorization.k8s.io"

ConfirmNoEscalation = Callable[[Request, Sequence[PolicyRule], str], None]
Manifest = dict[str, Any]


class _ClusterApi(Protocol):
    def create_namespace(self, namespace: Manifest) -> Manifest: ...

    def get_namespace(self, name: str) -> Manifest: ...

    def get_cluster_role(self, name: str) -> Manifest: ...

    def create_role_binding(self, binding: Manifest) -> Manifest: ...

    def create_cluster_role(self, role: Manifest) -> Manifest: ...

    def create_cluster_role_binding(self, binding: Manifest) -> Manifest: ...


def _user_subject(username: str) -> list[Manifest]:
    return [{"kind": "User", "apiGroup": RBAC_GROUP, "name": username}]


def _cluster_role_ref(name: str) -> Manifest:
    return {"apiGroup": RBAC_GROUP, "kind": "ClusterRole", "name": name}


class FleetWorkspaceMutator:
    """On creation of a fleet workspace, creates its namespace and RBAC objects.

    ``cluster_api`` creates and reads objects given as Kubernetes manifests and
    raises AlreadyExistsError when an object to create exists already.
    """

    gvr = GroupVersionResource("management.cattle.io", "v3", "fleetworkspaces")

    def __init__(self, cluster_api: _ClusterApi, confirm_no_escalation: ConfirmNoEscalation) -> None:
        self._api = cluster_api
        self._confirm_no_escalation = confirm_no_escalation

    def operations(self) -> tuple[Operation, ...]:
        return (Operation.CREATE,)

    def admit(self, request: Request) -> Response:
        if request.dry_run or request.operation is Operation.DELETE:
            return response_allowed()

        workspace = FleetWorkspace.from_dict(request.object_json())
        namespace: Manifest = {"metadata": {"name": workspace.name}}
        try:
            created = self._api.create_namespace(namespace)
        except AlreadyExistsError:
            role = self._api.get_cluster_role(FLEET_ADMIN_ROLE)
            rules = [PolicyRule.from_dict(rule) for rule in role.get("rules") or []]
            # The check is made, but its outcome does not change the verdict.
            try:
                self._confirm_no_escalation(request, rules, workspace.name)
            except EscalationError as exc:
                logger.info("fleet workspace %s: %s", workspace.name, exc)
            created = self._api.get_namespace(workspace.name)

        try:
            self._create_admin_binding(request, workspace)
        except AlreadyExistsError:
            pass

        self._create_own_role_and_binding(request, workspace, created)
        return response_allowed()

    def _create_admin_binding(self, request: Request, workspace: FleetWorkspace) -> None:
        self._api.create_role_binding(
            {
                "metadata": {
                    "name": "fleetworkspace-admin-binding-" + workspace.name,
                    "namespace": workspace.name,
                },
                "subjects": _user_subject(request.user_info.username),
                "roleRef": _cluster_role_ref(FLEET_ADMIN_ROLE),
            }
        )

    def _create_own_role_and_binding(
        self, request: Request, workspace: FleetWorkspace, namespace: Manifest
    ) -> None:
        ns_meta = namespace.get("metadata") or {}
        role_name = "fleetworkspace-own-" + workspace.name
        role = {
            "metadata": {
                "name": role_name,
                "ownerReferences": [
                    {
                        "apiVersion": "v1",
                        "kind": "Namespace",
                        "name": ns_meta.get("name", ""),
                        "uid": ns_meta.get("uid", ""),
                        "controller": False,
                        "blockOwnerDeletion": False,
                    }
                ],
            },
            "rules": [
                {
                    "apiGroups": [MANAGEMENT_GROUP],
                    "verbs": ["*"],
                    "resources": ["fleetworkspaces"],
                    "resourceNames": [workspace.name],
                }
            ],
        }
        try:
            self._api.create_cluster_role(role)
        except AlreadyExistsError:
            pass

        binding = {
            "metadata": {"name": "fleetworkspace-own-binding-" + workspace.name},
            "subjects": _user_subject(request.user_info.username),
            "roleRef": _cluster_role_ref(role_name),
        }
        try:
            self._api.create_cluster_role_binding(binding)
        except AlreadyExistsError:
            pass