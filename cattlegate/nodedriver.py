"""Validation that node drivers in use are not disabled or deleted."""

from __future__ import annotations

from typing import Any, Iterable, Protocol, Sequence

from cattlegate.admission import (
    GroupVersionResource,
    Operation,
    Request,
    Response,
    response_allowed,
    response_failure,
)
from cattlegate.objects import Node, NodeDriver

_DRIVER_IN_USE = "This driver is in use by existing nodes and cannot be disabled"


class _NodeCache(Protocol):
    def list(self) -> Iterable[Node]: ...


class _DynamicLister(Protocol):
    def list(self, group: str, version: str, kind: str) -> Sequence[Any]: ...


class NodeDriverValidator:
    """Refuses to disable or delete a driver while nodes or machines still use it.

    ``node_cache.list()`` yields all nodes; ``dynamic.list(group, version, kind)``
    lists machine objects of a kind.
    """

    gvr = GroupVersionResource("management.cattle.io", "v3", "nodedrivers")

    def __init__(self, node_cache: _NodeCache, dynamic: _DynamicLister) -> None:
        self._node_cache = node_cache
        self._dynamic = dynamic

    def operations(self) -> tuple[Operation, ...]:
        return (Operation.UPDATE, Operation.DELETE)

    def admit(self, request: Request) -> Response:
        try:
            new = NodeDriver.from_dict(request.object_json())
            if request.operation is Operation.CREATE:
                old = NodeDriver()
            else:
                old = NodeDriver.from_dict(request.old_object_json())
        except ValueError as exc:
            raise ValueError(f"failed to decode object from request: {exc}") from exc

        disabling = (request.operation is Operation.DELETE and old.active) or (
            request.operation is Operation.UPDATE and old.active and not new.active
        )
        if not disabling:
            return response_allowed()

        if not (self._rke1_resources_deleted(old) and self._rke2_resources_deleted(old)):
            return response_failure(_DRIVER_IN_USE, "", 0)
        return response_allowed()

    def _rke1_resources_deleted(self, driver: NodeDriver) -> bool:
        try:
            nodes = list(self._node_cache.list())
        except Exception as exc:
            raise RuntimeError(f"error listing nodes from cache: {exc}") from exc
        return not any(
            node.template_driver is not None and node.template_driver == driver.display_name
            for node in nodes
        )

    def _rke2_resources_deleted(self, driver: NodeDriver) -> bool:
        kind = driver.display_name + "machine"
        try:
            machines = self._dynamic.list("rke-machine.cattle.io", "v1", kind)
        except Exception as exc:
            raise RuntimeError(f"error listing {kind}s: {exc}") from exc
        return len(machines) == 0