"""Validation of pod security admission configuration templates."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Sequence

from cattlegate.admission import (
    REASON_BAD_REQUEST,
    REASON_FORBIDDEN,
    REASON_INTERNAL_ERROR,
    GroupVersionResource,
    Operation,
    Request,
    Response,
    response_allowed,
    response_failure,
)
from cattlegate.objects import PodSecurityAdmissionConfigurationTemplate

BY_TEMPLATE_INDEX = "podSecurityAdmissionConfigurationName"
RANCHER_PRIVILEGED_TEMPLATE = "rancher-privileged"
RANCHER_RESTRICTED_TEMPLATE = "rancher-restricted"

LEVELS = ("privileged", "baseline", "restricted")

_VERSION_RE = re.compile(r"^v1\.([0-9]|[1-9][0-9]*)$")

_DNS1123_LABEL_FMT = r"[a-z0-9]([-a-z0-9]*[a-z0-9])?"
_DNS1123_LABEL_RE = re.compile(rf"^{_DNS1123_LABEL_FMT}$")
_DNS1123_LABEL_MAX = 63
_DNS1123_LABEL_ERROR = (
    "a lowercase RFC 1123 label must consist of lower case alphanumeric characters "
    "or '-', and must start and end with an alphanumeric character "
    "(e.g. 'my-name',  or '123-abc', regex used for validation is "
    f"'{_DNS1123_LABEL_FMT}')"
)

_DNS1123_SUBDOMAIN_FMT = rf"{_DNS1123_LABEL_FMT}(\.{_DNS1123_LABEL_FMT})*"
_DNS1123_SUBDOMAIN_RE = re.compile(rf"^{_DNS1123_SUBDOMAIN_FMT}$")
_DNS1123_SUBDOMAIN_MAX = 253
_DNS1123_SUBDOMAIN_ERROR = (
    "a lowercase RFC 1123 subdomain must consist of lower case alphanumeric "
    "characters, '-' or '.', and must start and end with an alphanumeric character "
    "(e.g. 'example.com', regex used for validation is "
    f"'{_DNS1123_SUBDOMAIN_FMT}')"
)

_EMPTY_USERNAME_ERROR = "username must not be empty"

INVALID = "Invalid value"
DUPLICATE = "Duplicate value"


@dataclass(frozen=True)
class FieldError:
    """A problem with one field of a template."""

    path: str
    value: Any
    kind: str = INVALID
    detail: str = ""

    def __str__(self) -> str:
        if isinstance(self.value, str):
            body = f"{self.kind}: {json.dumps(self.value)}"
        else:
            body = f"{self.kind}: {self.value!r}"
        if self.detail:
            body += f": {self.detail}"
        return f"{self.path}: {body}"


class TemplateValidationError(ValueError):
    """A template holds one or more invalid fields."""

    def __init__(self, errors: Iterable[FieldError]) -> None:
        self.errors = list(errors)
        messages = list(dict.fromkeys(str(error) for error in self.errors))
        text = messages[0] if len(messages) == 1 else "[" + ", ".join(messages) + "]"
        super().__init__(text)


def parse_level(value: str) -> str:
    """Return the level if it is a known pod security level, else raise ValueError."""
    if value in LEVELS:
        return value
    raise ValueError("must be one of " + ", ".join(LEVELS))


def parse_version(value: str) -> Optional[int]:
    """Return the minor version of ``v1.x``, or None for ``latest``.

    Raises ValueError for anything else.
    """
    if value == "latest":
        return None
    match = _VERSION_RE.match(value)
    if match is None:
        raise ValueError('must be "latest" or "v1.x"')
    return int(match.group(1))


def is_dns1123_label(value: str) -> list[str]:
    """Return the reasons ``value`` is not an RFC 1123 label; empty when it is one."""
    problems = []
    if len(value) > _DNS1123_LABEL_MAX:
        problems.append(f"must be no more than {_DNS1123_LABEL_MAX} characters")
    if not _DNS1123_LABEL_RE.match(value):
        problems.append(_DNS1123_LABEL_ERROR)
    return problems


def is_dns1123_subdomain(value: str) -> list[str]:
    """Return the reasons ``value`` is not an RFC 1123 subdomain; empty when it is one."""
    problems = []
    if len(value) > _DNS1123_SUBDOMAIN_MAX:
        problems.append(f"must be no more than {_DNS1123_SUBDOMAIN_MAX} characters")
    if not _DNS1123_SUBDOMAIN_RE.match(value):
        problems.append(_DNS1123_SUBDOMAIN_ERROR)
    return problems


def _check_parsed(path: str, value: str, parse: Callable[[str], Any]) -> list[FieldError]:
    if not value:
        return []
    try:
        parse(value)
    except ValueError as exc:
        return [FieldError(path, value, INVALID, str(exc))]
    return []


def _check_unique(
    path: str, values: Sequence[str], problems_of: Callable[[str], list[str]]
) -> list[FieldError]:
    errors: list[FieldError] = []
    valid: set[str] = set()
    for index, value in enumerate(values):
        item_path = f"{path}[{index}]"
        problems = problems_of(value)
        if problems:
            errors.append(FieldError(item_path, value, INVALID, ", ".join(problems)))
        elif value in valid:
            errors.append(FieldError(item_path, value, DUPLICATE))
        else:
            valid.add(value)
    return errors


def _username_problems(value: str) -> list[str]:
    problems: list[str] = []
    if value == "":
        problems.append(_EMPTY_USERNAME_ERROR)
    return problems


def validate_configuration(template: PodSecurityAdmissionConfigurationTemplate) -> None:
    """Raise TemplateValidationError for the first group of invalid fields found."""
    checks = (
        lambda: _check_parsed("defaults.enforce", template.enforce, parse_level),
        lambda: _check_parsed("defaults.enforce-version", template.enforce_version, parse_version),
        lambda: _check_parsed("defaults.warn", template.warn, parse_level),
        lambda: _check_parsed("defaults.warn-version", template.warn_version, parse_version),
        lambda: _check_parsed("defaults.audit", template.audit, parse_level),
        lambda: _check_parsed("defaults.audit-version", template.audit_version, parse_version),
        lambda: _check_unique(
            "exemptions.usernames", template.exempt_usernames, _username_problems
        ),
        lambda: _check_unique(
            "exemptions.runtimeClasses", template.exempt_runtime_classes, is_dns1123_subdomain
        ),
        lambda: _check_unique(
            "exemptions.namespaces", template.exempt_namespaces, is_dns1123_label
        ),
    )
    for check in checks:
        errors = check()
        if errors:
            raise TemplateValidationError(errors)


def _template_names(cluster: Mapping[str, Any]) -> list[str]:
    spec = cluster.get("spec") or {}
    name = spec.get("defaultPodSecurityAdmissionConfigurationTemplateName", "")
    return [name] if name else []


class _ClusterCache(Protocol):
    def add_indexer(self, name: str, indexer: Callable[[Mapping[str, Any]], list[str]]) -> None: ...

    def get_by_index(self, index_name: str, key: str) -> Sequence[Any]: ...


class PodSecurityAdmissionConfigurationTemplateValidator:
    """Checks template contents and keeps templates in use from being deleted.

    Both caches hold cluster manifests; an index named ``BY_TEMPLATE_INDEX``
    mapping template names to the clusters that use them is added to each.
    """

    gvr = GroupVersionResource(
        "management.cattle.io", "v3", "podsecurityadmissionconfigurationtemplates"
    )

    def __init__(
        self, management_clusters: _ClusterCache, provisioning_clusters: _ClusterCache
    ) -> None:
        self._management = management_clusters
        self._provisioning = provisioning_clusters
        self._management.add_indexer(BY_TEMPLATE_INDEX, _template_names)
        self._provisioning.add_indexer(BY_TEMPLATE_INDEX, _template_names)

    def operations(self) -> tuple[Operation, ...]:
        return (Operation.UPDATE, Operation.CREATE, Operation.DELETE)

    def admit(self, request: Request) -> Response:
        try:
            new = PodSecurityAdmissionConfigurationTemplate.from_dict(request.object_json())
            if request.operation is Operation.CREATE:
                old = PodSecurityAdmissionConfigurationTemplate()
            else:
                old = PodSecurityAdmissionConfigurationTemplate.from_dict(
                    request.old_object_json()
                )
        except ValueError as exc:
            raise ValueError(
                "failed to parse PodSecurityAdmissionConfigurationTemplate "
                f"object from request:{exc}"
            ) from exc

        if request.operation in (Operation.CREATE, Operation.UPDATE):
            try:
                validate_configuration(new)
            except TemplateValidationError as exc:
                return response_failure(
                    str(exc), REASON_BAD_REQUEST, HTTPStatus.UNPROCESSABLE_ENTITY
                )
            return response_allowed()

        if request.operation is Operation.DELETE:
            return self._admit_deletion(old)

        return response_allowed()

    def _admit_deletion(self, old: PodSecurityAdmissionConfigurationTemplate) -> Response:
        if old.name in (RANCHER_PRIVILEGED_TEMPLATE, RANCHER_RESTRICTED_TEMPLATE):
            return response_failure(
                f"Cannot delete built-in template '{old.name}'",
                REASON_FORBIDDEN,
                HTTPStatus.FORBIDDEN,
            )
        try:
            count, cluster_type = self._clusters_using(old.name)
        except RuntimeError as exc:
            return response_failure(
                str(exc), REASON_INTERNAL_ERROR, HTTPStatus.INTERNAL_SERVER_ERROR
            )
        if count > 0:
            if count == 1:
                message = (
                    f"Cannot delete template '{old.name}' as it is being used "
                    f"by a {cluster_type} cluster"
                )
            else:
                message = (
                    f"Cannot delete template '{old.name}' as it is being used "
                    f"by {count} {cluster_type} clusters"
                )
            return response_failure(message, REASON_BAD_REQUEST, HTTPStatus.BAD_REQUEST)
        return response_allowed()

    def _clusters_using(self, name: str) -> tuple[int, str]:
        for cache, cluster_type in (
            (self._management, "management"),
            (self._provisioning, "provisioning"),
        ):
            try:
                clusters = cache.get_by_index(BY_TEMPLATE_INDEX, name)
            except Exception as exc:
                raise RuntimeError(
                    f"error encountered within {cluster_type} cluster indexer: {exc}"
                ) from exc
            if clusters:
                return len(clusters), cluster_type
        return 0, ""