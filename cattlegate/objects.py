"""Resource objects decoded from admission request JSON."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


def _section(data: Optional[dict[str, Any]], key: str) -> dict[str, Any]:
    value = (data or {}).get(key)
    return value if isinstance(value, dict) else {}


def _strings(data: dict[str, Any], key: str) -> list[str]:
    return list(data.get(key) or [])


@dataclass
class ObjectMeta:
    """Standard object metadata."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    generate_name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    deletion_timestamp: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> ObjectMeta:
        data = data or {}
        return cls(
            name=data.get("name", ""),
            namespace=data.get("namespace", ""),
            uid=data.get("uid", ""),
            generate_name=data.get("generateName", ""),
            labels=dict(data.get("labels") or {}),
            annotations=dict(data.get("annotations") or {}),
            finalizers=_strings(data, "finalizers"),
            deletion_timestamp=data.get("deletionTimestamp"),
        )


class _Resource:
    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def deletion_timestamp(self) -> Optional[str]:
        return self.metadata.deletion_timestamp


def _meta(data: Optional[dict[str, Any]]) -> ObjectMeta:
    return ObjectMeta.from_dict(_section(data, "metadata"))


@dataclass
class PolicyRule:
    """One RBAC rule."""

    verbs: list[str] = field(default_factory=list)
    api_groups: list[str] = field(default_factory=list)
    resources: list[str] = field(default_factory=list)
    resource_names: list[str] = field(default_factory=list)
    non_resource_urls: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> PolicyRule:
        data = data or {}
        return cls(
            verbs=_strings(data, "verbs"),
            api_groups=_strings(data, "apiGroups"),
            resources=_strings(data, "resources"),
            resource_names=_strings(data, "resourceNames"),
            non_resource_urls=_strings(data, "nonResourceURLs"),
        )


def _rules(data: dict[str, Any]) -> list[PolicyRule]:
    return [PolicyRule.from_dict(rule) for rule in data.get("rules") or []]


@dataclass
class RoleTemplate(_Resource):
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    display_name: str = ""
    description: str = ""
    rules: list[PolicyRule] = field(default_factory=list)
    role_template_names: list[str] = field(default_factory=list)
    context: str = ""
    locked: bool = False
    builtin: bool = False
    administrative: bool = False
    external: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> RoleTemplate:
        data = data or {}
        return cls(
            metadata=_meta(data),
            display_name=data.get("displayName", ""),
            description=data.get("description", ""),
            rules=_rules(data),
            role_template_names=_strings(data, "roleTemplateNames"),
            context=data.get("context", ""),
            locked=bool(data.get("locked", False)),
            builtin=bool(data.get("builtin", False)),
            administrative=bool(data.get("administrative", False)),
            external=bool(data.get("external", False)),
        )


@dataclass
class ClusterRoleTemplateBinding(_Resource):
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    user_name: str = ""
    user_principal_name: str = ""
    group_name: str = ""
    group_principal_name: str = ""
    cluster_name: str = ""
    role_template_name: str = ""

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> ClusterRoleTemplateBinding:
        data = data or {}
        return cls(
            metadata=_meta(data),
            user_name=data.get("userName", ""),
            user_principal_name=data.get("userPrincipalName", ""),
            group_name=data.get("groupName", ""),
            group_principal_name=data.get("groupPrincipalName", ""),
            cluster_name=data.get("clusterName", ""),
            role_template_name=data.get("roleTemplateName", ""),
        )


@dataclass
class ProjectRoleTemplateBinding(_Resource):
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    user_name: str = ""
    user_principal_name: str = ""
    group_name: str = ""
    group_principal_name: str = ""
    project_name: str = ""
    role_template_name: str = ""

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> ProjectRoleTemplateBinding:
        data = data or {}
        return cls(
            metadata=_meta(data),
            user_name=data.get("userName", ""),
            user_principal_name=data.get("userPrincipalName", ""),
            group_name=data.get("groupName", ""),
            group_principal_name=data.get("groupPrincipalName", ""),
            project_name=data.get("projectName", ""),
            role_template_name=data.get("roleTemplateName", ""),
        )


@dataclass
class GlobalRole(_Resource):
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    display_name: str = ""
    description: str = ""
    rules: list[PolicyRule] = field(default_factory=list)
    new_user_default: bool = False
    builtin: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> GlobalRole:
        data = data or {}
        return cls(
            metadata=_meta(data),
            display_name=data.get("displayName", ""),
            description=data.get("description", ""),
            rules=_rules(data),
            new_user_default=bool(data.get("newUserDefault", False)),
            builtin=bool(data.get("builtin", False)),
        )


@dataclass
class GlobalRoleBinding(_Resource):
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    user_name: str = ""
    group_principal_name: str = ""
    global_role_name: str = ""

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> GlobalRoleBinding:
        data = data or {}
        return cls(
            metadata=_meta(data),
            user_name=data.get("userName", ""),
            group_principal_name=data.get("groupPrincipalName", ""),
            global_role_name=data.get("globalRoleName", ""),
        )


@dataclass
class Feature(_Resource):
    """A feature flag: its requested value and the value it is locked to, if any."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    value: Optional[bool] = None
    locked_value: Optional[bool] = None
    default: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Feature:
        data = data or {}
        spec = _section(data, "spec")
        status = _section(data, "status")
        return cls(
            metadata=_meta(data),
            value=spec.get("value"),
            locked_value=status.get("lockedValue"),
            default=bool(status.get("default", False)),
        )


@dataclass
class NodeDriver(_Resource):
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    display_name: str = ""
    active: bool = False
    builtin: bool = False
    url: str = ""

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> NodeDriver:
        data = data or {}
        spec = _section(data, "spec")
        return cls(
            metadata=_meta(data),
            display_name=spec.get("displayName", ""),
            active=bool(spec.get("active", False)),
            builtin=bool(spec.get("builtin", False)),
            url=spec.get("url", ""),
        )


@dataclass
class Node(_Resource):
    """A node; ``template_driver`` is None when the node has no template spec."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    template_driver: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Node:
        data = data or {}
        template = _section(data, "status").get("nodeTemplateSpec")
        driver = template.get("driver", "") if isinstance(template, dict) else None
        return cls(metadata=_meta(data), template_driver=driver)


@dataclass
class FleetWorkspace(_Resource):
    metadata: ObjectMeta = field(default_factory=ObjectMeta)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> FleetWorkspace:
        return cls(metadata=_meta(data))


@dataclass
class PodSecurityAdmissionConfigurationTemplate(_Resource):
    """Pod security admission defaults and exemptions."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    description: str = ""
    enforce: str = ""
    enforce_version: str = ""
    audit: str = ""
    audit_version: str = ""
    warn: str = ""
    warn_version: str = ""
    exempt_usernames: list[str] = field(default_factory=list)
    exempt_runtime_classes: list[str] = field(default_factory=list)
    exempt_namespaces: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(
        cls, data: Optional[dict[str, Any]]
    ) -> PodSecurityAdmissionConfigurationTemplate:
        data = data or {}
        configuration = _section(data, "configuration")
        defaults = _section(configuration, "defaults")
        exemptions = _section(configuration, "exemptions")
        return cls(
            metadata=_meta(data),
            description=data.get("description", ""),
            enforce=defaults.get("enforce", ""),
            enforce_version=defaults.get("enforce-version", ""),
            audit=defaults.get("audit", ""),
            audit_version=defaults.get("audit-version", ""),
            warn=defaults.get("warn", ""),
            warn_version=defaults.get("warn-version", ""),
            exempt_usernames=_strings(exemptions, "usernames"),
            exempt_runtime_classes=_strings(exemptions, "runtimeClasses"),
            exempt_namespaces=_strings(exemptions, "namespaces"),
        )