# cattlegate

Admission checks for `management.cattle.io/v3` resources. Each checker takes
a `cattlegate.admission.Request`, which carries the raw JSON of the new and
old object, the operation and the requesting user. It returns a
`cattlegate.admission.Response` that allows or denies the request. When a
request cannot be processed at all, for example because it carries no object,
the checker raises an exception.

## Checkers

| Module | Checker | Operations |
| --- | --- | --- |
| `cattlegate.clusterroletemplatebinding` | `ClusterRoleTemplateBindingValidator` | create, update |
| `cattlegate.projectroletemplatebinding` | `ProjectRoleTemplateBindingValidator` | create, update |
| `cattlegate.roletemplate` | `RoleTemplateValidator` | create, update |
| `cattlegate.globalrole` | `GlobalRoleValidator` | create, update |
| `cattlegate.globalrolebinding` | `GlobalRoleBindingValidator` | create, update, delete |
| `cattlegate.feature` | `FeatureValidator` | update |
| `cattlegate.nodedriver` | `NodeDriverValidator` | update, delete |
| `cattlegate.psact` | `PodSecurityAdmissionConfigurationTemplateValidator` | create, update, delete |
| `cattlegate.fleetworkspace` | `FleetWorkspaceMutator` | create |

Each checker has a `gvr` attribute naming its resource, an `operations()`
method and an `admit(request)` method.

What they check, in short:

- **Role template bindings** (cluster and project): on update, the role
  template, cluster or project, and any user or group field that was already
  set may not change. On create, the binding must target exactly one of a user
  or a group, must name its cluster or project, and may not reference a locked
  role template. The user must then hold the template's rules. A project
  binding passes if the user holds them in the project's cluster, or else in
  the project. `cluster_from_project("c:p")` splits a project name.
- **Role templates**: inheritance cycles back to the template are refused
  (`check_circular_ref`), every rule needs a verb, and the user must either be
  allowed to escalate or hold the rules.
- **Global roles**: every rule needs a verb, and the user must hold the rules.
  Objects being deleted are allowed.
- **Global role bindings**: the user must hold the referenced role's rules. If
  the role is missing, only deletes and updates of objects being deleted are
  allowed.
- **Features**: a locked feature's value may only stay the same or move to
  the locked value (`is_update_allowed`).
- **Node drivers**: a driver cannot be disabled or deleted while nodes or
  machines of its kind exist.
- **Pod security admission configuration templates**: levels must be
  `privileged`, `baseline` or `restricted`. Versions must be `latest` or
  `v1.x`. Exempt usernames must be non-empty and unique, runtime classes must
  be unique RFC 1123 subdomains, and namespaces must be unique RFC 1123 labels
  (`validate_configuration`, `parse_level`, `parse_version`,
  `is_dns1123_label`, `is_dns1123_subdomain`). The two built-in templates, and
  templates used by any cluster, cannot be deleted.
- **Fleet workspaces**: on create, the checker makes the workspace's
  namespace, an admin role binding, and an own cluster role and binding for
  the creator. Objects that exist already are left alone.

## What the caller supplies

Cluster state and authorization come from outside the package:

- role templates: an object with `get(name)`, which raises `NotFoundError`
  for unknown names, and `rules_from_template(template)`;
- global roles: an object with `get(name)`;
- nodes: an object with `list()`; machines: an object with
  `list(group, version, kind)`;
- clusters: objects with `add_indexer(name, indexer)` and
  `get_by_index(index_name, key)`;
- a cluster API for fleet workspaces, with `create_namespace`,
  `get_namespace`, `get_cluster_role`, `create_role_binding`,
  `create_cluster_role` and `create_cluster_role_binding`. Each create method
  raises `AlreadyExistsError` if the object already exists;
- escalation checks: callables `(request, rules, namespace)` that raise
  `EscalationError` when the user would gain rights they do not hold, and,
  for role templates, `(request, gvr, namespace) -> bool` telling whether the
  user may escalate.

## Example

```python
import json

from cattlegate.admission import Operation, Request, UserInfo
from cattlegate.feature import FeatureValidator

request = Request(
    operation=Operation.UPDATE,
    user_info=UserInfo(username="test-user"),
    obj=json.dumps({"spec": {"value": False}, "status": {"lockedValue": True}}).encode(),
    old_obj=json.dumps({"spec": {"value": True}}).encode(),
)
response = FeatureValidator().admit(request)
print(response.allowed)         # False
print(response.result.message)  # feature flag cannot be changed from current value: true
```

The objects in `cattlegate.objects` are dataclasses. Each one is built from
decoded JSON with `from_dict`. The helpers in `cattlegate.admission` build
responses:

- `response_allowed()`
- `response_bad_request(message)`
- `response_failure(message, reason, code)`
- `set_escalation_response(response, error)`

## What this package does not do

It does not serve HTTP and does not register webhooks with a cluster. It
holds no caches and does not talk to a cluster API by itself. It does not
resolve RBAC rules to decide whether a user escalates. The caller provides
all of these.

## Running the tests

```
pip install -e ".[test]"
pytest
```