import json

import pytest

from cattlegate.admission import Operation, Request
from cattlegate.objects import PodSecurityAdmissionConfigurationTemplate
from cattlegate.psact import (
    BY_TEMPLATE_INDEX,
    FieldError,
    PodSecurityAdmissionConfigurationTemplateValidator,
    TemplateValidationError,
    is_dns1123_label,
    is_dns1123_subdomain,
    parse_level,
    parse_version,
    validate_configuration,
)


class FakeClusterCache:
    def __init__(self, used_template, fail=False):
        self.used_template = used_template
        self.fail = fail
        self.indexers = {}

    def add_indexer(self, name, indexer):
        self.indexers[name] = indexer

    def get_by_index(self, index_name, key):
        if self.fail:
            raise OSError("cache unavailable")
        if key != self.used_template:
            return []
        return [
            {"spec": {"defaultPodSecurityAdmissionConfigurationTemplateName": key}}
        ]


def make_validator(mgmt_fail=False):
    return PodSecurityAdmissionConfigurationTemplateValidator(
        FakeClusterCache("mgmttesting", fail=mgmt_fail),
        FakeClusterCache("provtesting"),
    )


def template(
    name="",
    enforce="privileged",
    enforce_version="v1.25",
    audit="baseline",
    audit_version="v1.25",
    warn="baseline",
    warn_version="v1.25",
    usernames=None,
    runtime_classes=None,
    namespaces=None,
):
    return {
        "metadata": {"name": name},
        "description": "a test template",
        "configuration": {
            "defaults": {
                "enforce": enforce,
                "enforce-version": enforce_version,
                "audit": audit,
                "audit-version": audit_version,
                "warn": warn,
                "warn-version": warn_version,
            },
            "exemptions": {
                "usernames": usernames,
                "runtimeClasses": runtime_classes,
                "namespaces": namespaces,
            },
        },
    }


def make_request(obj, operation):
    raw = json.dumps(obj)
    return Request(operation=operation, obj=raw, old_obj=raw)


@pytest.mark.parametrize(
    "name, allowed",
    [
        ("rancher-restricted", False),
        ("rancher-privileged", False),
        ("mgmttesting", False),
        ("provtesting", False),
        ("testing", True),
    ],
)
def test_delete(name, allowed):
    response = make_validator().admit(make_request(template(name=name), Operation.DELETE))
    assert response.allowed is allowed


def test_delete_built_in_is_forbidden():
    response = make_validator().admit(
        make_request(template(name="rancher-restricted"), Operation.DELETE)
    )
    assert response.result.code == 403
    assert response.result.reason == "Forbidden"
    assert response.result.message == "Cannot delete built-in template 'rancher-restricted'"


def test_delete_in_use_message_singular():
    response = make_validator().admit(
        make_request(template(name="provtesting"), Operation.DELETE)
    )
    assert response.result.code == 400
    assert response.result.message == (
        "Cannot delete template 'provtesting' as it is being used by a provisioning cluster"
    )


def test_delete_in_use_message_plural():
    class ManyClusters(FakeClusterCache):
        def get_by_index(self, index_name, key):
            return [{}, {}, {}] if key == self.used_template else []

    validator = PodSecurityAdmissionConfigurationTemplateValidator(
        ManyClusters("shared"), FakeClusterCache("other")
    )
    response = validator.admit(make_request(template(name="shared"), Operation.DELETE))
    assert response.allowed is False
    assert response.result.message == (
        "Cannot delete template 'shared' as it is being used by 3 management clusters"
    )


def test_delete_indexer_failure_is_internal_error():
    response = make_validator(mgmt_fail=True).admit(
        make_request(template(name="testing"), Operation.DELETE)
    )
    assert response.allowed is False
    assert response.result.code == 500
    assert response.result.message.startswith(
        "error encountered within management cluster indexer:"
    )


@pytest.mark.parametrize(
    "overrides, allowed",
    [
        ({}, True),
        ({"enforce": "", "enforce_version": ""}, True),
        ({"enforce": ""}, True),
        ({"enforce": "baseline", "enforce_version": ""}, True),
        ({"enforce": "badlevel"}, False),
        ({"enforce": "baseline", "enforce_version": "not-a-valid-version"}, False),
        ({"enforce": "baseline", "audit": "badlevel"}, False),
        ({"enforce": "baseline", "audit_version": "not-a-valid-version"}, False),
        ({"enforce": "baseline", "warn": "bad version"}, False),
        ({"enforce": "baseline", "warn_version": "not-a-valid-version"}, False),
        ({"enforce": "baseline", "usernames": ["user1", "user1"]}, False),
        ({"enforce": "baseline", "usernames": [""]}, False),
        ({"enforce": "baseline", "runtime_classes": ["-notadnssubdomain"]}, False),
        ({"enforce": "baseline", "runtime_classes": ["testruntime", "testruntime"]}, False),
        ({"enforce": "baseline", "runtime_classes": ["runtime.class"]}, True),
        ({"enforce": "baseline", "namespaces": [""]}, False),
        ({"enforce": "baseline", "namespaces": ["-badnamespace"]}, False),
        ({"enforce": "baseline", "namespaces": ["namespaceone", "namespaceone"]}, False),
        (
            {
                "enforce": "notvalid",
                "enforce_version": "reallynotvalid",
                "usernames": [""],
                "runtime_classes": ["supernotvalid"],
                "namespaces": ["namespaceone", "namespaceone", "--!incrediblyInvalid"],
            },
            False,
        ),
    ],
)
def test_create_validation(overrides, allowed):
    response = make_validator().admit(make_request(template(**overrides), Operation.CREATE))
    assert response.allowed is allowed


def test_create_failure_is_unprocessable():
    response = make_validator().admit(
        make_request(template(enforce="badlevel"), Operation.CREATE)
    )
    assert response.result.code == 422
    assert response.result.reason == "BadRequest"
    assert response.result.message == (
        'defaults.enforce: Invalid value: "badlevel": '
        "must be one of privileged, baseline, restricted"
    )


def test_update_validates_new_object():
    request = Request(
        operation=Operation.UPDATE,
        obj=json.dumps(template(warn="nope")),
        old_obj=json.dumps(template()),
    )
    response = make_validator().admit(request)
    assert response.allowed is False


def test_connect_is_allowed():
    response = make_validator().admit(make_request(template(), Operation.CONNECT))
    assert response.allowed is True


def test_missing_object_raises():
    with pytest.raises(ValueError, match="failed to parse"):
        make_validator().admit(Request(operation=Operation.CREATE))


def test_indexers_registered():
    mgmt = FakeClusterCache("a")
    prov = FakeClusterCache("b")
    PodSecurityAdmissionConfigurationTemplateValidator(mgmt, prov)
    indexer = mgmt.indexers[BY_TEMPLATE_INDEX]
    assert indexer(
        {"spec": {"defaultPodSecurityAdmissionConfigurationTemplateName": "x"}}
    ) == ["x"]
    assert indexer({"spec": {}}) == []
    assert BY_TEMPLATE_INDEX in prov.indexers


def test_operations():
    assert make_validator().operations() == (
        Operation.UPDATE,
        Operation.CREATE,
        Operation.DELETE,
    )


@pytest.mark.parametrize("level", ["privileged", "baseline", "restricted"])
def test_parse_level_valid(level):
    assert parse_level(level) == level


def test_parse_level_invalid():
    with pytest.raises(ValueError, match="must be one of privileged, baseline, restricted"):
        parse_level("Baseline")


@pytest.mark.parametrize("value, minor", [("v1.25", 25), ("v1.0", 0), ("latest", None)])
def test_parse_version_valid(value, minor):
    assert parse_version(value) == minor


@pytest.mark.parametrize("value", ["v2.1", "1.25", "v1.025", "v1.", "not-a-valid-version"])
def test_parse_version_invalid(value):
    with pytest.raises(ValueError):
        parse_version(value)


def test_dns1123_label():
    assert is_dns1123_label("namespaceone") == []
    assert is_dns1123_label("a-1") == []
    assert len(is_dns1123_label("-bad")) == 1
    assert len(is_dns1123_label("")) == 1
    assert is_dns1123_label("a" * 64) == ["must be no more than 63 characters"]
    assert len(is_dns1123_label("has.dot")) == 1


def test_dns1123_subdomain():
    assert is_dns1123_subdomain("runtime.class") == []
    assert len(is_dns1123_subdomain("-notadnssubdomain")) == 1
    assert len(is_dns1123_subdomain("Upper")) == 1
    assert "must be no more than 253 characters" in is_dns1123_subdomain("a" * 254)


def test_field_error_text():
    assert str(FieldError("exemptions.namespaces[1]", "ns", "Duplicate value")) == (
        'exemptions.namespaces[1]: Duplicate value: "ns"'
    )
    assert str(FieldError("defaults.warn", "x", detail="bad")) == (
        'defaults.warn: Invalid value: "x": bad'
    )


def test_validate_configuration_collects_group_errors():
    obj = PodSecurityAdmissionConfigurationTemplate(
        exempt_namespaces=["a", "a", "a"],
    )
    with pytest.raises(TemplateValidationError) as info:
        validate_configuration(obj)
    assert [error.path for error in info.value.errors] == [
        "exemptions.namespaces[1]",
        "exemptions.namespaces[2]",
    ]
    assert str(info.value) == (
        '[exemptions.namespaces[1]: Duplicate value: "a", '
        'exemptions.namespaces[2]: Duplicate value: "a"]'
    )


def test_validate_configuration_reports_first_group_only():
    obj = PodSecurityAdmissionConfigurationTemplate(
        enforce="notvalid", enforce_version="reallynotvalid", exempt_usernames=[""]
    )
    with pytest.raises(TemplateValidationError) as info:
        validate_configuration(obj)
    assert [error.path for error in info.value.errors] == ["defaults.enforce"]


def test_validate_configuration_empty_username():
    obj = PodSecurityAdmissionConfigurationTemplate(exempt_usernames=[""])
    with pytest.raises(TemplateValidationError) as info:
        validate_configuration(obj)
    assert str(info.value) == (
        'exemptions.usernames[0]: Invalid value: "": username must not be empty'
    )


def test_validate_configuration_accepts_empty_template():
    obj = PodSecurityAdmissionConfigurationTemplate(exempt_runtime_classes=["runtime.class"])
    assert validate_configuration(obj) is None