"""Validation of role templates."""

from __future__ import annotations

import logging
from collections import deque
from http import HTTPStatus
from typing import Callable, Optional, Protocol, Sequence

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
from cattlegate.objects import PolicyRule, RoleTemplate

logger = logging.getLogger(__name__)

ConfirmNoEscalation = Callable[[Request, Sequence[PolicyRule], str], None]
EscalationAuthorized = Callable[[Request, GroupVersionResource, str], bool]


class _RoleTemplateSource(Protocol):
    def get(self, name: str) -> RoleTemplate: ...

    def rules_from_template(self, template: RoleTemplate) -> Sequence[PolicyRule]: ...


class RoleTemplateValidator:
    """Checks role templates for circular inheritance, empty rules and escalation.

    ``role_templates.get(name)`` returns a role template or raises;
    ``role_templates.rules_from_template(template)`` resolves its rules.
    ``confirm_no_escalation(request, rules, namespace)`` raises EscalationError
    when the user does not hold the rules. ``escalation_authorized(request, gvr,
    namespace)`` tells whether the user may use the ``escalate`` verb.
    """

    gvr = GroupVersionResource("management.cattle.io", "v3", "roletemplates")

    def __init__(
        self,
        role_templates: _RoleTemplateSource,
        confirm_no_escalation: ConfirmNoEscalation,
        escalation_authorized: EscalationAuthorized,
    ) -> None:
        self._role_templates = role_templates
        self._confirm_no_escalation = confirm_no_escalation
        self._escalation_authorized = escalation_authorized

    def operations(self) -> tuple[Operation, ...]:
        return (Operation.UPDATE, Operation.CREATE)

    def admit(self, request: Request) -> Response:
        template = RoleTemplate.from_dict(request.object_json())

        # An object being deleted may still need its finalizers removed.
        if template.deletion_timestamp is not None:
            return response_allowed()

        try:
            circular = self.check_circular_ref(template)
        except LookupError as exc:
            logger.error("Error when trying to check for a circular ref: %s", exc)
            raise
        if circular is not None:
            return response_bad_request(
                f"Circular Reference: RoleTemplate {circular.name} "
                f"already inherits RoleTemplate {template.name}"
            )

        rules = list(self._role_templates.rules_from_template(template))
        if any(not rule.verbs for rule in rules):
            return response_bad_request(
                "RoleTemplate.Rules: PolicyRules must have at least one verb"
            )

        try:
            allowed = bool(self._escalation_authorized(request, self.gvr, ""))
        except Exception as exc:
            logger.warning(
                "Failed to check for the 'escalate' verb on RoleTemplates: %s", exc
            )
            allowed = False
        if allowed:
            return response_allowed()

        error: Optional[EscalationError] = None
        try:
            self._confirm_no_escalation(request, rules, "")
        except EscalationError as exc:
            error = exc
        return set_escalation_response(Response(), error)

    def check_circular_ref(self, template: RoleTemplate) -> Optional[RoleTemplate]:
        """Return the first template found that inherits ``template``, or None.

        Only cycles that lead back to ``template`` itself are looked for.
        Raises LookupError when an inherited template cannot be fetched.
        """
        seen: set[str] = set()
        queue: deque[RoleTemplate] = deque([template])
        while queue:
            current = queue.popleft()
            for inherited in current.role_template_names:
                if inherited == template.name:
                    return current
                if inherited in seen:
                    continue
                try:
                    found = self._role_templates.get(inherited)
                except Exception as exc:
                    raise LookupError(
                        f"unable to get roletemplate {inherited} with error {exc}"
                    ) from exc
                seen.add(inherited)
                queue.append(found)
        return None


__all__ = ["RoleTemplateValidator", "HTTPStatus"] if False else ["RoleTemplateValidator"]