"""Policy gate: decides whether a proposed action may run.

Checks run in a fixed order:
1. Argument sanitation (control characters, ``..`` segments) -> Deny
2. Risk tier lookup (unknown tools count as dangerous)
3. Dangerous -> RequireConfirmation, at every autonomy level
4. Safe -> Allow from level 1
5. Caution -> Allow from level 2 when every target is inside a matching Scope

The gate is pure: it reads only its arguments and the catalog.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from daemonAgent.hitl.sanitizer import check_arguments
from daemonAgent.hitl.scopes import PathResolver, find_scope, normalize_path
from daemonAgent.models.enums import AutonomyLevel, RiskTier
from daemonAgent.models.turn import PolicySnapshot, PolicyVerdict, ProposedAction, Scope
from daemonAgent.tools.catalog import ToolCatalog, ToolDescriptor

LOGGER = logging.getLogger(__name__)


class PolicyGate:
    """Maps (action, autonomy level, scopes) to a PolicyVerdict."""

    def __init__(self, catalog: ToolCatalog, resolve_path: PathResolver = normalize_path):
        self.catalog = catalog
        self._resolve_path = resolve_path

    def evaluate(self, action: ProposedAction, level: int, scopes: Sequence[Scope] = ()) -> PolicyVerdict:
        level = AutonomyLevel.coerce(level)

        failure = check_arguments(action.arguments)
        if failure is not None:
            return PolicyVerdict.deny(f"Blocked {action.tool}: {failure.describe()}.")

        descriptor = self.catalog.get(action.tool)
        if descriptor is None:
            return PolicyVerdict.require_confirmation(
                f"'{action.tool}' is not a known tool, so it is treated as dangerous.",
                RiskTier.DANGEROUS,
            )

        tier = descriptor.risk_tier
        title = descriptor.display_title

        if tier is RiskTier.DANGEROUS:
            return PolicyVerdict.require_confirmation(
                f"{title} is a dangerous action and always needs your approval.",
                tier,
            )

        if tier is RiskTier.SAFE:
            if level >= AutonomyLevel.AUTO_SAFE:
                return PolicyVerdict.allow(tier)
            return PolicyVerdict.require_confirmation(
                f"{title} needs approval because autonomy is set to confirm everything.",
                tier,
            )

        # caution
        if level < AutonomyLevel.SCOPED_AUTO:
            return PolicyVerdict.require_confirmation(
                f"{title} changes state and autonomy level {int(level)} requires approval for that.",
                tier,
            )
        uncovered = self._first_uncovered_target(descriptor, action, scopes)
        if uncovered is None:
            return PolicyVerdict.allow(tier)
        if uncovered == "":
            reason = f"{title} is not covered by any approved '{descriptor.capability}' scope."
        else:
            reason = f"{title} targets {uncovered}, which is outside your approved '{descriptor.capability}' scopes."
        return PolicyVerdict.require_confirmation(reason, tier)

    def evaluate_batch(
        self, actions: Iterable[ProposedAction], snapshot: PolicySnapshot
    ) -> List[Tuple[ProposedAction, PolicyVerdict]]:
        """Judge a whole round against one snapshot."""
        verdicts = []
        for action in actions:
            verdict = self.evaluate(action, snapshot.autonomy_level, snapshot.scopes)
            LOGGER.debug("Verdict for %s (%s): %s %s", action.tool, action.id, verdict.kind.value, verdict.reason)
            verdicts.append((action, verdict))
        return verdicts

    def path_targets(self, descriptor: ToolDescriptor, action: ProposedAction) -> List[str]:
        return [
            action.arguments[name]
            for name in descriptor.path_arguments
            if isinstance(action.arguments.get(name), str)
        ]

    def _first_uncovered_target(
        self, descriptor: ToolDescriptor, action: ProposedAction, scopes: Sequence[Scope]
    ) -> Optional[str]:
        """None when covered; ``""`` when a capability-wide scope is missing; else the uncovered path."""
        targets = self.path_targets(descriptor, action)
        if not targets:
            if find_scope(descriptor.capability, None, scopes, self._resolve_path) is None:
                return ""
            return None
        for target in targets:
            if find_scope(descriptor.capability, target, scopes, self._resolve_path) is None:
                return target
        return None
