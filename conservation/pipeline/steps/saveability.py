"""
Step 4: Saveability Assessor
Deterministic read on how likely the policy is to be saved.
"""

from typing import List, Optional

from conservation.pipeline.models import (
    ClientMatch,
    ConservationReason,
    SaveabilityAssessment,
)
from conservation.utils.time_utils import months_from_days


class SaveabilityAssessorStep:
    """
    Scores recoverability from app presence, relationship depth, policy age
    and the reason for the notice. No LLM call.
    """

    def execute(
        self,
        match: Optional[ClientMatch],
        reason: ConservationReason,
    ) -> Optional[SaveabilityAssessment]:
        """
        Assess a matched alert.

        Args:
            match: Matcher result (None means nothing to assess)
            reason: Extracted reason

        Returns:
            SaveabilityAssessment, or None when unmatched
        """
        if match is None:
            return None

        return self.assess(
            has_app=match.client_has_app,
            policy_count=match.client_policy_count,
            policy_age=match.policy_age,
            reason=reason,
        )

    def assess(
        self,
        has_app: bool,
        policy_count: Optional[int],
        policy_age: Optional[int],
        reason: ConservationReason,
    ) -> SaveabilityAssessment:
        factors: List[str] = []

        if has_app:
            factors.append("client has the mobile app installed (direct channel)")
        else:
            factors.append("client does not have the app (SMS only)")

        multi_policy = (policy_count or 0) > 1
        if multi_policy:
            factors.append(f"client has {policy_count} total policies (deeper relationship)")

        if policy_age is not None:
            months = months_from_days(policy_age)
            if policy_age < 180:
                factors.append(f"policy is only {months} months old")
            else:
                factors.append(f"policy is {months} months old")

        if reason == ConservationReason.LAPSED_PAYMENT:
            factors.append("reason is a missed payment (often fixable)")
        elif reason == ConservationReason.CANCELLATION:
            factors.append("client initiated cancellation (harder to save)")

        missed_payment = reason == ConservationReason.LAPSED_PAYMENT

        if has_app and multi_policy and missed_payment:
            outlook = "Good chance of saving"
        elif (has_app or multi_policy) and missed_payment:
            outlook = "Decent chance of saving"
        elif missed_payment:
            outlook = "Worth reaching out"
        elif has_app or multi_policy:
            outlook = "Uncertain but worth a try"
        else:
            outlook = "Lower chance -- reach out anyway"

        return SaveabilityAssessment(outlook=outlook, factors=factors)
