"""
Step 2: Record Matcher
Finds the client/policy a carrier notice refers to.
"""

from datetime import datetime
from typing import Callable, Optional

from conservation.core.repository import ConservationRepository
from conservation.pipeline.models import ClientMatch, ClientRecord, PolicyRecord
from conservation.utils.time_utils import ensure_utc, utcnow


CHARGEBACK_WINDOW_DAYS = 365


def _normalize(value: Optional[str]) -> str:
    return (value or "").lower().strip()


def is_chargeback_risk(policy_age: Optional[int]) -> bool:
    """A policy younger than a year may trigger a commission clawback."""
    return policy_age is not None and policy_age < CHARGEBACK_WINDOW_DAYS


class RecordMatcherStep:
    """
    Heuristic matcher over an agent's book.

    Name and policy number are compared with case-insensitive equality or
    substring containment; the first client/policy pair that matches wins.
    False positives and negatives are expected and tolerated downstream.
    """

    def __init__(
        self,
        repository: ConservationRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize with data access and an optional clock for tests."""
        self.repository = repository
        self.clock = clock or utcnow

    def execute(self, agent_id: str, client_name: str, policy_number: str) -> Optional[ClientMatch]:
        """
        Match extracted identity fields to a client and policy.

        Args:
            agent_id: Owning agent
            client_name: Extracted client name ("Unknown" disables name matching)
            policy_number: Extracted policy number ("Unknown" disables number matching)

        Returns:
            ClientMatch, or None when nothing matched
        """
        wanted_name = _normalize(client_name)
        wanted_number = _normalize(policy_number)
        now = self.clock()

        for client in self.repository.list_clients(agent_id):
            stored_name = _normalize(client.name)
            name_match = (
                wanted_name != "unknown"
                and stored_name != ""
                and (
                    stored_name == wanted_name
                    or wanted_name in stored_name
                    or stored_name in wanted_name
                )
            )

            for policy in client.policies:
                stored_number = _normalize(policy.policy_number)
                number_match = (
                    wanted_number != "unknown"
                    and stored_number != ""
                    and wanted_number in stored_number
                )
                if name_match or number_match:
                    return self._build_match(client, policy, client_name, now)

        return None

    def _build_match(
        self,
        client: ClientRecord,
        policy: PolicyRecord,
        extracted_name: str,
        now: datetime,
    ) -> ClientMatch:
        policy_age = None
        created_at = ensure_utc(policy.created_at)
        if created_at is not None:
            policy_age = (now - created_at).days

        return ClientMatch(
            client_id=client.client_id,
            client_name=client.name or extracted_name,
            client_phone=client.phone,
            client_has_app=client.has_app,
            policy_id=policy.policy_id,
            policy_age=policy_age,
            is_chargeback_risk=is_chargeback_risk(policy_age),
            premium_amount=policy.premium_amount,
            policy_type=policy.policy_type,
            coverage_amount=policy.coverage_amount,
            client_policy_count=len(client.policies),
        )
