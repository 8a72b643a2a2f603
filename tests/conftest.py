"""
Pytest configuration and fixtures.
"""

import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from conservation.config import Settings
from conservation.notifications.dispatcher import NotificationDispatcher
from conservation.pipeline.models import (
    AgentProfile,
    AlertStatus,
    ClientRecord,
    ConservationAlert,
    NotificationLogEntry,
    PolicyRecord,
)
from conservation.prompts import EXTRACTION_SYSTEM


NOW = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that tests move forward by hand."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeLLM:
    """
    Stands in for FireworksClient. Extraction calls get `extraction_reply`,
    everything else gets `message_reply`. Either may be an exception to raise.
    """

    def __init__(self, extraction_reply: Any = "", message_reply: Any = ""):
        self.extraction_reply = extraction_reply
        self.message_reply = message_reply
        self.calls: List[Dict[str, Any]] = []

    def generate(self, prompt, system_prompt=None, temperature=0.1, max_tokens=500):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        reply = self.extraction_reply if system_prompt == EXTRACTION_SYSTEM else self.message_reply
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def message_calls(self) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["system_prompt"] != EXTRACTION_SYSTEM]


class FakeRepository:
    """
    In-memory ConservationRepository with the same conditional-update rules.
    """

    def __init__(self):
        self.agents: Dict[str, AgentProfile] = {}
        self.clients: Dict[str, ClientRecord] = {}
        self.alerts: Dict[str, ConservationAlert] = {}
        self.notifications: List[NotificationLogEntry] = []
        self.fail_insert = False

    # Seeding helpers
    def add_agent(self, agent: AgentProfile) -> AgentProfile:
        self.agents[agent.agent_id] = agent
        return agent

    def add_client(self, client: ClientRecord) -> ClientRecord:
        self.clients[client.client_id] = client
        return client

    # Agents
    def list_agents(self) -> List[AgentProfile]:
        return list(self.agents.values())

    def get_agent(self, agent_id: str) -> Optional[AgentProfile]:
        return self.agents.get(agent_id)

    def find_agent_by_email(self, email: str) -> Optional[AgentProfile]:
        for agent in self.agents.values():
            if agent.email and agent.email.lower() == email.lower():
                return agent
        return None

    # Clients
    def list_clients(self, agent_id: str) -> List[ClientRecord]:
        return [c for c in self.clients.values() if c.agent_id == agent_id]

    def get_client(self, agent_id: str, client_id: str) -> Optional[ClientRecord]:
        client = self.clients.get(client_id)
        return client if client and client.agent_id == agent_id else None

    def update_policy_status(self, agent_id, client_id, policy_id, status, expected_status=None) -> bool:
        client = self.get_client(agent_id, client_id)
        if client is None:
            return False
        for policy in client.policies:
            if policy.policy_id == policy_id:
                if expected_status is not None and policy.status != expected_status:
                    return False
                if policy.status == status:
                    return False
                policy.status = status
                return True
        return False

    # Alerts
    def insert_alert(self, alert: ConservationAlert) -> str:
        if self.fail_insert:
            raise RuntimeError("database unavailable")
        self.alerts[alert.alert_id] = alert.model_copy(deep=True)
        return alert.alert_id

    def get_alert(self, agent_id: str, alert_id: str) -> Optional[ConservationAlert]:
        alert = self.alerts.get(alert_id)
        if alert is None or alert.agent_id != agent_id:
            return None
        return alert.model_copy(deep=True)

    def list_alerts(self, agent_id: str, status: AlertStatus) -> List[ConservationAlert]:
        found = [
            a.model_copy(deep=True) for a in self.alerts.values()
            if a.agent_id == agent_id and a.status == AlertStatus(status)
        ]
        return sorted(found, key=lambda a: a.created_at)

    def update_alert(self, agent_id, alert_id, fields, expected_status, append_drip_message=None) -> bool:
        alert = self.alerts.get(alert_id)
        if alert is None or alert.agent_id != agent_id or alert.status != AlertStatus(expected_status):
            return False
        data = alert.model_dump()
        data.update(fields)
        if append_drip_message is not None:
            data["drip_messages"] = data["drip_messages"] + [append_drip_message]
            data["drip_count"] = data["drip_count"] + 1
        self.alerts[alert_id] = ConservationAlert.model_validate(data)
        return True

    # Notifications
    def add_notification(self, entry: NotificationLogEntry) -> str:
        self.notifications.append(entry)
        return str(len(self.notifications))

    def ensure_indexes(self) -> None:
        pass

    def ping(self) -> bool:
        return True


@pytest.fixture
def clock():
    """Controllable clock starting at a fixed instant."""
    return FixedClock()


@pytest.fixture
def settings():
    """Settings that never read the environment's secrets."""
    return Settings(
        _env_file=None,
        fireworks_api_key="test-key",
        identity_jwt_secret="test-identity-secret",
        cron_secret="test-cron-secret",
        llm_retry_delay_seconds=0,
    )


@pytest.fixture
def agent():
    return AgentProfile(
        agent_id="agent-1",
        name="Maria Lopez",
        email="maria@agency.com",
        scheduling_url="https://cal.example.com/maria",
        twilio_phone_number="+15550001111",
    )


@pytest.fixture
def repository(agent, clock):
    """
    Book with two clients:
    John Smith (one whole life policy, 60 days old, phone only) and
    Angela Price (two policies, app installed, oldest written 540 days ago).
    """
    repo = FakeRepository()
    repo.add_agent(agent)
    repo.add_client(ClientRecord(
        client_id="client-john",
        agent_id=agent.agent_id,
        name="John Smith",
        phone="(555) 201-7788",
        policies=[
            PolicyRecord(
                policy_id="pol-john-1",
                policy_number="WL-2024-88123",
                policy_type="Whole Life",
                premium_amount=142.5,
                coverage_amount=250000,
                status="Active",
                created_at=clock() - timedelta(days=60),
            ),
        ],
    ))
    repo.add_client(ClientRecord(
        client_id="client-angela",
        agent_id=agent.agent_id,
        name="Angela Price",
        phone="+15552014455",
        push_token="ExponentPushToken[angela]",
        policies=[
            PolicyRecord(
                policy_id="pol-angela-1",
                policy_number="TL-55102",
                policy_type="Term Life",
                premium_amount=48.0,
                status="Active",
                created_at=clock() - timedelta(days=540),
            ),
            PolicyRecord(
                policy_id="pol-angela-2",
                policy_number="FE-10977",
                policy_type="Final Expense",
                status="Active",
                created_at=None,
            ),
        ],
    ))
    return repo


@pytest.fixture
def push_sender(mocker):
    sender = mocker.MagicMock()
    sender.send.return_value = True
    return sender


@pytest.fixture
def sms_sender(mocker):
    sender = mocker.MagicMock()
    sender.send.return_value = True
    return sender


@pytest.fixture
def dispatcher(push_sender, sms_sender, repository):
    """Real dispatcher over mocked channels and the in-memory log."""
    return NotificationDispatcher(push_sender, sms_sender, repository)


@pytest.fixture
def lapse_notice_john():
    """Carrier lapse notice for a client in the book."""
    return """
From: Policy Services <noreply@carrier.example.com>
Subject: Conservation Notice - Premium Past Due

Agent Notification: The following policy has entered the grace period due to
non-payment of premium.

Insured: John Smith
Policy Number: WL-2024-88123
Carrier: Mutual of Example Life
Amount Due: $142.50
"""


@pytest.fixture
def extraction_john():
    return (
        '{"client_name": "John Smith", "policy_number": "WL-2024-88123", '
        '"carrier": "Mutual of Example Life", "reason": "lapsed_payment", "confidence": "high"}'
    )


@pytest.fixture
def extraction_stranger():
    return (
        '{"client_name": "Robert Unmatched", "policy_number": "ZZ-000", '
        '"carrier": "Other Life Co", "reason": "cancellation", "confidence": "medium"}'
    )
