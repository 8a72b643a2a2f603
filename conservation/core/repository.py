"""
MongoDB persistence for agents, clients, alerts and the notification log.

Documents are scoped by agent id. Alert transitions are conditional updates
keyed on the status the caller last read, so two overlapping sweeps cannot
both advance the same alert.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from pymongo import ASCENDING
from pymongo.database import Database

from conservation.core.mongodb_client import Collections, get_database
from conservation.pipeline.models import (
    AgentProfile,
    AlertStatus,
    ClientRecord,
    ConservationAlert,
    DEFAULT_AGENT_NAME,
    NotificationLogEntry,
    PolicyRecord,
)


logger = logging.getLogger(__name__)


def _to_document(model: BaseModel, exclude: Optional[set] = None) -> Dict[str, Any]:
    """Dump a model for storage, replacing enum members by their values."""
    doc = model.model_dump(exclude=exclude)
    return {k: v.value if isinstance(v, Enum) else v for k, v in doc.items()}


def _plain(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v.value if isinstance(v, Enum) else v for k, v in fields.items()}


def new_id() -> str:
    return uuid.uuid4().hex


class ConservationRepository:
    """
    Data access for the conservation workflow.
    """

    def __init__(self, database: Optional[Database] = None):
        """
        Initialize with a database handle.

        Args:
            database: pymongo Database (uses the configured database if not provided)
        """
        self.db = database if database is not None else get_database()

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    def _agent_from_doc(self, doc: Dict[str, Any]) -> AgentProfile:
        return AgentProfile(
            agent_id=str(doc["_id"]),
            name=doc.get("name") or DEFAULT_AGENT_NAME,
            email=doc.get("email"),
            scheduling_url=doc.get("scheduling_url") or None,
            twilio_phone_number=doc.get("twilio_phone_number") or None,
        )

    def list_agents(self) -> List[AgentProfile]:
        cursor = self.db[Collections.AGENTS].find({}).sort("_id", ASCENDING)
        return [self._agent_from_doc(doc) for doc in cursor]

    def get_agent(self, agent_id: str) -> Optional[AgentProfile]:
        doc = self.db[Collections.AGENTS].find_one({"_id": agent_id})
        return self._agent_from_doc(doc) if doc else None

    def find_agent_by_email(self, email: str) -> Optional[AgentProfile]:
        doc = self.db[Collections.AGENTS].find_one({"email": email.lower()})
        return self._agent_from_doc(doc) if doc else None

    # ------------------------------------------------------------------
    # Clients and policies
    # ------------------------------------------------------------------

    def _client_from_doc(self, doc: Dict[str, Any]) -> ClientRecord:
        policies = [
            PolicyRecord(
                policy_id=str(p.get("policy_id")),
                policy_number=p.get("policy_number") or None,
                policy_type=p.get("policy_type") or None,
                premium_amount=p.get("premium_amount") or None,
                coverage_amount=p.get("coverage_amount") or None,
                status=p.get("status"),
                created_at=p.get("created_at"),
            )
            for p in doc.get("policies") or []
        ]
        return ClientRecord(
            client_id=str(doc["_id"]),
            agent_id=doc["agent_id"],
            name=doc.get("name") or "",
            phone=doc.get("phone") or None,
            push_token=doc.get("push_token") or None,
            policies=policies,
        )

    def list_clients(self, agent_id: str) -> List[ClientRecord]:
        """All of an agent's clients, in stable `_id` order."""
        cursor = self.db[Collections.CLIENTS].find({"agent_id": agent_id}).sort("_id", ASCENDING)
        return [self._client_from_doc(doc) for doc in cursor]

    def get_client(self, agent_id: str, client_id: str) -> Optional[ClientRecord]:
        doc = self.db[Collections.CLIENTS].find_one({"_id": client_id, "agent_id": agent_id})
        return self._client_from_doc(doc) if doc else None

    def update_policy_status(
        self,
        agent_id: str,
        client_id: str,
        policy_id: str,
        status: str,
        expected_status: Optional[str] = None,
    ) -> bool:
        """
        Set a policy's status, optionally only when it currently equals
        `expected_status`. Returns True when a policy was changed.
        """
        element: Dict[str, Any] = {"policy_id": policy_id}
        if expected_status is not None:
            element["status"] = expected_status

        result = self.db[Collections.CLIENTS].update_one(
            {"_id": client_id, "agent_id": agent_id, "policies": {"$elemMatch": element}},
            {"$set": {"policies.$.status": status}},
        )
        return result.modified_count > 0

    # ------------------------------------------------------------------
    # Conservation alerts
    # ------------------------------------------------------------------

    def _alert_from_doc(self, doc: Dict[str, Any]) -> ConservationAlert:
        data = dict(doc)
        data["alert_id"] = str(data.pop("_id"))
        return ConservationAlert.model_validate(data)

    def insert_alert(self, alert: ConservationAlert) -> str:
        doc = _to_document(alert, exclude={"alert_id"})
        doc["_id"] = alert.alert_id
        self.db[Collections.CONSERVATION_ALERTS].insert_one(doc)
        return alert.alert_id

    def get_alert(self, agent_id: str, alert_id: str) -> Optional[ConservationAlert]:
        doc = self.db[Collections.CONSERVATION_ALERTS].find_one(
            {"_id": alert_id, "agent_id": agent_id}
        )
        return self._alert_from_doc(doc) if doc else None

    def list_alerts(self, agent_id: str, status: AlertStatus) -> List[ConservationAlert]:
        cursor = self.db[Collections.CONSERVATION_ALERTS].find(
            {"agent_id": agent_id, "status": AlertStatus(status).value}
        ).sort("created_at", ASCENDING)
        return [self._alert_from_doc(doc) for doc in cursor]

    def update_alert(
        self,
        agent_id: str,
        alert_id: str,
        fields: Dict[str, Any],
        expected_status: AlertStatus,
        append_drip_message: Optional[str] = None,
    ) -> bool:
        """
        Apply `fields` only if the alert is still in `expected_status`.

        When `append_drip_message` is given, the message is pushed onto
        drip_messages and drip_count is incremented in the same write.
        Returns False when the alert moved on (or vanished) in the meantime.
        """
        update: Dict[str, Any] = {"$set": _plain(fields)}
        if append_drip_message is not None:
            update["$push"] = {"drip_messages": append_drip_message}
            update["$inc"] = {"drip_count": 1}

        result = self.db[Collections.CONSERVATION_ALERTS].update_one(
            {
                "_id": alert_id,
                "agent_id": agent_id,
                "status": AlertStatus(expected_status).value,
            },
            update,
        )
        if result.matched_count == 0:
            logger.warning(
                f"Alert {alert_id} was no longer {AlertStatus(expected_status).value}; update skipped"
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Notification log
    # ------------------------------------------------------------------

    def add_notification(self, entry: NotificationLogEntry) -> str:
        doc = _to_document(entry)
        doc["_id"] = new_id()
        self.db[Collections.NOTIFICATIONS].insert_one(doc)
        return doc["_id"]

    def ensure_indexes(self) -> None:
        """Create the indexes the sweep and the inbound webhook rely on."""
        self.db[Collections.AGENTS].create_index("email")
        self.db[Collections.CLIENTS].create_index("agent_id")
        self.db[Collections.CONSERVATION_ALERTS].create_index(
            [("agent_id", ASCENDING), ("status", ASCENDING)]
        )
        self.db[Collections.NOTIFICATIONS].create_index(
            [("agent_id", ASCENDING), ("client_id", ASCENDING)]
        )

    def ping(self) -> bool:
        """Round-trip to the server; raises if it is unreachable."""
        self.db.command("ping")
        return True
