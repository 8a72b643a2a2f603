"""
Wiring of the conservation workflow.
Clients are built once at startup and handed to the components that use them.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from conservation.config import Settings, get_settings
from conservation.core.fireworks_client import FireworksClient
from conservation.core.identity import IdentityVerifier
from conservation.core.repository import ConservationRepository
from conservation.notifications import (
    ConfirmationMailer,
    ExpoPushSender,
    NotificationDispatcher,
    TwilioSmsSender,
    build_twilio_client,
)
from conservation.pipeline.actions import AlertActions
from conservation.pipeline.inbound import InboundEmailProcessor
from conservation.pipeline.orchestrator import AlertOrchestrator
from conservation.pipeline.scheduler import OutreachScheduler
from conservation.pipeline.steps import (
    OutreachComposerStep,
    RecordMatcherStep,
    SaveabilityAssessorStep,
    TextExtractorStep,
)
from conservation.utils.time_utils import utcnow


logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler or CLI command needs."""
    settings: Settings
    repository: ConservationRepository
    identity: IdentityVerifier
    orchestrator: AlertOrchestrator
    scheduler: OutreachScheduler
    actions: AlertActions
    inbound: InboundEmailProcessor


def build_services(
    settings: Optional[Settings] = None,
    repository: Optional[ConservationRepository] = None,
    llm_client: Optional[FireworksClient] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    mailer: Optional[ConfirmationMailer] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Services:
    """
    Build the service graph.

    Args:
        settings: Application settings (uses cached settings if not provided)
        repository: Data access (MongoDB-backed if not provided)
        llm_client: Generative-text client (Fireworks if not provided)
        dispatcher: Push/SMS dispatcher (Expo + Twilio if not provided)
        mailer: Confirmation mailer (Resend if not provided and configured)
        clock: Returns "now"; defaults to the UTC wall clock

    Returns:
        Services container
    """
    settings = settings or get_settings()
    clock = clock or utcnow
    repository = repository or ConservationRepository()
    llm_client = llm_client or FireworksClient(settings)

    if dispatcher is None:
        dispatcher = NotificationDispatcher(
            push_sender=ExpoPushSender(settings),
            sms_sender=TwilioSmsSender(
                build_twilio_client(settings),
                default_from_number=settings.twilio_phone_number,
            ),
            repository=repository,
        )

    if mailer is None and settings.resend_api_key:
        mailer = ConfirmationMailer(settings)
    elif mailer is None:
        logger.warning("RESEND_API_KEY not set; confirmation emails are disabled")

    composer = OutreachComposerStep(llm_client)
    orchestrator = AlertOrchestrator(
        repository=repository,
        extractor=TextExtractorStep(llm_client),
        matcher=RecordMatcherStep(repository, clock=clock),
        composer=composer,
        assessor=SaveabilityAssessorStep(),
        clock=clock,
    )

    return Services(
        settings=settings,
        repository=repository,
        identity=IdentityVerifier(settings),
        orchestrator=orchestrator,
        scheduler=OutreachScheduler(repository, composer, dispatcher, clock=clock),
        actions=AlertActions(repository, dispatcher, clock=clock),
        inbound=InboundEmailProcessor(repository, orchestrator, mailer),
    )
