"""
Tests for the conservation pipeline steps.
"""

import pytest
from datetime import timedelta

from fireworks.client.error import (
    APITimeoutError,
    AuthenticationError as SdkAuthenticationError,
    BadGatewayError,
    InternalServerError,
    InvalidRequestError,
    RateLimitError,
    ServiceUnavailableError,
)
from jose import jwt

from conservation.core.fireworks_client import FireworksClient, is_transient_error
from conservation.core.identity import IdentityVerifier
from conservation.exceptions import AlertStateError, AuthenticationError
from conservation.pipeline.models import (
    AlertStatus,
    ClientMatch,
    ConservationReason,
    ExtractionConfidence,
    OutreachContext,
)
from conservation.pipeline.state_machine import (
    DRIP_STATUSES,
    GRACE_PERIOD,
    STATE_CONFIG,
    can_transition,
    drip_step_for,
    require_transition,
)
from conservation.pipeline.steps import (
    OutreachComposerStep,
    RecordMatcherStep,
    SaveabilityAssessorStep,
    TextExtractorStep,
)
from conservation.prompts import build_outreach_system_prompt, describe_policy_age
from conservation.utils.json_utils import extract_json_object
from tests.conftest import FakeLLM


class TestTextExtractor:
    """Tests for the carrier notice extractor."""

    def test_parses_json_reply(self, lapse_notice_john, extraction_john):
        """Test a well-formed reply is mapped onto the model."""
        llm = FakeLLM(extraction_reply=extraction_john)
        result = TextExtractorStep(llm).execute(lapse_notice_john)

        assert result.client_name == "John Smith"
        assert result.policy_number == "WL-2024-88123"
        assert result.carrier == "Mutual of Example Life"
        assert result.reason == ConservationReason.LAPSED_PAYMENT
        assert result.confidence == ExtractionConfidence.HIGH
        assert result.extraction_failed is False

    def test_raw_text_goes_into_prompt(self, lapse_notice_john, extraction_john):
        """Test the notice is sent with deterministic sampling."""
        llm = FakeLLM(extraction_reply=extraction_john)
        TextExtractorStep(llm).execute(lapse_notice_john)

        assert "WL-2024-88123" in llm.calls[0]["prompt"]
        assert llm.calls[0]["temperature"] == 0.0

    def test_reply_wrapped_in_prose_and_fences(self):
        """Test the first {...} span is found inside chatter."""
        reply = (
            "Sure! Here is the data:\n```json\n"
            '{"clientName": "Ann Lee", "policyNumber": "123", "carrier": "Acme", '
            '"reason": "cancellation", "confidence": "medium"}\n```\nLet me know!'
        )
        result = TextExtractorStep(FakeLLM(extraction_reply=reply)).execute("notice")

        assert result.client_name == "Ann Lee"
        assert result.policy_number == "123"
        assert result.reason == ConservationReason.CANCELLATION

    def test_unparseable_reply_falls_back_to_placeholders(self):
        """Test garbage output yields Unknown/other/low instead of an error."""
        result = TextExtractorStep(FakeLLM(extraction_reply="I could not find anything.")).execute("x")

        assert result.client_name == "Unknown"
        assert result.policy_number == "Unknown"
        assert result.carrier == "Unknown"
        assert result.reason == ConservationReason.OTHER
        assert result.confidence == ExtractionConfidence.LOW
        assert result.extraction_failed is True

    def test_unrecognized_reason_defaults_to_other(self):
        """Test reasons outside the enum become other."""
        reply = '{"client_name": "A B", "policy_number": "1", "carrier": "C", "reason": "death_claim"}'
        result = TextExtractorStep(FakeLLM(extraction_reply=reply)).execute("x")

        assert result.reason == ConservationReason.OTHER
        assert result.confidence == ExtractionConfidence.LOW

    def test_empty_and_null_fields_become_unknown(self):
        """Test blank values never reach the alert."""
        reply = '{"client_name": "", "policy_number": null, "reason": "lapsed_payment"}'
        result = TextExtractorStep(FakeLLM(extraction_reply=reply)).execute("x")

        assert result.client_name == "Unknown"
        assert result.policy_number == "Unknown"
        assert result.carrier == "Unknown"
        assert result.reason == ConservationReason.LAPSED_PAYMENT

    def test_provider_errors_propagate(self):
        """Test the step does not swallow call failures."""
        llm = FakeLLM(extraction_reply=RuntimeError("bad request"))
        with pytest.raises(RuntimeError):
            TextExtractorStep(llm).execute("x")


class TestJsonExtraction:
    """Tests for pulling JSON objects out of LLM replies."""

    def test_returns_none_without_braces(self):
        assert extract_json_object("no json here") is None

    def test_returns_none_for_invalid_json(self):
        assert extract_json_object("{client_name: John}") is None

    def test_normalizes_camel_case_keys(self):
        data = extract_json_object('{"clientName": "x", "Policy Number": "y"}')
        assert data == {"client_name": "x", "policy_number": "y"}


class TestRecordMatcher:
    """Tests for the heuristic client/policy matcher."""

    def test_name_match_is_case_and_whitespace_insensitive(self, repository, clock):
        """Test "  JOHN smith " matches the stored "John Smith"."""
        match = RecordMatcherStep(repository, clock).execute("agent-1", "  JOHN smith ", "Unknown")

        assert match is not None
        assert match.client_id == "client-john"
        assert match.policy_id == "pol-john-1"

    def test_name_containment_both_directions(self, repository, clock):
        """Test partial and longer names still match."""
        matcher = RecordMatcherStep(repository, clock)

        assert matcher.execute("agent-1", "Smith", "Unknown").client_id == "client-john"
        assert matcher.execute("agent-1", "Mr. John Smith Jr.", "Unknown").client_id == "client-john"

    def test_policy_number_match_without_name(self, repository, clock):
        """Test the policy number alone finds the right policy."""
        match = RecordMatcherStep(repository, clock).execute("agent-1", "Unknown", "fe-10977")

        assert match.client_id == "client-angela"
        assert match.policy_id == "pol-angela-2"

    def test_partial_policy_number_is_contained_in_stored(self, repository, clock):
        """Test a truncated number on the notice still matches."""
        match = RecordMatcherStep(repository, clock).execute("agent-1", "Unknown", "88123")
        assert match.policy_id == "pol-john-1"

    def test_unknown_policy_number_skips_number_matching(self, repository, clock):
        """Test "UNKNOWN" never matches a stored number containing it."""
        repository.clients["client-john"].policies[0].policy_number = "XUNKNOWNX"
        match = RecordMatcherStep(repository, clock).execute("agent-1", "Unknown", "UNKNOWN")
        assert match is None

    def test_name_match_uses_first_policy(self, repository, clock):
        """Test a name-only match falls back to the first stored policy."""
        match = RecordMatcherStep(repository, clock).execute("agent-1", "Angela Price", "NOPE-1")

        assert match.policy_id == "pol-angela-1"
        assert match.client_policy_count == 2
        assert match.client_has_app is True

    def test_no_match_returns_none(self, repository, clock):
        match = RecordMatcherStep(repository, clock).execute("agent-1", "Robert Unmatched", "ZZ-000")
        assert match is None

    def test_other_agents_clients_are_not_searched(self, repository, clock):
        match = RecordMatcherStep(repository, clock).execute("agent-2", "John Smith", "WL-2024-88123")
        assert match is None

    def test_policy_age_and_chargeback_risk(self, repository, clock):
        """Test a 60-day-old policy is a chargeback risk."""
        match = RecordMatcherStep(repository, clock).execute("agent-1", "John Smith", "Unknown")

        assert match.policy_age == 60
        assert match.is_chargeback_risk is True
        assert match.premium_amount == 142.5
        assert match.coverage_amount == 250000

    def test_old_policy_is_not_chargeback_risk(self, repository, clock):
        match = RecordMatcherStep(repository, clock).execute("agent-1", "Unknown", "TL-55102")

        assert match.policy_age == 540
        assert match.is_chargeback_risk is False

    def test_unknown_policy_age_is_not_chargeback_risk(self, repository, clock):
        """Test a policy without a creation date is never flagged."""
        match = RecordMatcherStep(repository, clock).execute("agent-1", "Unknown", "FE-10977")

        assert match.policy_age is None
        assert match.is_chargeback_risk is False

    def test_chargeback_boundary_at_365_days(self, repository, clock):
        """Test 364 days is a risk and 365 days is not."""
        policy = repository.clients["client-john"].policies[0]
        matcher = RecordMatcherStep(repository, clock)

        policy.created_at = clock() - timedelta(days=364)
        assert matcher.execute("agent-1", "John Smith", "Unknown").is_chargeback_risk is True

        policy.created_at = clock() - timedelta(days=365)
        assert matcher.execute("agent-1", "John Smith", "Unknown").is_chargeback_risk is False


class TestSaveabilityAssessor:
    """Tests for the deterministic saveability table."""

    def _match(self, has_app=False, policy_count=1, policy_age=60):
        return ClientMatch(
            client_id="c",
            client_name="Client",
            client_has_app=has_app,
            policy_id="p",
            policy_age=policy_age,
            client_policy_count=policy_count,
        )

    def test_no_match_returns_none(self):
        assert SaveabilityAssessorStep().execute(None, ConservationReason.LAPSED_PAYMENT) is None

    @pytest.mark.parametrize("has_app,policy_count,reason,outlook", [
        (True, 2, ConservationReason.LAPSED_PAYMENT, "Good chance of saving"),
        (True, 1, ConservationReason.LAPSED_PAYMENT, "Decent chance of saving"),
        (False, 3, ConservationReason.LAPSED_PAYMENT, "Decent chance of saving"),
        (False, 1, ConservationReason.LAPSED_PAYMENT, "Worth reaching out"),
        (True, 1, ConservationReason.CANCELLATION, "Uncertain but worth a try"),
        (False, 2, ConservationReason.OTHER, "Uncertain but worth a try"),
        (False, 1, ConservationReason.CANCELLATION, "Lower chance -- reach out anyway"),
    ])
    def test_outlook_table(self, has_app, policy_count, reason, outlook):
        result = SaveabilityAssessorStep().execute(self._match(has_app, policy_count), reason)
        assert result.outlook == outlook

    def test_factors_describe_inputs(self):
        """Test the narrative lists app, relationship, age and reason."""
        result = SaveabilityAssessorStep().execute(
            self._match(has_app=True, policy_count=2, policy_age=60),
            ConservationReason.LAPSED_PAYMENT,
        )

        assert "client has the mobile app installed (direct channel)" in result.factors
        assert "client has 2 total policies (deeper relationship)" in result.factors
        assert "policy is only 2 months old" in result.factors
        assert "reason is a missed payment (often fixable)" in result.factors
        assert result.summary.startswith("Good chance of saving -- ")

    def test_half_months_round_up(self):
        result = SaveabilityAssessorStep().execute(
            self._match(policy_age=75), ConservationReason.LAPSED_PAYMENT
        )
        assert "policy is only 3 months old" in result.factors


class TestOutreachComposer:
    """Tests for the outreach message composer."""

    def _context(self, **overrides):
        data = dict(
            client_first_name="John",
            client_name="John Smith",
            agent_name="Maria Lopez",
            agent_first_name="Maria",
            policy_type="Whole Life",
            policy_age=60,
            reason=ConservationReason.LAPSED_PAYMENT,
            scheduling_url="https://cal.example.com/maria",
            drip_number=0,
        )
        data.update(overrides)
        return OutreachContext(**data)

    def test_returns_trimmed_message(self):
        llm = FakeLLM(message_reply="  Hey John, it's Maria. Quick call this week?  \n")
        message = OutreachComposerStep(llm).execute(self._context())
        assert message == "Hey John, it's Maria. Quick call this week?"

    def test_empty_reply_returns_empty_string(self):
        assert OutreachComposerStep(FakeLLM(message_reply="")).execute(self._context()) == ""

    def test_prompt_is_personalized_per_drip_stage(self):
        """Test the system prompt carries names, reason tone and drip guidance."""
        prompt = build_outreach_system_prompt(self._context(drip_number=3))

        assert "Maria Lopez" in prompt
        assert "John" in prompt
        assert "missed/lapsed premium payment" in prompt
        assert "FINAL follow-up" in prompt
        assert "https://cal.example.com/maria" in prompt

    def test_drip_number_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            self._context(drip_number=4)

    @pytest.mark.parametrize("age,expected", [
        (None, "recently"),
        (10, "less than a month ago"),
        (60, "a few months ago"),
        (200, "about 7 months ago"),
        (135, "about 5 months ago"),
        (400, "over a year ago"),
    ])
    def test_policy_age_phrasing(self, age, expected):
        assert describe_policy_age(age) == expected


class TestStateMachine:
    """Tests for the alert status progression."""

    def test_every_status_is_configured(self):
        assert set(STATE_CONFIG) == set(AlertStatus)

    def test_drip_chain(self):
        """Test the day 2 / day 5 / day 7 cadence."""
        assert DRIP_STATUSES == (AlertStatus.OUTREACH_SENT, AlertStatus.DRIP_1, AlertStatus.DRIP_2)

        first = drip_step_for(AlertStatus.OUTREACH_SENT)
        assert (first.delay, first.drip_number, first.next_status) == (
            timedelta(days=2), 1, AlertStatus.DRIP_1
        )
        second = drip_step_for(AlertStatus.DRIP_1)
        assert (second.delay, second.drip_number, second.next_status) == (
            timedelta(days=3), 2, AlertStatus.DRIP_2
        )
        third = drip_step_for(AlertStatus.DRIP_2)
        assert (third.delay, third.drip_number, third.next_status) == (
            timedelta(days=2), 3, AlertStatus.DRIP_3
        )

    def test_drip_3_and_resolved_states_have_no_drip(self):
        for status in (AlertStatus.DRIP_3, AlertStatus.SAVED, AlertStatus.LOST):
            assert drip_step_for(status) is None

    def test_resolved_states_are_terminal(self):
        for target in AlertStatus:
            assert not can_transition(AlertStatus.SAVED, target)
            assert not can_transition(AlertStatus.LOST, target)

    def test_require_transition_raises(self):
        with pytest.raises(AlertStateError):
            require_transition(AlertStatus.DRIP_3, AlertStatus.DRIP_1)

    def test_grace_period_is_two_hours(self):
        assert GRACE_PERIOD == timedelta(hours=2)


class ProviderStatusError(Exception):
    """Provider error carrying an HTTP status."""

    def __init__(self, status_code):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


class TestFireworksClient:
    """Tests for the retrying generative-text wrapper."""

    def _client(self, settings, mocker, side_effect):
        sdk = mocker.MagicMock()
        sdk.chat.completions.create.side_effect = side_effect
        return FireworksClient(settings, client=sdk), sdk

    def _reply(self, mocker, content):
        response = mocker.MagicMock()
        response.choices = [mocker.MagicMock()]
        response.choices[0].message.content = content
        return response

    def test_returns_stripped_text(self, settings, mocker):
        client, sdk = self._client(settings, mocker, [self._reply(mocker, "  hello \n")])

        assert client.generate("prompt", system_prompt="system") == "hello"
        messages = sdk.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "system"}

    def test_retries_transient_errors(self, settings, mocker):
        client, sdk = self._client(
            settings, mocker, [RateLimitError("429 too many requests"), self._reply(mocker, "ok")]
        )

        assert client.generate("prompt") == "ok"
        assert sdk.chat.completions.create.call_count == 2

    def test_gives_up_after_retry_budget(self, settings, mocker):
        client, sdk = self._client(
            settings, mocker, [ServiceUnavailableError("503"), InternalServerError("500")]
        )

        with pytest.raises(InternalServerError):
            client.generate("prompt")
        assert sdk.chat.completions.create.call_count == settings.llm_max_attempts

    def test_non_transient_error_is_not_retried(self, settings, mocker):
        client, sdk = self._client(settings, mocker, [InvalidRequestError("bad model")])

        with pytest.raises(InvalidRequestError):
            client.generate("prompt")
        assert sdk.chat.completions.create.call_count == 1

    def test_no_choices_is_empty_string(self, settings, mocker):
        response = mocker.MagicMock()
        response.choices = []
        client, _ = self._client(settings, mocker, [response])

        assert client.generate("prompt") == ""

    @pytest.mark.parametrize("error,expected", [
        (RateLimitError("429"), True),
        (InternalServerError("500"), True),
        (ServiceUnavailableError("503"), True),
        (BadGatewayError("502"), True),
        (APITimeoutError("timed out"), True),
        (SdkAuthenticationError("bad key"), False),
        (ProviderStatusError(429), True),
        (ProviderStatusError(503), True),
        (ConnectionError("reset"), True),
        (ProviderStatusError(401), False),
        (ValueError("bad input"), False),
    ])
    def test_transient_classification(self, error, expected):
        assert is_transient_error(error) is expected


class TestIdentityVerifier:
    """Tests for agent identity tokens."""

    def test_valid_token(self, settings):
        token = jwt.encode({"sub": "agent-1"}, settings.identity_jwt_secret, algorithm="HS256")
        assert IdentityVerifier(settings).verify(token) == "agent-1"

    def test_uid_claim(self, settings):
        token = jwt.encode({"uid": "agent-9"}, settings.identity_jwt_secret, algorithm="HS256")
        assert IdentityVerifier(settings).verify(token) == "agent-9"

    @pytest.mark.parametrize("token", [None, "", "garbage"])
    def test_rejected(self, settings, token):
        with pytest.raises(AuthenticationError):
            IdentityVerifier(settings).verify(token)

    def test_wrong_secret(self, settings):
        token = jwt.encode({"sub": "agent-1"}, "other-secret", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            IdentityVerifier(settings).verify(token)
