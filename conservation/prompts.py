"""
Centralized LLM prompts for the conservation pipeline.
All prompts are defined here for easy maintenance and consistency.
"""

from typing import Optional

from conservation.pipeline.models import ConservationReason, OutreachContext
from conservation.utils.time_utils import months_from_days


# Step 1: Carrier notice extraction
EXTRACTION_SYSTEM = """You extract structured data from insurance carrier conservation opportunity notifications. These come from carrier emails or portal pages and indicate a client's policy has lapsed, had a missed payment, or been canceled.

Extract the following fields. Return ONLY a JSON object, no other text:
{
  "client_name": "full name of the policyholder/insured",
  "policy_number": "policy number (may be partial or formatted differently)",
  "carrier": "insurance company name",
  "reason": "lapsed_payment" | "cancellation" | "other",
  "confidence": "high" | "medium" | "low"
}

Rules:
- For reason: use "lapsed_payment" if it mentions missed payment, non-payment, lapse, NSF, or premium due. Use "cancellation" if it mentions cancellation, surrender, or termination by the client. Use "other" if unclear.
- For confidence: "high" if all 4 fields are clearly present, "medium" if 1 field required inference, "low" if 2+ fields are uncertain.
- If a field is genuinely missing from the text, use your best guess or "Unknown" for strings.
- Policy numbers may appear in various formats: with dashes, spaces, or prefixes. Include the full number as shown."""

EXTRACTION_PROMPT = """Extract conservation alert data from this carrier notification:

{raw_text}"""


# Step 3: Outreach message
OUTREACH_PROMPT = "Write the text message."

OUTREACH_SYSTEM = """You are writing an SMS/text message as {agent_name}, an insurance agent, to their client {client_first_name}. You ARE {agent_first_name}. Never reveal you are AI.

SITUATION:
- {client_first_name}'s {policy_type} policy is at risk.
- Reason: {reason_description}.
- The policy was written {policy_age_description}.
{amount_lines}
TONE GUIDANCE:
- {reason_tone}
- {drip_guidance}
- {scheduling_note}

RULES:
- Keep it 1-3 sentences. This is SMS.
- Sound like a real person texting, not a form letter.
- No emojis except one max if natural.
- No markdown, no bullet points. Plain conversational text.
- Never mention specific policy numbers or internal jargon.
- Sign off naturally as {agent_first_name} if it fits."""

REASON_DESCRIPTIONS = {
    ConservationReason.LAPSED_PAYMENT: "missed/lapsed premium payment",
    ConservationReason.CANCELLATION: "policy cancellation request",
    ConservationReason.OTHER: "policy issue",
}

REASON_TONES = {
    ConservationReason.LAPSED_PAYMENT: (
        "Be helpful and understanding. Missed payments happen. Focus on how easy it is to fix."
    ),
    ConservationReason.CANCELLATION: (
        "Be understanding and curious. Something may have changed. Focus on exploring options."
    ),
    ConservationReason.OTHER: "Be warm and check in.",
}

# Keyed by drip number: 0 = initial, then day 2, day 5, day 7
DRIP_GUIDANCE = {
    0: "This is the INITIAL outreach. Be warm, helpful, no pressure.",
    1: (
        "This is follow-up #1 (day 2). Slightly more direct, show you care. "
        "Take a different angle than the initial message."
    ),
    2: (
        "This is follow-up #2 (day 5). Gently remind them what they stand to lose "
        "(coverage amount, beneficiary protection). Still respectful."
    ),
    3: "This is the FINAL follow-up (day 7). Gracious, leave the door open, no more messages after this.",
}


def describe_policy_age(policy_age: Optional[int]) -> str:
    """Human phrasing for how long ago the policy was written."""
    if not policy_age:
        return "recently"
    if policy_age < 30:
        return "less than a month ago"
    if policy_age < 90:
        return "a few months ago"
    if policy_age < 365:
        return f"about {months_from_days(policy_age)} months ago"
    return "over a year ago"


def _format_amount(value: float) -> str:
    return f"{value:,.0f}" if float(value).is_integer() else f"{value:,.2f}"


def build_outreach_system_prompt(ctx: OutreachContext) -> str:
    """Fill the outreach instructions for one client, agent and drip stage."""
    amount_lines = ""
    if ctx.premium_amount:
        amount_lines += f"- Premium: ${_format_amount(ctx.premium_amount)}/month.\n"
    if ctx.coverage_amount:
        amount_lines += f"- Coverage: ${_format_amount(ctx.coverage_amount)}.\n"

    if ctx.scheduling_url:
        scheduling_note = (
            f"The agent has a scheduling URL: {ctx.scheduling_url}. "
            "If it feels natural, mention they can book a quick call."
        )
    else:
        scheduling_note = (
            "The agent does not have a scheduling link. Offer to chat or take a call instead."
        )

    return OUTREACH_SYSTEM.format(
        agent_name=ctx.agent_name,
        agent_first_name=ctx.agent_first_name,
        client_first_name=ctx.client_first_name,
        policy_type=ctx.policy_type or "insurance",
        reason_description=REASON_DESCRIPTIONS[ctx.reason],
        policy_age_description=describe_policy_age(ctx.policy_age),
        amount_lines=amount_lines,
        reason_tone=REASON_TONES[ctx.reason],
        drip_guidance=DRIP_GUIDANCE[ctx.drip_number],
        scheduling_note=scheduling_note,
    )
