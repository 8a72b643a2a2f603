"""
Step 3: Outreach Composer
Writes the personalized text message in the agent's voice.
"""

from conservation.core.fireworks_client import FireworksClient
from conservation.prompts import OUTREACH_PROMPT, build_outreach_system_prompt
from conservation.pipeline.models import OutreachContext


class OutreachComposerStep:
    """
    Generates a short SMS for the initial outreach or one of the three
    follow-ups. Tone adapts to the reason and the drip stage.
    """

    def __init__(self, llm_client: FireworksClient):
        """Initialize with LLM client."""
        self.llm_client = llm_client

    def execute(self, context: OutreachContext) -> str:
        """
        Compose one outreach message.

        Args:
            context: Client, agent, policy and drip-stage details

        Returns:
            Message text, or "" if the model returned nothing
        """
        message = self.llm_client.generate(
            prompt=OUTREACH_PROMPT,
            system_prompt=build_outreach_system_prompt(context),
            temperature=0.7,
            max_tokens=250,
        )
        return (message or "").strip()
