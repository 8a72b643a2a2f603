"""
Pipeline steps for the conservation workflow.
Each step is a self-contained module that performs a specific task.
"""

from .text_extractor import TextExtractorStep
from .record_matcher import RecordMatcherStep
from .outreach_composer import OutreachComposerStep
from .saveability import SaveabilityAssessorStep

__all__ = [
    "TextExtractorStep",
    "RecordMatcherStep",
    "OutreachComposerStep",
    "SaveabilityAssessorStep",
]
