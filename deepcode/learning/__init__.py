"""Codebase-learning pipeline: sampling, interpretation and orchestration."""

from .interpreter import ResponseInterpreter
from .orchestrator import LearningInProgressError, LearningOrchestrator
from .sampler import SampleSelector
from .status import ChannelMessage, StatusBoard

__all__ = [
    "ChannelMessage",
    "LearningInProgressError",
    "LearningOrchestrator",
    "ResponseInterpreter",
    "SampleSelector",
    "StatusBoard",
]
