"""
Background processing for summarization triggers.
"""

from .worker import PairTrigger, SummarizationWorker, TriggerJob

__all__ = ["PairTrigger", "SummarizationWorker", "TriggerJob"]
