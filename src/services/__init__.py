"""Services that route issue events and wire the pipeline together."""

from src.services.issue_events import EventResult, IgnoredEvent, IssueEventHandler
from src.services.pipeline import Pipeline

__all__ = ["EventResult", "IgnoredEvent", "IssueEventHandler", "Pipeline"]
