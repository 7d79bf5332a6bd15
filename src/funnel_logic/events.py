"""
Analytics events and answer records emitted by a session.

The engine hands these to sinks after each navigation decision has been
computed. Sinks are fire-and-forget from the engine's point of view:
delivery, batching and retries belong to the sink implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class EventType(Enum):
    FUNNEL_START = "funnel_start"
    PAGE_VIEW = "page_view"
    PAGE_COMPLETE = "page_complete"
    QUESTION_ANSWER = "question_answer"
    FUNNEL_COMPLETE = "funnel_complete"


@dataclass(frozen=True)
class Event:
    """
    A single analytics event.

    Properties:
        type: EventType
        funnel_id, funnel_version: Definition the session runs against
        session_id, visitor_id: Respondent identifiers
        timestamp: When the event happened
        page_id, page_name, page_depth, from_page_id: Page events only
        block_id, block_type: question_answer only
        duration: Seconds spent on the page (page_complete, question_answer)
    """

    type: EventType
    funnel_id: str
    funnel_version: int
    session_id: str
    visitor_id: str
    timestamp: datetime
    page_id: Optional[str] = None
    page_name: Optional[str] = None
    page_depth: Optional[int] = None
    from_page_id: Optional[str] = None
    block_id: Optional[str] = None
    block_type: Optional[str] = None
    duration: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["timestamp"] = self.timestamp.isoformat()
        return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class AnswerRecord:
    """One answer to persist: which block, what value, time spent on its page."""

    session_id: str
    page_id: str
    block_id: str
    value: Any
    duration: float


class EventSink(ABC):
    @abstractmethod
    def emit(self, event: Event) -> None:
        ...


class AnswerSink(ABC):
    @abstractmethod
    def record(self, answers: Sequence[AnswerRecord]) -> None:
        ...


class NullSink(EventSink, AnswerSink):
    """Discards everything."""

    def emit(self, event: Event) -> None:
        pass

    def record(self, answers: Sequence[AnswerRecord]) -> None:
        pass


class CollectingSink(EventSink, AnswerSink):
    """Keeps events and answers in memory, in emission order."""

    def __init__(self):
        self.events: List[Event] = []
        self.answers: List[AnswerRecord] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)

    def record(self, answers: Sequence[AnswerRecord]) -> None:
        self.answers.extend(answers)

    def of_type(self, event_type: EventType) -> List[Event]:
        return [event for event in self.events if event.type is event_type]
