"""
User-facing notification sinks

Mutation call sites report success or failure here; the core never queues or
retries messages, it only hands them to the sink.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Protocol
import structlog

logger = structlog.get_logger(__name__)


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class UserNotice:
    level: NoticeLevel
    title: str
    description: str


class Notifier(Protocol):
    def notify(self, notice: UserNotice) -> None:
        ...


class LogNotifier:
    """Sink that only writes notices to the structured log"""

    def notify(self, notice: UserNotice) -> None:
        log = logger.error if notice.level == NoticeLevel.ERROR else logger.info
        log("user_notice", level=notice.level.value, title=notice.title, description=notice.description)


class CollectingNotifier(LogNotifier):
    """Sink that keeps the notices of one request so they can be returned to the client"""

    def __init__(self):
        self.notices: List[UserNotice] = []

    def notify(self, notice: UserNotice) -> None:
        super().notify(notice)
        self.notices.append(notice)


def success(notifier: Notifier, title: str, description: str) -> None:
    notifier.notify(UserNotice(NoticeLevel.SUCCESS, title, description))


def failure(notifier: Notifier, title: str, description: str) -> None:
    notifier.notify(UserNotice(NoticeLevel.ERROR, title, description))
