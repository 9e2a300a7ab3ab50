"""Business logic services for the stand-up bot."""

from .commands import (
    CommandType,
    MentionCommand,
    UserCommand,
    classify_direct_message,
    parse_mention_command,
    parse_user_command,
)
from .errors import (
    ConfigurationError,
    InvalidTickError,
    NotificationError,
    StandupError,
    TeamNotFoundError,
)
from .events import StandupEventHandler
from .notification_sink import NotificationSink, SlackNotificationSink, SlackSinkFactory
from .posting import PostingOrchestrator, PostingResult, ReminderResult
from .scheduler import ReminderScheduler
from .status import StatusEngine, SubmissionStatus
from .submissions import SubmissionAggregator
from .teams import InstallationInput, TeamConfigInput, TeamDirectory

__all__ = [
    # Core engine
    "SubmissionAggregator",
    "StatusEngine",
    "SubmissionStatus",
    "ReminderScheduler",
    "PostingOrchestrator",
    "PostingResult",
    "ReminderResult",
    # Teams
    "TeamDirectory",
    "InstallationInput",
    "TeamConfigInput",
    # Inbound
    "StandupEventHandler",
    "CommandType",
    "MentionCommand",
    "UserCommand",
    "parse_user_command",
    "classify_direct_message",
    "parse_mention_command",
    # Outbound
    "NotificationSink",
    "SlackNotificationSink",
    "SlackSinkFactory",
    # Errors
    "StandupError",
    "TeamNotFoundError",
    "ConfigurationError",
    "InvalidTickError",
    "NotificationError",
]
