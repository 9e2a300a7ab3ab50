"""
Command parsing for direct messages and channel mentions.

Both parsers are pure. A direct message is either one of the user
commands or a stand-up submission; a mention is one of the channel
commands or unknown.
"""

import re
from dataclasses import dataclass
from enum import Enum


class CommandType(str, Enum):
    SUBMIT = "submit"
    SKIP = "skip"
    VACATION = "vacation"
    DONE = "done"
    HELP = "help"
    STATUS = "status"


class MentionCommand(str, Enum):
    STATUS = "status"
    HELP = "help"
    CONFIG = "config"
    DEMO_REMINDER = "demo_reminder"
    DEMO_STANDUPS = "demo_standups"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class UserCommand:
    """A parsed direct message. ``date`` is set for vacation, ``text`` for submit."""
    type: CommandType
    date: str | None = None
    text: str | None = None


_VACATION_RE = re.compile(r"vacation\s+until\s+(\d{4}-\d{2}-\d{2})")
_MENTION_RE = re.compile(r"<@[A-Z0-9]+(\|[^>]*)?>", re.IGNORECASE)


def parse_user_command(text: str) -> UserCommand | None:
    """
    Recognise a user command, or return None for free text.

    Matching is case-insensitive on the trimmed text. The vacation date is
    captured as written; calendar validity is checked by the handler.
    """
    trimmed = text.strip().lower()

    if trimmed in ("skip", "skip today"):
        return UserCommand(CommandType.SKIP)
    if trimmed == "done":
        return UserCommand(CommandType.DONE)
    if trimmed in ("help", "?"):
        return UserCommand(CommandType.HELP)
    if trimmed == "status":
        return UserCommand(CommandType.STATUS)

    match = _VACATION_RE.search(trimmed)
    if match:
        return UserCommand(CommandType.VACATION, date=match.group(1))

    return None


def classify_direct_message(text: str) -> UserCommand:
    """Every DM is a command or, failing that, a submission."""
    return parse_user_command(text) or UserCommand(CommandType.SUBMIT, text=text.strip())


def parse_mention_command(text: str) -> MentionCommand:
    command = _MENTION_RE.sub("", text).strip().lower()

    if command in ("", "status"):
        return MentionCommand.STATUS
    if command == "help":
        return MentionCommand.HELP
    if command.startswith("config"):
        return MentionCommand.CONFIG
    if command in ("demo reminder", "demo reminders"):
        return MentionCommand.DEMO_REMINDER
    if command in ("demo standup", "demo standups"):
        return MentionCommand.DEMO_STANDUPS
    return MentionCommand.UNKNOWN
