"""Plain mrkdwn text for everything the bot says."""

from datetime import date

from ..models import Team
from .status import SubmissionStatus
from .timeclock import format_clock, format_day


def mention(user_id: str) -> str:
    return f"<@{user_id}>"


def mention_list(user_ids: list[str]) -> str:
    return ", ".join(mention(u) for u in user_ids)


class StandupMessages:
    """Factory for the bot's message texts."""

    REMINDER = "Hey! 👋 Time for your stand-up. Just reply here with what you worked on today! 📝"
    DEMO_PREFIX = "🧪 *[DEMO]* "
    ACK = "Got it! ✅"
    NOT_CONFIGURED = (
        "Sorry, this workspace is not properly configured. "
        "Please reinstall the app or contact your admin."
    )
    NO_CHANNEL = (
        "⚠️ No stand-up channel configured. "
        "Please set one before running the stand-up flows."
    )
    SOMETHING_WENT_WRONG = "Sorry, something went wrong on my side. Please try again in a minute."
    ROSTER_UNAVAILABLE = (
        "❌ I couldn't read the stand-up channel's members. "
        "Make sure I'm invited to it, then try again."
    )
    UNKNOWN_MENTION = (
        "I didn't understand that command. "
        "Try `@SUPS status` or `@SUPS help` for available commands."
    )

    @staticmethod
    def summary_header(day: date) -> str:
        return f"📅 *Stand-ups for {format_day(day)}*"

    @staticmethod
    def no_submissions(day: date) -> str:
        return f"📅 *Stand-ups for {format_day(day)}*\n\n_No stand-ups submitted today._"

    @staticmethod
    def user_update(user_id: str, merged: str, late: bool) -> str:
        late_tag = " _(late)_" if late else ""
        return f"*{mention(user_id)}*{late_tag}:\n{merged}"

    @staticmethod
    def waiting_on(missing: list[str]) -> str:
        return f"⏰ *Waiting on:* {mention_list(missing)}"

    @staticmethod
    def skip_ack() -> str:
        return "Got it! I'll mark you as skipping today's stand-up. 👍"

    @staticmethod
    def vacation_ack(until: str) -> str:
        return (
            f"Got it! You're set as on vacation until {until}. "
            "I won't send you reminders until then. 🏖️"
        )

    @staticmethod
    def vacation_invalid(until: str) -> str:
        return f"Hmm, {until} isn't a date I recognise. Use `vacation until YYYY-MM-DD`."

    @staticmethod
    def done_ack(message_count: int) -> str:
        if message_count == 0:
            return "You haven't sent anything today yet. Just DM me your update!"
        plural = "message" if message_count == 1 else "messages"
        return (
            f"Thanks! You've sent {message_count} {plural} today. "
            "They'll be posted together at the deadline."
        )

    @staticmethod
    def own_status(message_count: int, deadline: str) -> str:
        if message_count == 0:
            return f"You haven't submitted today. The deadline is {format_clock(deadline)}."
        plural = "message" if message_count == 1 else "messages"
        return (
            f"✅ You've submitted {message_count} {plural} today. "
            f"They'll be posted at {format_clock(deadline)}."
        )

    @staticmethod
    def dm_help() -> str:
        return (
            "*SUPS - Stand-up Bot Help* 📝\n\n"
            "*How to submit your stand-up:*\n"
            "Just send me a DM with your update! You can send multiple messages "
            "throughout the day - I'll combine them into one update.\n\n"
            "*Commands:*\n"
            "• `skip` or `skip today` - Skip today's stand-up\n"
            "• `done` - Check what you've sent today\n"
            "• `vacation until YYYY-MM-DD` - Set vacation mode\n"
            "• `status` - Check your submission status\n"
            "• `help` or `?` - Show this help message\n\n"
            "*Tips:*\n"
            "• Send updates anytime before the deadline\n"
            "• Multiple messages are combined automatically\n"
            "• Late submissions are marked but still accepted"
        )

    @staticmethod
    def channel_help() -> str:
        return (
            "*📝 SUPS - Stand-up Bot*\n\n"
            "*Channel Commands:*\n"
            "• `@SUPS status` - Show submission status for today\n"
            "• `@SUPS help` - Show this help message\n"
            "• `@SUPS config` - Show the current configuration\n"
            "• `@SUPS demo reminder` - 🧪 Test: Send reminders now\n"
            "• `@SUPS demo standups` - 🧪 Test: Post stand-ups to channel now\n\n"
            "*DM Commands:*\n"
            "Send a direct message to submit your stand-up!\n"
            "• `skip` - Skip today's stand-up\n"
            "• `vacation until YYYY-MM-DD` - Set vacation mode"
        )

    @staticmethod
    def config(team: Team) -> str:
        channel = f"<#{team.standup_channel_id}>" if team.standup_channel_id else "_not set_"
        return (
            "*⚙️ Stand-up configuration*\n"
            f"• Channel: {channel}\n"
            f"• Reminder: {format_clock(team.reminder_time)}\n"
            f"• Deadline: {format_clock(team.deadline_time)}\n"
            f"• Timezone: {team.timezone}"
        )

    @staticmethod
    def team_status(day: date, status: SubmissionStatus, missing: list[str]) -> str:
        lines = [f"*📊 Stand-up Status - {format_day(day)}*"]

        on_time = status.on_time_users
        if on_time:
            lines.append(f"✅ *Submitted:* {mention_list(on_time)}")
        if status.late_users:
            lines.append(f"🕐 *Submitted Late:* {mention_list(status.late_users)}")
        if missing:
            lines.append(f"❌ *Missing:* {mention_list(missing)}")

        total = len(status.submitted_users) + len(missing)
        if total > 0:
            lines.append(f"_{len(status.submitted_users)}/{total} submitted_")
        else:
            lines.append("_No stand-ups submitted yet today._")
        return "\n".join(lines)

    @staticmethod
    def demo_reminders_sent(sent: list[str]) -> str:
        if not sent:
            return "✅ Everyone has already submitted! No reminders needed."
        return f"✅ Demo reminders sent to {len(sent)} users: {mention_list(sent)}"

    @staticmethod
    def demo_posted(user_count: int, channel_id: str) -> str:
        if user_count == 0:
            return "📭 No stand-ups submitted today. DM me with your update first, then try again!"
        return f"✅ Posted {user_count} stand-up(s) to <#{channel_id}>!"
