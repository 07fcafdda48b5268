"""
Notification sinks

Fire-and-forget observers of the session lifecycle. They run after the
transaction commits and a failing sink never affects the operation.
"""
import logging

from models import Outcome

logger = logging.getLogger(__name__)


class NotificationSink:
    """Base sink, every hook is a no-op"""

    def on_session_opened(self, session_id: int, minimum_stake: int, duration_minutes: int, opened_at: int) -> None:
        pass

    def on_bet_placed(self, session_id: int, bettor: str, amount: int, outcome: Outcome) -> None:
        pass

    def on_session_resolved(self, session_id: int, total_count: int, count_a: int, count_b: int, outcome: Outcome) -> None:
        pass


class LoggingNotificationSink(NotificationSink):

    def on_session_opened(self, session_id, minimum_stake, duration_minutes, opened_at):
        logger.info(
            f"Session {session_id} opened: min stake {minimum_stake}, "
            f"{duration_minutes} min from {opened_at}"
        )

    def on_bet_placed(self, session_id, bettor, amount, outcome):
        logger.info(f"Session {session_id}: {bettor} bet {amount} on {outcome.value}")

    def on_session_resolved(self, session_id, total_count, count_a, count_b, outcome):
        logger.info(
            f"Session {session_id} resolved: outcome {outcome.value}, "
            f"{total_count} bets (A={count_a}, B={count_b})"
        )


def notify(sink: NotificationSink, event: str, *args) -> None:
    """Call one sink hook, log and carry on if it fails"""
    try:
        getattr(sink, event)(*args)
    except Exception as e:
        logger.warning(f"Notification {event} failed on {type(sink).__name__}: {e}", exc_info=True)
