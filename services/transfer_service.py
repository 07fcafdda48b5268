"""
Transfer execution: moving value to winners and the house

The core only calls `TransferExecutor.pay(recipient, amount)`. Whatever the
executor raises is reported as TransferFailure so SessionManager can record
it and keep paying the remaining recipients.
"""
import abc
import logging
from typing import List

from core.exceptions import TransferFailure

logger = logging.getLogger(__name__)


class TransferExecutor(abc.ABC):

    @abc.abstractmethod
    def pay(self, recipient: str, amount: int) -> None:
        raise NotImplementedError


class LoggingTransferExecutor(TransferExecutor):
    """Default executor: value movement is left to the hosting environment"""

    def pay(self, recipient: str, amount: int) -> None:
        logger.info(f"Pay {amount} to {recipient}")


class RecordingTransferExecutor(TransferExecutor):
    """
    Keeps every payment in memory

    Recipients listed in `failing` raise TransferFailure instead, which is
    how partial payout failures are simulated.
    """

    def __init__(self, failing=None):
        self.payments: List[tuple] = []
        self.failing = set(failing or [])

    def pay(self, recipient: str, amount: int) -> None:
        if recipient in self.failing:
            raise TransferFailure(recipient, amount, "recipient rejected transfer")
        self.payments.append((recipient, amount))


def execute_transfer(executor: TransferExecutor, recipient: str, amount: int) -> None:
    """
    Call the executor once for one recipient

    Raises:
        TransferFailure: for any failure inside the executor
    """
    try:
        executor.pay(recipient, amount)
    except TransferFailure:
        raise
    except Exception as e:
        raise TransferFailure(recipient, amount, str(e)) from e
