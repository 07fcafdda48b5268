"""
Custom exceptions

Centralizes every business exception so the API layer can map them in one place.
All validation errors leave the session and ledger untouched.
"""


class WagerHouseException(Exception):
    """Base class for all wager house errors"""
    pass


# ============ Authorization ============

class PermissionDenied(WagerHouseException):
    """Caller is not the house"""
    def __init__(self, caller):
        self.caller = caller
        super().__init__(f"Caller {caller} is not allowed to perform this operation")


class HouseCannotBet(WagerHouseException):
    """The house may not wager in its own round"""
    pass


# ============ Session lifecycle ============

class InvalidParameters(WagerHouseException):
    """Stake, duration or fee outside the accepted range"""
    pass


class SessionAlreadyOpen(WagerHouseException):
    """Another session is still open"""
    def __init__(self, session_id=None):
        self.session_id = session_id
        if session_id is None:
            super().__init__("Another session is already open")
        else:
            super().__init__(f"Session {session_id} is still open")


class NoActiveSession(WagerHouseException):
    """No open session to act on"""
    pass


class SessionStillOpen(WagerHouseException):
    """Admission window has not elapsed yet"""
    pass


class SessionNotFound(WagerHouseException):
    """Session id does not exist"""
    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


# ============ Betting ============

class BettingClosed(WagerHouseException):
    """Session is closed or its admission window has elapsed"""
    pass


class BelowMinimumStake(WagerHouseException):
    """Stake is below the session minimum"""
    pass


class InvalidOutcome(WagerHouseException):
    """Outcome is neither A nor B"""
    pass


# ============ Payout ============

class TransferFailure(WagerHouseException):
    """Paying one recipient failed; resolution carries on with the others"""
    def __init__(self, recipient, amount, reason=""):
        self.recipient = recipient
        self.amount = amount
        self.reason = reason
        super().__init__(f"Transfer of {amount} to {recipient} failed: {reason}")


# ============ State transitions ============

class InvalidStateTransition(WagerHouseException):
    """Illegal session state transition"""
    pass
