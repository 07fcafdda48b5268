"""
Core business logic

- SessionManager: session lifecycle and resolution
- BetLedger: bets and ledger aggregates
- StateMachine: the only place session status changes
- Locks: single-writer serialization
"""
