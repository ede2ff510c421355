"""Error kinds raised by the ledger, scheduler and budget services.

Plain input validation keeps raising ``ValueError``; these classes mark the
outcomes callers are expected to branch on.
"""


class LedgerError(Exception):
    """Base class for all bizledger domain errors."""


class NotFoundError(LedgerError, LookupError):
    def __init__(self, kind: str, ident):
        super().__init__(f"{kind} {ident} not found")
        self.kind = kind
        self.ident = ident


class InvalidRecurrenceRule(LedgerError, ValueError):
    pass


class WriteConflict(LedgerError):
    """An atomic update lost a race. Safe to retry."""


class TrackingRejected(LedgerError, ValueError):
    pass
