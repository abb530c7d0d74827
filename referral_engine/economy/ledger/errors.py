class LedgerError(Exception):
    pass


class DuplicateReferenceError(LedgerError):
    pass


class NothingToRevokeError(LedgerError):
    pass


class AlreadyRevokedError(LedgerError):
    pass
