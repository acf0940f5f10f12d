"""Custom exceptions for the traffic ledger."""


class LedgerError(Exception):
    """Base exception for all ledger errors."""


class LedgerSchemaError(LedgerError):
    """Raised when a stored document cannot be migrated to the current schema."""

    def __init__(self, found_version: object, supported_version: int):
        self.found_version = found_version
        self.supported_version = supported_version
        super().__init__(
            f"Unsupported ledger schemaVersion={found_version!r} "
            f"(this build supports up to {supported_version})"
        )


class LedgerCorruptError(LedgerError):
    """Raised when the ledger file exists but cannot be parsed or validated."""

    def __init__(self, path: object, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Ledger at {path} is unreadable: {reason}")
