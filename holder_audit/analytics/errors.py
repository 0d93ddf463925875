"""Exception hierarchy for the holder audit engine."""


class HolderAuditError(Exception):
    pass


class FetchError(HolderAuditError):
    """Upstream ledger, supply or price source unavailable."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class InvalidInputError(HolderAuditError):
    """Malformed token identifier or compare request, rejected before any fetch."""


class InvalidDecimalsError(InvalidInputError):
    def __init__(self, decimals: int) -> None:
        super().__init__(f"Invalid mint decimals: {decimals}")
        self.decimals = decimals


class PartialEnrichmentFailure(HolderAuditError):
    """Optional enrichment failed after the snapshot was already persisted."""

    def __init__(self, stage: str, snapshot_id: int, cause: Exception) -> None:
        super().__init__(f"{stage} failed for snapshot {snapshot_id}: {cause}")
        self.stage = stage
        self.snapshot_id = snapshot_id
        self.cause = cause


class DedupRace(HolderAuditError):
    """Lost a concurrent insert for the same (token, bucket); carries the winner's id."""

    def __init__(self, token_address: str, bucket_key: int, winner_id: int) -> None:
        super().__init__(
            f"Snapshot for {token_address} bucket {bucket_key} already written (id={winner_id})"
        )
        self.token_address = token_address
        self.bucket_key = bucket_key
        self.winner_id = winner_id
