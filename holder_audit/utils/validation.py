from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from holder_audit.analytics.errors import InvalidInputError


def validate_mint_address(mint: object) -> str:
    """Return the mint as a clean base58 string or raise InvalidInputError."""
    if not isinstance(mint, str):
        raise InvalidInputError("mint required")
    mint = mint.strip()
    if len(mint) < 32:
        raise InvalidInputError(f"Invalid mint address format: {mint!r}")
    try:
        Pubkey.from_string(mint)
    except ValueError as e:
        raise InvalidInputError(f"Invalid mint address format: {mint!r}") from e
    return mint


def validate_compare_mints(mints: object) -> list[str]:
    """2-3 distinct valid mints, in request order."""
    if not isinstance(mints, (list, tuple)) or not 2 <= len(mints) <= 3:
        raise InvalidInputError("mints array required with 2-3 tokens")
    cleaned = [validate_mint_address(m) for m in mints]
    if len(set(cleaned)) != len(cleaned):
        raise InvalidInputError("mints must be distinct")
    return cleaned
