from holder_audit.models.base import Base
from holder_audit.models.label import WalletLabel
from holder_audit.models.snapshot import TokenSnapshot, TokenTopHolder
from holder_audit.models.whale import WhaleDuration

__all__ = [
    "Base",
    "TokenSnapshot",
    "TokenTopHolder",
    "WhaleDuration",
    "WalletLabel",
]
