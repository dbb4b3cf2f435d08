"""TradingGateResult — readiness flag plus the predicates it came from."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field


class GateCondition(str, Enum):
    """First failing predicate, for diagnostics only."""

    NO_CREDENTIALS = "NO_CREDENTIALS"
    INCOMPLETE_CREDENTIALS = "INCOMPLETE_CREDENTIALS"
    OWNER_MISMATCH = "OWNER_MISMATCH"
    RECONNECT_REQUIRED = "RECONNECT_REQUIRED"
    STATUS_CHECK_FAILED = "STATUS_CHECK_FAILED"
    CLOSED_ONLY = "CLOSED_ONLY"
    READY = "READY"


class TradingGateResult(BaseModel):
    """Outcome of one gate evaluation.  Never cached.

    ``closed_only`` is ``None`` when the restriction status could not be
    determined (not checked, or the status call failed).
    ``reconnect_required`` is set when the venue rejected the stored API
    key (HTTP 401); the user has to reconnect the wallet.
    """

    model_config = ConfigDict(frozen=True)

    has_key: bool
    has_secret: bool
    has_passphrase: bool
    owner_match: bool
    closed_only: Optional[bool] = None

    owner_address: str = ""
    connected_address: str = ""
    status_check_error: Optional[str] = None
    reconnect_required: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def trading_enabled(self) -> bool:
        return (
            self.has_key
            and self.has_secret
            and self.has_passphrase
            and self.owner_match
            and not self.reconnect_required
            and self.closed_only is False
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def condition(self) -> GateCondition:
        creds = (self.has_key, self.has_secret, self.has_passphrase)
        if not any(creds):
            return GateCondition.NO_CREDENTIALS
        if not all(creds):
            return GateCondition.INCOMPLETE_CREDENTIALS
        if not self.owner_match:
            return GateCondition.OWNER_MISMATCH
        if self.reconnect_required:
            return GateCondition.RECONNECT_REQUIRED
        if self.closed_only is None:
            return GateCondition.STATUS_CHECK_FAILED
        if self.closed_only:
            return GateCondition.CLOSED_ONLY
        return GateCondition.READY
