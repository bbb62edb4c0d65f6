"""
Token gate evaluation.

A policy names an access id (a fungible mint or an NFT collection id) and a
minimum balance. Access is granted when the fungible balance, or failing that
the number of NFTs owned in the collection, is strictly greater than the
minimum. "At least N" is therefore expressed as a minimum of N - 1.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from src.core.exceptions.base import PermissionDeniedError
from src.core.logger.logger import get_logger
from src.core.service.holdings.models import HoldingsSnapshot

logger = get_logger(__name__)


class AccessPolicy(BaseModel):
    accessId: str
    minimumAccessBalance: float = 0

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> Optional["AccessPolicy"]:
        """Policy carried by a content record, None when it has no accessId"""
        access_id = record.get("accessId")
        if not access_id:
            return None
        return cls(accessId=access_id, minimumAccessBalance=record.get("minimumAccessBalance") or 0)


def has_access(holdings: HoldingsSnapshot, policy: AccessPolicy) -> bool:
    amount = holdings.fungible_amount(policy.accessId)
    if amount is not None and amount > policy.minimumAccessBalance:
        return True

    owned = holdings.collection_size(policy.accessId)
    if owned is not None and owned > policy.minimumAccessBalance:
        return True

    return False


def require_access(holdings: HoldingsSnapshot, policy: AccessPolicy, uid: Optional[str] = None) -> None:
    """Raise PermissionDeniedError unless holdings satisfy policy"""
    if has_access(holdings, policy):
        return

    logger.warning(
        "Token gate denied access",
        extra={
            "uid": uid,
            "access_id": policy.accessId,
            "minimum_access_balance": policy.minimumAccessBalance
        }
    )
    raise PermissionDeniedError(
        "Token requirements not met",
        details={
            "access_id": policy.accessId,
            "minimum_access_balance": policy.minimumAccessBalance
        },
        context={"uid": uid}
    )
