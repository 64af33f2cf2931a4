"""Closed set of ledger operation kinds as pydantic models."""

from datetime import datetime
from enum import IntEnum
from typing import Annotated, ClassVar, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field


class OperationKind(IntEnum):
    """Numeric operation tags, as assigned by the ledger."""

    TRANSFER = 0
    LIMIT_ORDER_CREATE = 1
    LIMIT_ORDER_CANCEL = 2
    FILL_ORDER = 4
    ACCOUNT_CREATE = 5
    ACCOUNT_UPDATE = 6
    ACCOUNT_UPGRADE = 8
    ASSET_ISSUE = 14
    ASSET_RESERVE = 15
    FBA_DISTRIBUTE = 44


class Asset(BaseModel):
    """An amount of some asset, in raw (unscaled) units."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    amount: int
    asset_id: str


class BaseOperation(BaseModel):
    """Common base for every operation variant.

    Subclasses set ``TAG`` to their numeric kind and declare a ``kind``
    literal used as the union discriminator. ``VIRTUAL`` marks operations
    the ledger generates itself rather than accepting from users.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    TAG: ClassVar[OperationKind]
    VIRTUAL: ClassVar[bool] = False

    @classmethod
    def fee_bearing(cls) -> bool:
        return "fee" in cls.model_fields


class TransferOperation(BaseOperation):
    TAG: ClassVar[OperationKind] = OperationKind.TRANSFER

    kind: Literal["transfer"] = "transfer"
    fee: Asset
    from_account: str
    to_account: str
    amount: Asset
    memo: Optional[str] = None


class LimitOrderCreateOperation(BaseOperation):
    TAG: ClassVar[OperationKind] = OperationKind.LIMIT_ORDER_CREATE

    kind: Literal["limit_order_create"] = "limit_order_create"
    fee: Asset
    seller: str
    amount_to_sell: Asset
    min_to_receive: Asset
    expiration: datetime
    fill_or_kill: bool = False


class LimitOrderCancelOperation(BaseOperation):
    TAG: ClassVar[OperationKind] = OperationKind.LIMIT_ORDER_CANCEL

    kind: Literal["limit_order_cancel"] = "limit_order_cancel"
    fee: Asset
    fee_paying_account: str
    order: str


class FillOrderOperation(BaseOperation):
    """One side of a matched trade. Each trade yields a maker and a taker fill."""

    TAG: ClassVar[OperationKind] = OperationKind.FILL_ORDER
    VIRTUAL: ClassVar[bool] = True

    kind: Literal["fill_order"] = "fill_order"
    fee: Asset
    order_id: str
    account_id: str
    pays: Asset
    receives: Asset
    is_maker: bool


class AccountCreateOperation(BaseOperation):
    TAG: ClassVar[OperationKind] = OperationKind.ACCOUNT_CREATE

    kind: Literal["account_create"] = "account_create"
    fee: Asset
    registrar: str
    referrer: str
    referrer_percent: int = 0
    name: str
    memo_key: str


class AccountUpdateOperation(BaseOperation):
    TAG: ClassVar[OperationKind] = OperationKind.ACCOUNT_UPDATE

    kind: Literal["account_update"] = "account_update"
    fee: Asset
    account: str
    memo_key: Optional[str] = None
    voting_account: Optional[str] = None


class AccountUpgradeOperation(BaseOperation):
    TAG: ClassVar[OperationKind] = OperationKind.ACCOUNT_UPGRADE

    kind: Literal["account_upgrade"] = "account_upgrade"
    fee: Asset
    account_to_upgrade: str
    upgrade_to_lifetime_member: bool = False


class AssetIssueOperation(BaseOperation):
    TAG: ClassVar[OperationKind] = OperationKind.ASSET_ISSUE

    kind: Literal["asset_issue"] = "asset_issue"
    fee: Asset
    issuer: str
    asset_to_issue: Asset
    issue_to_account: str
    memo: Optional[str] = None


class AssetReserveOperation(BaseOperation):
    TAG: ClassVar[OperationKind] = OperationKind.ASSET_RESERVE

    kind: Literal["asset_reserve"] = "asset_reserve"
    fee: Asset
    payer: str
    amount_to_reserve: Asset


class FbaDistributeOperation(BaseOperation):
    """Fee-backed-asset payout; generated by the ledger and charges no fee."""

    TAG: ClassVar[OperationKind] = OperationKind.FBA_DISTRIBUTE
    VIRTUAL: ClassVar[bool] = True

    kind: Literal["fba_distribute"] = "fba_distribute"
    account_id: str
    fba_id: str
    amount: int


Operation = Annotated[
    Union[
        TransferOperation,
        LimitOrderCreateOperation,
        LimitOrderCancelOperation,
        FillOrderOperation,
        AccountCreateOperation,
        AccountUpdateOperation,
        AccountUpgradeOperation,
        AssetIssueOperation,
        AssetReserveOperation,
        FbaDistributeOperation,
    ],
    Field(discriminator="kind"),
]

# Tag -> model lookup; must list every OperationKind.
OPERATION_TYPES: Dict[OperationKind, Type[BaseOperation]] = {
    OperationKind.TRANSFER: TransferOperation,
    OperationKind.LIMIT_ORDER_CREATE: LimitOrderCreateOperation,
    OperationKind.LIMIT_ORDER_CANCEL: LimitOrderCancelOperation,
    OperationKind.FILL_ORDER: FillOrderOperation,
    OperationKind.ACCOUNT_CREATE: AccountCreateOperation,
    OperationKind.ACCOUNT_UPDATE: AccountUpdateOperation,
    OperationKind.ACCOUNT_UPGRADE: AccountUpgradeOperation,
    OperationKind.ASSET_ISSUE: AssetIssueOperation,
    OperationKind.ASSET_RESERVE: AssetReserveOperation,
    OperationKind.FBA_DISTRIBUTE: FbaDistributeOperation,
}
