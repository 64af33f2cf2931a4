"""Side-data extraction: fee, transfer and fill fields derived from operations."""

from typing import Callable, Dict, Iterable, Protocol, runtime_checkable

from opindex.errors import ComputationError
from opindex.models import (
    AssetInfo,
    FeeData,
    FillData,
    NoSideData,
    SideData,
    TransferData,
)
from opindex.operations import (
    Asset,
    BaseOperation,
    FillOrderOperation,
    OperationKind,
    TransferOperation,
)


@runtime_checkable
class AssetRegistry(Protocol):
    """Source of asset metadata, provided by the ledger."""

    def get_asset(self, asset_id: str) -> AssetInfo:
        """Return metadata for ``asset_id``. Raises KeyError if unknown."""
        ...


class StaticAssetRegistry:
    """In-memory asset registry."""

    def __init__(self, assets: Iterable[AssetInfo] = ()):
        self._assets: Dict[str, AssetInfo] = {}
        for asset in assets:
            self.add(asset)

    def add(self, asset: AssetInfo) -> None:
        self._assets[asset.asset_id] = asset

    def get_asset(self, asset_id: str) -> AssetInfo:
        return self._assets[asset_id]


def scale(amount: int, precision: int) -> float:
    """Convert a raw amount to display units: ``amount / 10**precision``."""
    return amount / 10**precision


def _lookup(assets: AssetRegistry, asset_id: str) -> AssetInfo:
    try:
        return assets.get_asset(asset_id)
    except KeyError:
        raise ComputationError(f"no metadata for asset {asset_id}") from None


def _scaled(assets: AssetRegistry, amount: Asset):
    info = _lookup(assets, amount.asset_id)
    return info, scale(amount.amount, info.precision)


def _no_data(op: BaseOperation, assets: AssetRegistry) -> SideData:
    return NoSideData()


def _fee_data(op: BaseOperation, assets: AssetRegistry) -> SideData:
    info, units = _scaled(assets, op.fee)
    return FeeData(
        asset=op.fee.asset_id,
        asset_name=info.symbol,
        amount=op.fee.amount,
        amount_units=units,
    )


def _transfer_data(op: TransferOperation, assets: AssetRegistry) -> SideData:
    info, units = _scaled(assets, op.amount)
    return TransferData(
        asset=op.amount.asset_id,
        asset_name=info.symbol,
        amount=op.amount.amount,
        amount_units=units,
        from_account=op.from_account,
        to_account=op.to_account,
    )


def _fill_data(op: FillOrderOperation, assets: AssetRegistry) -> SideData:
    if op.pays.amount == 0 or op.receives.amount == 0:
        raise ComputationError(
            f"fill of order {op.order_id} moves a zero amount "
            f"(pays={op.pays.amount}, receives={op.receives.amount})"
        )

    pays_info, pays_units = _scaled(assets, op.pays)
    receives_info, receives_units = _scaled(assets, op.receives)

    # Price is quoted in the maker's orientation on both sides of a trade.
    if op.is_maker:
        fill_price = op.receives.amount / op.pays.amount
        fill_price_units = receives_units / pays_units
    else:
        fill_price = op.pays.amount / op.receives.amount
        fill_price_units = pays_units / receives_units

    return FillData(
        order_id=op.order_id,
        account_id=op.account_id,
        pays_asset_id=op.pays.asset_id,
        pays_asset_name=pays_info.symbol,
        pays_amount=op.pays.amount,
        pays_amount_units=pays_units,
        receives_asset_id=op.receives.asset_id,
        receives_asset_name=receives_info.symbol,
        receives_amount=op.receives.amount,
        receives_amount_units=receives_units,
        fill_price=fill_price,
        fill_price_units=fill_price_units,
        is_maker=op.is_maker,
    )


_EXTRACTORS: Dict[OperationKind, Callable[..., SideData]] = {
    OperationKind.TRANSFER: _transfer_data,
    OperationKind.LIMIT_ORDER_CREATE: _fee_data,
    OperationKind.LIMIT_ORDER_CANCEL: _fee_data,
    OperationKind.FILL_ORDER: _fill_data,
    OperationKind.ACCOUNT_CREATE: _fee_data,
    OperationKind.ACCOUNT_UPDATE: _fee_data,
    OperationKind.ACCOUNT_UPGRADE: _fee_data,
    OperationKind.ASSET_ISSUE: _fee_data,
    OperationKind.ASSET_RESERVE: _fee_data,
    OperationKind.FBA_DISTRIBUTE: _no_data,
}


def extract(op: BaseOperation, assets: AssetRegistry) -> SideData:
    """Derive the side data for ``op``.

    Args:
        op: A decoded operation.
        assets: Registry used to scale raw amounts into display units.

    Returns:
        TransferData for transfers, FillData for order fills, FeeData for
        any other fee-bearing kind and NoSideData otherwise.

    Raises:
        ComputationError: If an asset is unknown or a fill moves a zero amount.
    """
    return _EXTRACTORS[op.TAG](op, assets)


class SideDataExtractor:
    """Binds :func:`extract` to an asset registry."""

    def __init__(self, assets: AssetRegistry):
        self._assets = assets

    @property
    def assets(self) -> AssetRegistry:
        return self._assets

    def __call__(self, op: BaseOperation) -> SideData:
        return extract(op, self._assets)
