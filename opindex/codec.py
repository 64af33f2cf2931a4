"""Canonical encoding of operations and operation results.

An operation encodes to the pair ``[tag, {fields}]`` where ``tag`` is the
numeric :class:`~opindex.operations.OperationKind`. The pair is JSON-ready;
documents store its JSON string and history reconstruction decodes it back.
"""

import json
from typing import Any, List, Tuple, Union

from pydantic import ValidationError

from opindex.errors import FormatError
from opindex.operations import OPERATION_TYPES, Asset, BaseOperation, OperationKind

# Operation result tags
VOID_RESULT = 0
OBJECT_ID_RESULT = 1
ASSET_RESULT = 2

Canonical = List[Any]


def encode(operation: BaseOperation) -> Canonical:
    """Encode an operation into its canonical ``[tag, fields]`` form."""
    fields = operation.model_dump(mode="json", exclude={"kind"})
    return [int(operation.TAG), fields]


def to_json(operation: BaseOperation) -> str:
    """Encode an operation as the JSON string of its canonical form."""
    return json.dumps(encode(operation), separators=(",", ":"))


def _split_pair(canonical: Any, what: str) -> Tuple[int, Any]:
    if isinstance(canonical, (str, bytes)):
        try:
            canonical = json.loads(canonical)
        except ValueError as e:
            raise FormatError(f"{what} is not valid JSON: {e}") from e

    if not isinstance(canonical, (list, tuple)) or len(canonical) != 2:
        raise FormatError(f"{what} must be a [tag, value] pair, got {canonical!r}")

    tag, value = canonical
    if isinstance(tag, bool) or not isinstance(tag, int):
        raise FormatError(f"{what} tag must be an integer, got {tag!r}")
    return tag, value


def decode(canonical: Union[Canonical, str]) -> BaseOperation:
    """Decode a canonical form (or its JSON string) back into an operation.

    Raises:
        FormatError: If the tag is unknown or the fields do not match the
            operation kind.
    """
    tag, fields = _split_pair(canonical, "operation")

    try:
        kind = OperationKind(tag)
    except ValueError:
        raise FormatError(f"unknown operation tag {tag}") from None

    if not isinstance(fields, dict):
        raise FormatError(f"fields of {kind.name.lower()} must be an object")

    try:
        return OPERATION_TYPES[kind].model_validate(fields)
    except ValidationError as e:
        raise FormatError(f"invalid {kind.name.lower()} operation: {e}") from e


def encode_result(result: Union[None, str, Asset] = None) -> Canonical:
    """Encode an operation result: void, a created object id, or an asset."""
    if result is None:
        return [VOID_RESULT, {}]
    if isinstance(result, Asset):
        return [ASSET_RESULT, result.model_dump(mode="json")]
    return [OBJECT_ID_RESULT, result]


def decode_result(canonical: Union[Canonical, str]) -> Canonical:
    """Validate an encoded operation result and return it in canonical form."""
    tag, value = _split_pair(canonical, "operation result")

    if tag == VOID_RESULT:
        return [VOID_RESULT, {}]
    if tag == OBJECT_ID_RESULT and isinstance(value, str):
        return [OBJECT_ID_RESULT, value]
    if tag == ASSET_RESULT:
        try:
            return encode_result(Asset.model_validate(value))
        except ValidationError as e:
            raise FormatError(f"invalid asset result: {e}") from e
    raise FormatError(f"unknown operation result {canonical!r}")
