"""
Record codec.

Turns `Image` and `Group` records into opaque byte blobs and back. A blob is
one format-version byte followed by the pydantic JSON dump of the record.
Decoding never trusts the bytes: anything that does not validate against the
expected model raises `DecodeError`.
"""

from typing import TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from tagstore.models.errors import DecodeError, ValidationError
from tagstore.utils.constants import RECORD_FORMAT_VERSION

RecordT = TypeVar("RecordT", bound=BaseModel)

_VERSION_PREFIX = bytes([RECORD_FORMAT_VERSION])


def encode(record: BaseModel) -> bytes:
    """Serialize a record into its on-disk representation.

    The record is revalidated first, so bytes that `decode` would reject are
    never produced.

    Raises:
        ValidationError: If the record holds values its model does not allow
    """
    model = type(record)
    try:
        checked = model.model_validate(record.model_dump(warnings=False))
    except PydanticValidationError as exc:
        raise ValidationError(
            message=f"Invalid {model.__name__} record",
            details={"record_type": model.__name__, "errors": exc.error_count()},
        ) from exc

    return _VERSION_PREFIX + checked.model_dump_json().encode("utf-8")


def decode(data: bytes | None, model: type[RecordT]) -> RecordT:
    """Deserialize bytes produced by `encode` into an instance of `model`.

    Raises:
        DecodeError: If the bytes are missing, truncated, carry an unknown
            format version or do not describe a valid `model`.
    """
    if not data:
        raise DecodeError(
            message=f"Empty {model.__name__} record",
            details={"record_type": model.__name__},
        )

    version = data[0]
    if version != RECORD_FORMAT_VERSION:
        raise DecodeError(
            message=f"Unsupported {model.__name__} record format",
            details={"record_type": model.__name__, "version": version},
        )

    try:
        return model.model_validate_json(data[1:])
    except PydanticValidationError as exc:
        raise DecodeError(
            message=f"Malformed {model.__name__} record",
            details={"record_type": model.__name__, "errors": exc.error_count()},
        ) from exc
