"""
Key encoding for the sorted key space.

Image IDs become fixed-width big-endian integers so that byte order matches
numeric order. Group names become namespace keys under a dedicated prefix.

Group name policy: a name must be a non-empty string without NUL characters
or unpaired surrogates. Valid names are UTF-8 encoded as-is (no escaping), so
the stored namespace is always `GROUP_BUCKET_PREFIX + name.encode("utf-8")`.
Every other name is rejected with `InvalidGroupNameError`.
"""

from tagstore.models.errors import DecodeError, InvalidGroupNameError
from tagstore.utils.constants import GROUP_BUCKET_PREFIX, ID_KEY_WIDTH, MAX_IMAGE_ID


def encode_id(image_id: int) -> bytes:
    """Return the 8-byte big-endian representation of an image ID."""
    if not 0 <= image_id <= MAX_IMAGE_ID:
        raise ValueError(f"image ID out of range: {image_id}")
    return image_id.to_bytes(ID_KEY_WIDTH, "big")


def decode_id(key: bytes) -> int:
    """Inverse of `encode_id`."""
    if len(key) != ID_KEY_WIDTH:
        raise DecodeError(
            message="Malformed image key",
            details={"length": len(key)},
        )
    return int.from_bytes(key, "big")


def validate_group_name(name: str) -> str:
    """Return `name` unchanged if it satisfies the group name policy.

    Raises:
        InvalidGroupNameError: If the name is empty, not a string, contains
            NUL or cannot be encoded as UTF-8.
    """
    if not isinstance(name, str) or not name:
        raise InvalidGroupNameError(
            message="Group name must be a non-empty string",
            details={"name": repr(name)},
        )

    if "\x00" in name:
        raise InvalidGroupNameError(
            message="Group name must not contain NUL characters",
            details={"name": repr(name)},
        )

    try:
        name.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidGroupNameError(
            message="Group name must be valid UTF-8 text",
            details={"name": repr(name)},
        ) from exc

    return name


def group_key(name: str) -> bytes:
    """Key of the group's record inside the groups namespace."""
    return validate_group_name(name).encode("utf-8")


def group_bucket(name: str) -> bytes:
    """Namespace holding the group's images."""
    return GROUP_BUCKET_PREFIX + group_key(name)
