"""SQLite-backed implementation of GroupStoreRepository.

Layout of the key space:

- `groups` bucket: group name -> encoded `Group` (size and image IDs)
- `group/<name>` bucket, one per group: 8-byte image ID -> encoded `Image`;
  the bucket's sequence counter allocates the group's image IDs
- `blobs` bucket: content hash -> raw image bytes

Group buckets are created together with their group record, so bucket
creation order is group creation order.
"""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from aws_lambda_powertools import Logger
from sqlalchemy.exc import SQLAlchemyError

from tagstore.infrastructure.adapters.sqlite_adapter import KVBucket, KVTransaction, SQLiteKVAdapter
from tagstore.models.errors import (
    GroupExistsError,
    GroupNotEmptyError,
    GroupNotFoundError,
    ImageNotFoundError,
    NotFoundError,
    StorageError,
    StoreClosedError,
    TagStoreError,
    ValidationError,
)
from tagstore.models.group import Group
from tagstore.models.image import Image
from tagstore.repositories.group_repository import GroupStoreRepository
from tagstore.utils import codec
from tagstore.utils.constants import (
    BLOBS_BUCKET,
    ERROR_CODE_GROUP_CREATE_FAILED,
    ERROR_CODE_GROUP_DELETE_FAILED,
    ERROR_CODE_GROUP_FETCH_FAILED,
    ERROR_CODE_IMAGE_ADD_FAILED,
    ERROR_CODE_IMAGE_DATA_FAILED,
    ERROR_CODE_IMAGE_DATA_NOT_FOUND,
    ERROR_CODE_IMAGE_DELETE_FAILED,
    ERROR_CODE_IMAGE_FETCH_FAILED,
    ERROR_CODE_IMAGE_UPDATE_FAILED,
    ERROR_CODE_STORE_OPEN_FAILED,
    GROUP_BUCKET_PREFIX,
    GROUPS_BUCKET,
    LOG_SERVICE_NAME,
)
from tagstore.utils.keys import encode_id, group_bucket, group_key, validate_group_name
from tagstore.utils.time import utc_now

logger = Logger(service=LOG_SERVICE_NAME, UTC=True)


@contextmanager
def _storage_errors(message: str, error_code: str, details: dict[str, Any]) -> Iterator[None]:
    """Translate engine failures into StorageError; domain errors pass through."""
    try:
        yield
    except TagStoreError:
        raise
    except (SQLAlchemyError, OSError) as exc:
        logger.exception(message, extra=details)
        raise StorageError(
            message=message,
            error_code=error_code,
            details=details,
        ) from exc


class SQLiteGroupStore(GroupStoreRepository):
    """Group store persisted in one SQLite file.

    All engine errors are caught and translated into domain-specific errors
    with stable semantics. One instance is meant to be created at startup and
    shared by every caller; it is safe to use from multiple threads.
    """

    def __init__(self, adapter: SQLiteKVAdapter) -> None:
        """Initialize with an open key-value adapter."""
        self._db = adapter
        self._closed = False

        with _storage_errors("Unable to initialize store", ERROR_CODE_STORE_OPEN_FAILED, {"path": adapter.path}):
            with self._db.update() as tx:
                tx.create_bucket_if_not_exists(GROUPS_BUCKET)
                tx.create_bucket_if_not_exists(BLOBS_BUCKET)

    @property
    def path(self) -> str:
        return self._db.path

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Transactions and record helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _view(self) -> Iterator[KVTransaction]:
        self._ensure_open()
        with self._db.view() as tx:
            yield tx

    @contextmanager
    def _update(self) -> Iterator[KVTransaction]:
        self._ensure_open()
        with self._db.update() as tx:
            yield tx

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError(details={"path": self._db.path})

    @staticmethod
    def _groups(tx: KVTransaction) -> KVBucket:
        bucket = tx.bucket(GROUPS_BUCKET)
        if bucket is None:
            raise StorageError(message="Store layout is missing the groups namespace")
        return bucket

    @staticmethod
    def _blobs(tx: KVTransaction) -> KVBucket:
        bucket = tx.bucket(BLOBS_BUCKET)
        if bucket is None:
            raise StorageError(message="Store layout is missing the blobs namespace")
        return bucket

    def _load_group(self, tx: KVTransaction, name: str) -> tuple[Group, KVBucket]:
        """Return the group record and its image bucket.

        Raises:
            GroupNotFoundError: If the group does not exist
        """
        data = self._groups(tx).get(group_key(name))
        if data is None:
            raise GroupNotFoundError(details={"group": name})

        images = tx.bucket(group_bucket(name))
        if images is None:
            raise StorageError(
                message="Group has no image namespace",
                details={"group": name},
            )
        return codec.decode(data, Group), images

    def _save_group(self, tx: KVTransaction, group: Group) -> None:
        self._groups(tx).put(group_key(group.name), codec.encode(group))

    @staticmethod
    def _load_image(images: KVBucket, group: str, image_id: int) -> Image:
        data = images.get(encode_id(image_id))
        if data is None:
            raise ImageNotFoundError(details={"group": group, "image_id": image_id})
        return codec.decode(data, Image)

    @staticmethod
    def _image_key(image_id: Any, group: str) -> bytes:
        """Encode a caller-supplied ID; IDs the store could never assign are not found."""
        if isinstance(image_id, bool) or not isinstance(image_id, int):
            raise ImageNotFoundError(details={"group": group, "image_id": image_id})
        try:
            return encode_id(image_id)
        except ValueError:
            raise ImageNotFoundError(details={"group": group, "image_id": image_id}) from None

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def create_group(self, *, name: str) -> None:
        """Create an empty group.

        Raises:
            GroupExistsError: If a group with this name already exists
            StorageError: If the write fails
        """
        key = group_key(name)
        logger.debug("Creating group", extra={"group": name})

        with _storage_errors("Unable to create group", ERROR_CODE_GROUP_CREATE_FAILED, {"group": name}):
            with self._update() as tx:
                if self._groups(tx).get(key) is not None:
                    raise GroupExistsError(details={"group": name})
                tx.create_bucket(group_bucket(name))
                self._save_group(tx, Group(name=name))

        logger.info("Group created", extra={"group": name})

    def delete_group(self, *, name: str) -> None:
        """Delete an empty group.

        Raises:
            GroupNotFoundError: If the group does not exist
            GroupNotEmptyError: If the group still holds images
            StorageError: If the write fails
        """
        key = group_key(name)
        logger.debug("Deleting group", extra={"group": name})

        with _storage_errors("Unable to delete group", ERROR_CODE_GROUP_DELETE_FAILED, {"group": name}):
            with self._update() as tx:
                group, images = self._load_group(tx, name)
                if images.count() or not group.is_empty:
                    raise GroupNotEmptyError(
                        details={"group": name, "images": max(images.count(), group.image_count)},
                    )
                self._groups(tx).delete(key)
                tx.delete_bucket(group_bucket(name))

        logger.info("Group deleted", extra={"group": name})

    def get_group(self, *, name: str) -> Group:
        """Return a snapshot of one group.

        Raises:
            GroupNotFoundError: If the group does not exist
            StorageError: If the read fails
        """
        validate_group_name(name)
        logger.debug("Fetching group", extra={"group": name})

        with _storage_errors("Unable to retrieve group", ERROR_CODE_GROUP_FETCH_FAILED, {"group": name}):
            with self._view() as tx:
                group, _ = self._load_group(tx, name)
                return group

    def get_all_groups(self) -> list[Group]:
        """Return every group in creation order."""
        logger.debug("Listing groups")

        with _storage_errors("Unable to list groups", ERROR_CODE_GROUP_FETCH_FAILED, {}):
            with self._view() as tx:
                groups_bucket = self._groups(tx)
                groups: list[Group] = []
                for bucket_name in tx.bucket_names(GROUP_BUCKET_PREFIX):
                    data = groups_bucket.get(bucket_name[len(GROUP_BUCKET_PREFIX):])
                    if data is None:
                        raise StorageError(
                            message="Group namespace has no group record",
                            details={"bucket": bucket_name.decode("utf-8", "replace")},
                        )
                    groups.append(codec.decode(data, Group))
                return groups

    def get_group_names(self) -> list[str]:
        """Return every group name in creation order."""
        with _storage_errors("Unable to list groups", ERROR_CODE_GROUP_FETCH_FAILED, {}):
            with self._view() as tx:
                return [
                    bucket_name[len(GROUP_BUCKET_PREFIX):].decode("utf-8")
                    for bucket_name in tx.bucket_names(GROUP_BUCKET_PREFIX)
                ]

    def get_group_images(self, *, name: str) -> list[Image]:
        """Return the group's images in ID order.

        Raises:
            GroupNotFoundError: If the group does not exist
            StorageError: If the read fails
        """
        validate_group_name(name)
        logger.debug("Listing group images", extra={"group": name})

        with _storage_errors("Unable to list group images", ERROR_CODE_IMAGE_FETCH_FAILED, {"group": name}):
            with self._view() as tx:
                _, images = self._load_group(tx, name)
                return [codec.decode(value, Image) for _, value in images.items()]

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def add_image(self, *, group: str, image: Image) -> Image:
        """Add an image, creating the group first if it does not exist.

        The ID allocation, the image write and the group bookkeeping commit
        together or not at all.

        Raises:
            TypeError: If `image` is None
            InvalidGroupNameError: If `group` cannot name a group
            ValidationError: If `image` holds values an Image does not allow
            StorageError: If the write fails
        """
        if image is None:
            raise TypeError("add_image requires an Image, got None")
        key = group_key(group)
        logger.debug("Adding image", extra={"group": group, "image_name": image.name})

        with _storage_errors("Unable to add image", ERROR_CODE_IMAGE_ADD_FAILED, {"group": group}):
            with self._update() as tx:
                created = self._groups(tx).get(key) is None
                if created:
                    record = Group(name=group)
                    images = tx.create_bucket(group_bucket(group))
                else:
                    record, images = self._load_group(tx, group)

                stored = image.model_copy(
                    update={"id": images.next_sequence(), "added": utc_now(), "updated": None},
                )
                images.put(encode_id(stored.id), codec.encode(stored))

                record.images.append(stored.id)
                record.size += stored.size
                self._save_group(tx, record)

        # Only visible to the caller once the transaction has committed.
        image.id = stored.id
        image.added = stored.added
        image.updated = None

        if created:
            logger.info("Group created implicitly", extra={"group": group})
        logger.debug("Image added", extra={"group": group, "image_id": stored.id})
        return image

    def update_image(self, *, group: str, image: Image) -> Image:
        """Replace a stored image, keeping its ID and added time.

        Raises:
            TypeError: If `image` is None
            GroupNotFoundError: If the group does not exist
            ImageNotFoundError: If `image.id` is not in the group
            ValidationError: If `image` holds values an Image does not allow
            StorageError: If the write fails
        """
        if image is None:
            raise TypeError("update_image requires an Image, got None")
        validate_group_name(group)
        logger.debug("Updating image", extra={"group": group, "image_id": image.id})

        details = {"group": group, "image_id": image.id}
        with _storage_errors("Unable to update image", ERROR_CODE_IMAGE_UPDATE_FAILED, details):
            with self._update() as tx:
                record, images = self._load_group(tx, group)
                key = self._image_key(image.id, group)
                previous = self._load_image(images, group, image.id)

                stored = image.model_copy(
                    update={"id": previous.id, "added": previous.added, "updated": utc_now()},
                )
                images.put(key, codec.encode(stored))

                record.size += stored.size - previous.size
                self._save_group(tx, record)

        image.added = stored.added
        image.updated = stored.updated
        return image

    def delete_image(self, *, group: str, image_id: int) -> None:
        """Hard-delete an image.

        Raises:
            GroupNotFoundError: If the group does not exist
            ImageNotFoundError: If the ID is not in the group
            StorageError: If the write fails
        """
        validate_group_name(group)
        logger.debug("Deleting image", extra={"group": group, "image_id": image_id})

        details = {"group": group, "image_id": image_id}
        with _storage_errors("Unable to delete image", ERROR_CODE_IMAGE_DELETE_FAILED, details):
            with self._update() as tx:
                record, images = self._load_group(tx, group)
                key = self._image_key(image_id, group)
                previous = self._load_image(images, group, image_id)

                images.delete(key)
                record.images = [i for i in record.images if i != image_id]
                record.size -= previous.size
                self._save_group(tx, record)

    def get_image(self, *, group: str, image_id: int) -> Image:
        """Fetch one image; a missing group is reported before a missing ID.

        Raises:
            GroupNotFoundError: If the group does not exist
            ImageNotFoundError: If the ID is not in the group
            StorageError: If the read fails
        """
        validate_group_name(group)
        logger.debug("Fetching image", extra={"group": group, "image_id": image_id})

        details = {"group": group, "image_id": image_id}
        with _storage_errors("Unable to retrieve image", ERROR_CODE_IMAGE_FETCH_FAILED, details):
            with self._view() as tx:
                _, images = self._load_group(tx, group)
                self._image_key(image_id, group)
                return self._load_image(images, group, image_id)

    # ------------------------------------------------------------------
    # Image data
    # ------------------------------------------------------------------

    def get_image_data(self, *, hash: str) -> bytes:
        """Fetch a content-addressed blob.

        Raises:
            NotFoundError: If no blob is stored under `hash`
            StorageError: If the read fails
        """
        logger.debug("Fetching image data", extra={"hash": hash})

        with _storage_errors("Unable to retrieve image data", ERROR_CODE_IMAGE_DATA_FAILED, {"hash": hash}):
            with self._view() as tx:
                data = self._blobs(tx).get(hash.encode("utf-8")) if hash else None
                if data is None:
                    raise NotFoundError(
                        message="Image data not found",
                        error_code=ERROR_CODE_IMAGE_DATA_NOT_FOUND,
                        details={"hash": hash},
                    )
                return bytes(data)

    def put_image_data(self, *, hash: str, data: bytes) -> None:
        """Store a content-addressed blob."""
        if not hash:
            raise ValidationError(message="Image data hash must not be empty")
        logger.debug("Storing image data", extra={"hash": hash, "size": len(data)})

        with _storage_errors("Unable to store image data", ERROR_CODE_IMAGE_DATA_FAILED, {"hash": hash}):
            with self._update() as tx:
                self._blobs(tx).put(hash.encode("utf-8"), bytes(data))

    def delete_image_data(self, *, hash: str) -> None:
        """Remove a content-addressed blob.

        Raises:
            NotFoundError: If no blob is stored under `hash`
        """
        logger.debug("Removing image data", extra={"hash": hash})

        with _storage_errors("Unable to remove image data", ERROR_CODE_IMAGE_DATA_FAILED, {"hash": hash}):
            with self._update() as tx:
                if not hash or not self._blobs(tx).delete(hash.encode("utf-8")):
                    raise NotFoundError(
                        message="Image data not found",
                        error_code=ERROR_CODE_IMAGE_DATA_NOT_FOUND,
                        details={"hash": hash},
                    )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the file lock and pooled connections."""
        if self._closed:
            return
        self._closed = True
        self._db.close()
        logger.info("Store closed", extra={"path": self._db.path})


def open_store(
    path: str | os.PathLike[str] | None = None,
    *,
    timeout: float | None = None,
) -> SQLiteGroupStore:
    """Open the store at `path`, creating the file if it does not exist.

    Args:
        path: Backing file; defaults to the TAGSTORE_DB_PATH environment variable
        timeout: Seconds to wait for another holder of the file lock;
            defaults to TAGSTORE_OPEN_TIMEOUT or 5 seconds

    Raises:
        RuntimeError: If neither `path` nor TAGSTORE_DB_PATH is given
        StoreLockedError: If the lock is still held after `timeout`
        StorageError: If the file cannot be opened or initialized
    """
    details = {"path": str(path) if path else None}
    with _storage_errors("Unable to open store", ERROR_CODE_STORE_OPEN_FAILED, details):
        adapter = SQLiteKVAdapter(path, timeout=timeout)

    try:
        store = SQLiteGroupStore(adapter)
    except BaseException:
        adapter.close()
        raise

    logger.info("Store opened", extra={"path": adapter.path})
    return store
