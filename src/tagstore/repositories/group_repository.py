"""Abstract contract for grouped image metadata persistence."""

from abc import ABC, abstractmethod
from types import TracebackType

from tagstore.models.group import Group
from tagstore.models.image import Image


class GroupStoreRepository(ABC):
    """Contract for storing image metadata in named groups.

    Implementations could be SQLite, an LMDB file, an in-memory map, etc.
    Callers depend on this interface, not the implementation. Every method
    runs as a single atomic unit of work. All methods may also raise
    `StorageError` when the backing engine fails and `InvalidGroupNameError`
    when a group name breaks the naming policy.
    """

    @abstractmethod
    def create_group(self, *, name: str) -> None:
        """Create an empty group.

        Raises:
            GroupExistsError: If a group with this name already exists
        """

    @abstractmethod
    def delete_group(self, *, name: str) -> None:
        """Delete an empty group.

        Raises:
            GroupNotFoundError: If the group does not exist
            GroupNotEmptyError: If the group still holds images
        """

    @abstractmethod
    def get_group(self, *, name: str) -> Group:
        """Return a snapshot of the group with its size and image IDs.

        Raises:
            GroupNotFoundError: If the group does not exist
        """

    @abstractmethod
    def get_all_groups(self) -> list[Group]:
        """Return every group in creation order; an empty list if none."""

    @abstractmethod
    def get_group_names(self) -> list[str]:
        """Return every group name in creation order; an empty list if none."""

    @abstractmethod
    def get_group_images(self, *, name: str) -> list[Image]:
        """Return the group's images in ID order.

        Raises:
            GroupNotFoundError: If the group does not exist
        """

    @abstractmethod
    def add_image(self, *, group: str, image: Image) -> Image:
        """Add an image to a group, creating the group if it does not exist.

        The store assigns `image.id` (the group's next sequence number) and
        stamps `image.added`, writing both onto the given instance.

        Returns:
            The same `image` instance, now carrying its ID and added time

        Raises:
            TypeError: If `image` is None (caller bug, not a store error)
            ValidationError: If `image` holds values an Image does not allow
        """

    @abstractmethod
    def update_image(self, *, group: str, image: Image) -> Image:
        """Replace a stored image, keeping its ID and added time.

        `image.updated` is stamped and `image.added` restored from storage.

        Raises:
            TypeError: If `image` is None (caller bug, not a store error)
            GroupNotFoundError: If the group does not exist
            ImageNotFoundError: If `image.id` is not in the group
            ValidationError: If `image` holds values an Image does not allow
        """

    @abstractmethod
    def delete_image(self, *, group: str, image_id: int) -> None:
        """Hard-delete an image. Remaining IDs are never renumbered.

        Raises:
            GroupNotFoundError: If the group does not exist
            ImageNotFoundError: If the ID is not in the group
        """

    @abstractmethod
    def get_image(self, *, group: str, image_id: int) -> Image:
        """Fetch a single image.

        Raises:
            GroupNotFoundError: If the group does not exist
            ImageNotFoundError: If the ID is not in the group
        """

    @abstractmethod
    def get_image_data(self, *, hash: str) -> bytes:
        """Fetch a content-addressed blob.

        Raises:
            NotFoundError: If no blob is stored under `hash`
        """

    @abstractmethod
    def put_image_data(self, *, hash: str, data: bytes) -> None:
        """Store a content-addressed blob.

        Raises:
            ValidationError: If `hash` is empty
        """

    @abstractmethod
    def delete_image_data(self, *, hash: str) -> None:
        """Remove a content-addressed blob.

        Raises:
            NotFoundError: If no blob is stored under `hash`
        """

    @abstractmethod
    def close(self) -> None:
        """Release the backing file. Calling it twice is harmless."""

    def __enter__(self) -> "GroupStoreRepository":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
