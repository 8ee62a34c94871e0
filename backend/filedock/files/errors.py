"""Errors raised by the catalog store and the directory reconciler."""


class FilesystemReadError(OSError):
    """Listing or statting under the storage root failed."""


class StoreError(RuntimeError):
    """A catalog (database) operation failed."""
