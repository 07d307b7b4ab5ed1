"""Error taxonomy for local storage, remote sync and import."""


class SyncError(Exception):
    """Base class for remote sync failures. Never fatal to local state."""


class TransportError(SyncError):
    """The remote was unreachable, timed out, or rejected the request."""


class SchemaError(SyncError):
    """The remote table is missing a column the adapter expected."""


class StorageQuotaError(Exception):
    """The fallback local store ran out of capacity."""


class ImportValidationError(ValueError):
    """An import document could not be parsed as a trip snapshot."""
