"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidArgumentError(DomainException):
    """Loan or schedule parameters are malformed (non-positive principal, negative rate, bad tenure)"""

    pass


class EntityNotFoundError(DomainException):
    """Requested loan, subscription or template does not exist"""

    pass


class StorageFetchError(DomainException):
    """Storage could not enumerate records of a collection"""

    pass


class ItemProcessingError(DomainException):
    """A single due item could not be processed; the batch moves on"""

    def __init__(self, collection: str, entity_id: object, cause: Exception):
        super().__init__(f"Failed to process {collection} {entity_id}: {cause}")
        self.collection = collection
        self.entity_id = entity_id
        self.cause = cause


class FatalFetchError(DomainException):
    """Due items could not be listed at all; the whole run is aborted"""

    def __init__(self, collection: str, cause: Exception):
        super().__init__(f"Could not fetch due {collection}: {cause}")
        self.collection = collection
        self.cause = cause
