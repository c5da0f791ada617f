from .publisher import (
    PublisherStorageNetwork,
    ReserveSpaceTransaction,
    StorageTransaction,
)
