"""Storage backend adapters.

Only the in-memory adapter is imported eagerly; the MongoDB and DynamoDB
adapters pull in their drivers and are imported from their own modules::

    from objectstore.backends.mongodb import MongoRepository
    from objectstore.backends.dynamodb import DynamoRepository
"""

from .memory import InMemoryRepository

__all__ = ["InMemoryRepository"]
