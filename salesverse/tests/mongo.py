"""
Base MongoDB en mémoire pour les tests : mongomock derrière l'interface async de motor.
"""

import mongomock


class AsyncCursor:

    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def skip(self, count):
        self._cursor = self._cursor.skip(count)
        return self

    def limit(self, count):
        self._cursor = self._cursor.limit(count)
        return self

    async def to_list(self, length=None):
        documents = list(self._cursor)
        return documents if length is None else documents[:length]


class AsyncCollection:

    def __init__(self, collection):
        self._collection = collection

    def find(self, *args, **kwargs):
        return AsyncCursor(self._collection.find(*args, **kwargs))

    def __getattr__(self, name):
        method = getattr(self._collection, name)

        async def call(*args, **kwargs):
            return method(*args, **kwargs)

        return call


class AsyncDatabase:

    def __init__(self, name="salesverse_test"):
        self.sync = mongomock.MongoClient()[name]

    def __getattr__(self, name):
        return AsyncCollection(self.sync[name])

    def __getitem__(self, name):
        return AsyncCollection(self.sync[name])
