from __future__ import annotations

from pymongo import MongoClient
from pymongo.database import Database


class Mongo:
    def __init__(self, client: MongoClient, db: Database):
        self.client = client
        self.db = db

    @classmethod
    def from_url(cls, url: str, db_name: str) -> "Mongo":
        # MongoClient connects lazily; nothing touches the network here
        client: MongoClient = MongoClient(url, serverSelectionTimeoutMS=3000)
        return cls(client, client[db_name])

    def close(self) -> None:
        self.client.close()
