from __future__ import annotations

import asyncio
import unittest
from datetime import timedelta

from inkfeed.core.exceptions import NotFoundError
from inkfeed.core.redis_client import RedisClient
from inkfeed.feed.session import FeedSession
from inkfeed.store.base import BatchOperation, matches
from inkfeed.store.documents import INTERACTIONS, NOTEBOOKS, USER_FEED_STATE
from inkfeed.store.memory import InMemoryDocumentStore
from inkfeed.store.redis_store import DocumentKeys, RedisDocumentStore, decode_document, encode_document
from tests.fake_redis import FakeRedis, FakeRedisClient
from tests.support import NOW, FixedClock, make_settings


class MatchesTestCase(unittest.TestCase):
    def test_operators(self) -> None:
        doc = {"n": 3, "tags": ["a", "b"], "ownerId": "u1"}
        self.assertTrue(matches(doc, "n", "==", 3))
        self.assertTrue(matches(doc, "n", "!=", 4))
        self.assertTrue(matches(doc, "n", "<", 4))
        self.assertTrue(matches(doc, "n", ">=", 3))
        self.assertTrue(matches(doc, "ownerId", "in", ["u1", "u2"]))
        self.assertTrue(matches(doc, "tags", "array-contains", "b"))
        self.assertFalse(matches(doc, "n", "array-contains", 3))

    def test_missing_field_and_incomparable_types_do_not_match(self) -> None:
        doc = {"n": 3}
        self.assertFalse(matches(doc, "missing", "==", None))
        self.assertFalse(matches(doc, "n", "<", "x"))

    def test_unknown_operator(self) -> None:
        with self.assertRaises(ValueError):
            matches({"n": 1}, "n", "~=", 1)


class InMemoryDocumentStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryDocumentStore()

    def test_set_get_returns_copies(self) -> None:
        async def scenario() -> None:
            await self.store.set("c", "1", {"tags": ["x"]})
            doc = await self.store.get("c", "1")
            doc["tags"].append("y")
            self.assertEqual(await self.store.get("c", "1"), {"tags": ["x"]})
            self.assertIsNone(await self.store.get("c", "2"))

        asyncio.run(scenario())

    def test_query_sorted_by_id(self) -> None:
        async def scenario() -> None:
            await self.store.set("c", "b", {"public": True})
            await self.store.set("c", "a", {"public": True})
            await self.store.set("c", "z", {"public": False})
            self.assertEqual(await self.store.query("c", "public", "==", True), [{"public": True}] * 2)
            self.assertEqual(await self.store.query("other", "public", "==", True), [])

        asyncio.run(scenario())

    def test_update_merges_and_requires_existing(self) -> None:
        async def scenario() -> None:
            await self.store.set("c", "1", {"a": 1, "b": 2})
            await self.store.update("c", "1", {"b": 3})
            self.assertEqual(await self.store.get("c", "1"), {"a": 1, "b": 3})
            with self.assertRaises(NotFoundError):
                await self.store.update("c", "missing", {"b": 3})

        asyncio.run(scenario())

    def test_batch_is_all_or_nothing(self) -> None:
        async def scenario() -> None:
            with self.assertRaises(NotFoundError):
                await self.store.batch(
                    [
                        BatchOperation.set("c", "1", {"a": 1}),
                        BatchOperation.update("c", "missing", {"a": 2}),
                    ]
                )
            self.assertIsNone(await self.store.get("c", "1"))

            await self.store.batch(
                [
                    BatchOperation.set("c", "1", {"a": 1}),
                    BatchOperation.update("c", "1", {"b": 2}),
                ]
            )
            self.assertEqual(await self.store.get("c", "1"), {"a": 1, "b": 2})

        asyncio.run(scenario())


class DocumentCodecTestCase(unittest.TestCase):
    def test_datetimes_survive_encoding(self) -> None:
        doc = {"createdAt": NOW, "nested": {"at": NOW - timedelta(days=1)}, "n": 1}
        self.assertEqual(decode_document(encode_document(doc)), doc)

    def test_sets_and_tuples_become_lists(self) -> None:
        decoded = decode_document(encode_document({"tags": {"x"}, "pair": ("a", "b")}))
        self.assertEqual(decoded, {"tags": ["x"], "pair": ["a", "b"]})

    def test_unsupported_type_rejected(self) -> None:
        with self.assertRaises(TypeError):
            encode_document({"x": object()})


class RedisDocumentStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.redis = FakeRedis()
        self.store = RedisDocumentStore(FakeRedisClient(self.redis), DocumentKeys.with_prefix("test:"))

    def test_client_requires_connect(self) -> None:
        with self.assertRaises(RuntimeError):
            RedisClient(make_settings()).client

    def test_default_keys_follow_configured_prefix(self) -> None:
        cfg = make_settings(FEED_KEY_PREFIX="tenant-a:")
        self.assertIs(RedisClient(cfg).settings, cfg)

        redis = FakeRedis()
        store = RedisDocumentStore(FakeRedisClient(redis, cfg))
        self.assertEqual(store.keys.prefix, "tenant-a:")

        asyncio.run(store.set(NOTEBOOKS, "n1", {"id": "n1"}))
        self.assertEqual(redis.keys_snapshot(), {"tenant-a:doc:notebooks:n1", "tenant-a:idx:notebooks"})

    def test_keys_use_prefix(self) -> None:
        keys = DocumentKeys.with_prefix("inkfeed:")
        self.assertEqual(keys.document("notebooks", "n1"), "inkfeed:doc:notebooks:n1")
        self.assertEqual(keys.index("notebooks"), "inkfeed:idx:notebooks")
        self.assertEqual(DocumentKeys.with_prefix(None).prefix, "")

    def test_set_get_and_query(self) -> None:
        async def scenario() -> None:
            await self.store.set(NOTEBOOKS, "n2", {"id": "n2", "isPublic": True, "createdAt": NOW})
            await self.store.set(NOTEBOOKS, "n1", {"id": "n1", "isPublic": True, "createdAt": NOW})
            await self.store.set(NOTEBOOKS, "n3", {"id": "n3", "isPublic": False, "createdAt": NOW})

            self.assertEqual(await self.store.get(NOTEBOOKS, "n1"), {"id": "n1", "isPublic": True, "createdAt": NOW})
            self.assertIsNone(await self.store.get(NOTEBOOKS, "nope"))
            public = await self.store.query(NOTEBOOKS, "isPublic", "==", True)
            self.assertEqual([d["id"] for d in public], ["n1", "n2"])

        asyncio.run(scenario())
        self.assertEqual(
            self.redis.keys_snapshot(),
            {"test:doc:notebooks:n1", "test:doc:notebooks:n2", "test:doc:notebooks:n3", "test:idx:notebooks"},
        )

    def test_update_merges_fields(self) -> None:
        async def scenario() -> None:
            await self.store.set(NOTEBOOKS, "n1", {"title": "t", "likeCount": 0})
            await self.store.update(NOTEBOOKS, "n1", {"likeCount": 3})
            self.assertEqual(await self.store.get(NOTEBOOKS, "n1"), {"title": "t", "likeCount": 3})

        asyncio.run(scenario())

    def test_update_missing_document_writes_nothing(self) -> None:
        async def scenario() -> None:
            with self.assertRaises(NotFoundError):
                await self.store.batch(
                    [
                        BatchOperation.set(INTERACTIONS, "i1", {"userId": "u1"}),
                        BatchOperation.update(NOTEBOOKS, "ghost", {"likeCount": 1}),
                    ]
                )

        asyncio.run(scenario())
        self.assertEqual(self.redis.keys_snapshot(), set())

    def test_batch_writes_in_single_pipeline(self) -> None:
        async def scenario() -> None:
            await self.store.set(NOTEBOOKS, "n1", {"likeCount": 0})
            before = self.redis.executed_pipelines
            await self.store.batch(
                [
                    BatchOperation.set(INTERACTIONS, "i1", {"userId": "u1", "timestamp": NOW}),
                    BatchOperation.update(NOTEBOOKS, "n1", {"likeCount": 1}),
                    BatchOperation.update(NOTEBOOKS, "n1", {"viewCount": 2}),
                ]
            )
            # 一次读 pipeline + 一次写 pipeline
            self.assertEqual(self.redis.executed_pipelines - before, 2)
            self.assertEqual(await self.store.get(NOTEBOOKS, "n1"), {"likeCount": 1, "viewCount": 2})
            self.assertEqual(await self.store.get(INTERACTIONS, "i1"), {"userId": "u1", "timestamp": NOW})

        asyncio.run(scenario())

    def test_feed_session_round_trip(self) -> None:
        clock = FixedClock()

        async def scenario() -> None:
            await self.store.set(
                NOTEBOOKS,
                "n1",
                {
                    "id": "n1",
                    "ownerId": "owner",
                    "isPublic": True,
                    "createdAt": NOW - timedelta(hours=2),
                    "description": "a b c",
                    "pages": [{"id": "p1", "content": "hello"}],
                },
            )
            session = await FeedSession.load(self.store, "viewer", clock=clock)
            session.toggle_like("n1")
            session.record_view("n1", 30)
            await session.flush()

            reloaded = await FeedSession.load(self.store, "viewer", clock=clock)
            item = reloaded.get_item("n1")
            self.assertTrue(item.is_liked)
            self.assertEqual(item.like_count, 1)
            self.assertEqual(item.view_count, 1)
            self.assertEqual(item.time_spent_seconds, 30)
            self.assertEqual(len(reloaded.interactions), 3)
            state = await self.store.get(USER_FEED_STATE, "viewer")
            self.assertEqual(state["likedItemIds"], ["n1"])

        asyncio.run(scenario())


if __name__ == "__main__":
    unittest.main()
