import asyncio
import unittest

from recipe_vault_chat.messages import AssistantMessage, UserMessage
from recipe_vault_chat.sessions import SessionStore


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class SessionStoreTests(unittest.TestCase):
    def test_new_and_existing_sessions(self) -> None:
        async def go():
            store = SessionStore()
            first = await store.append_user_message("c1", UserMessage.from_text("hi"))
            second = await store.append_user_message("c1", UserMessage.from_text("again"))
            return first, second

        (history1, new1), (history2, new2) = asyncio.run(go())

        self.assertTrue(new1)
        self.assertFalse(new2)
        self.assertEqual(["hi"], [m.text for m in history1])
        self.assertEqual(["hi", "again"], [m.text for m in history2])

    def test_snapshot_is_independent_of_store(self) -> None:
        async def go():
            store = SessionStore()
            snapshot, _ = await store.append_user_message("c1", UserMessage.from_text("hi"))
            snapshot.append(AssistantMessage(content="not persisted"))
            return await store.get_history("c1")

        self.assertEqual(1, len(asyncio.run(go())))

    def test_capacity_evicts_least_recently_used(self) -> None:
        clock = _Clock()

        async def go():
            store = SessionStore(capacity=200, clock=clock)
            for i in range(201):
                clock.now += 1
                await store.append_user_message(f"c{i}", UserMessage.from_text("hi"))
            return store

        store = asyncio.run(go())

        self.assertEqual(200, len(store))
        self.assertNotIn("c0", store)
        self.assertIn("c1", store)
        self.assertIn("c200", store)

    def test_touching_a_session_protects_it_from_eviction(self) -> None:
        clock = _Clock()

        async def go():
            store = SessionStore(capacity=200, clock=clock)
            for i in range(200):
                clock.now += 1
                await store.append_user_message(f"c{i}", UserMessage.from_text("hi"))
            clock.now += 1
            await store.append_user_message("c0", UserMessage.from_text("still here"))
            for i in (200, 201):
                clock.now += 1
                await store.append_user_message(f"c{i}", UserMessage.from_text("hi"))
            return store

        store = asyncio.run(go())

        self.assertEqual(200, len(store))
        self.assertIn("c0", store)
        self.assertNotIn("c1", store)
        self.assertNotIn("c2", store)
        self.assertIn("c201", store)

    def test_equal_timestamps_evict_in_access_order(self) -> None:
        clock = _Clock()

        async def go():
            store = SessionStore(capacity=2, clock=clock)
            for cid in ("a", "b", "c"):
                await store.append_user_message(cid, UserMessage.from_text("hi"))
            return store

        store = asyncio.run(go())

        self.assertNotIn("a", store)
        self.assertIn("b", store)
        self.assertIn("c", store)

    def test_idle_sessions_expire(self) -> None:
        clock = _Clock()

        async def go():
            store = SessionStore(ttl_seconds=60, clock=clock)
            await store.append_user_message("old", UserMessage.from_text("hi"))
            clock.now += 61
            _, is_new = await store.append_user_message("old", UserMessage.from_text("hello?"))
            history = await store.get_history("old")
            return is_new, history

        is_new, history = asyncio.run(go())

        self.assertTrue(is_new)
        self.assertEqual(["hello?"], [m.text for m in history])

    def test_append_messages_to_missing_session_is_noop(self) -> None:
        async def go():
            store = SessionStore()
            await store.append_messages("gone", [AssistantMessage(content="late")])
            return len(store), await store.get_history("gone")

        self.assertEqual((0, None), asyncio.run(go()))

    def test_append_messages_and_remove(self) -> None:
        async def go():
            store = SessionStore()
            await store.append_user_message("c1", UserMessage.from_text("hi"))
            await store.append_messages("c1", [AssistantMessage(content="hello")])
            history = await store.get_history("c1")
            await store.remove("c1")
            await store.remove("c1")
            return history, "c1" in store

        history, still_there = asyncio.run(go())

        self.assertEqual(2, len(history))
        self.assertEqual("hello", history[1].content)
        self.assertFalse(still_there)

    def test_invalid_capacity(self) -> None:
        with self.assertRaises(ValueError):
            SessionStore(capacity=0)


if __name__ == "__main__":
    unittest.main()
