import unittest
from datetime import datetime, timedelta, timezone

from storychat import stories
from storychat.errors import InvalidRequest
from storychat.kv import InMemoryKvClient
from storychat.records import (
    USERS_LIST_KEY,
    parse_iso,
    story_key,
    to_iso,
    user_key,
    user_stories_key,
)
from storychat.storage import InMemoryStorageClient, UploadedFile

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _story(user_id: str, story_id: str, posted: datetime) -> dict:
    return {
        "id": story_id,
        "userId": user_id,
        "media_url": "",
        "type": "text",
        "text": story_id,
        "timestamp": to_iso(posted),
        "views": [],
        "expires_at": to_iso(posted + timedelta(hours=24)),
    }


class StoryTests(unittest.TestCase):
    def setUp(self):
        self.kv = InMemoryKvClient()
        self.storage = InMemoryStorageClient()
        self.kv.set(USERS_LIST_KEY, ["ada", "bob"])
        self.kv.set(user_key("ada"), {"id": "ada", "name": "Ada"})
        self.kv.set(user_key("bob"), {"id": "bob", "name": "Bob"})

    def put(self, story: dict) -> None:
        self.kv.set(story_key(story["userId"], story["id"]), story)
        ids = self.kv.get(user_stories_key(story["userId"])) or []
        self.kv.set(user_stories_key(story["userId"]), [*ids, story["id"]])

    def test_create_story_expires_after_ttl(self):
        story = stories.create_story(
            self.kv, self.storage, "stories", "ada", text="hi", ttl_hours=24
        )
        posted = parse_iso(story["timestamp"])
        self.assertEqual(parse_iso(story["expires_at"]) - posted, timedelta(hours=24))
        self.assertEqual(self.kv.get(user_stories_key("ada")), [story["id"]])

    def test_create_story_uploads_file(self):
        upload = UploadedFile(filename="pic.webp", content_type="image/webp", data=b"x")
        story = stories.create_story(
            self.kv, self.storage, "stories", "ada", upload=upload, text="caption"
        )
        self.assertEqual(story["type"], "image")
        self.assertEqual(story["text"], "caption")
        ((bucket, path),) = self.storage.stored_objects.keys()
        self.assertEqual(bucket, "stories")
        self.assertTrue(path.startswith("ada-") and path.endswith(".webp"))

    def test_create_story_validation(self):
        with self.assertRaises(InvalidRequest):
            stories.create_story(self.kv, self.storage, "stories", "ada", text="  ")
        with self.assertRaises(InvalidRequest):
            stories.create_story(
                self.kv, self.storage, "stories", "ada", text="x", story_type="video"
            )

    def test_active_stories_grouped_and_ordered(self):
        self.put(_story("ada", "late", NOW - timedelta(hours=1)))
        self.put(_story("ada", "early", NOW - timedelta(hours=5)))
        self.put(_story("ada", "stale", NOW - timedelta(hours=30)))
        self.put(_story("bob", "gone", NOW - timedelta(hours=25)))

        groups = stories.list_active_stories(self.kv, now=NOW)
        self.assertEqual(len(groups), 1)
        self.assertEqual(groups[0]["user"]["name"], "Ada")
        self.assertEqual([s["id"] for s in groups[0]["stories"]], ["early", "late"])

    def test_expiry_boundary_is_exclusive(self):
        self.put(_story("ada", "edge", NOW - timedelta(hours=24)))
        self.assertEqual(stories.list_active_stories(self.kv, now=NOW), [])

    def test_dangling_index_entries_are_skipped(self):
        self.kv.set(user_stories_key("bob"), ["missing"])
        self.put(_story("bob", "ok", NOW))
        groups = stories.list_active_stories(self.kv, now=NOW)
        self.assertEqual([s["id"] for s in groups[0]["stories"]], ["ok"])

    def test_purge_removes_expired_and_dangling(self):
        self.put(_story("ada", "fresh", NOW - timedelta(hours=2)))
        self.put(_story("ada", "stale", NOW - timedelta(hours=48)))
        self.kv.set(
            user_stories_key("bob"),
            ["missing"],
        )
        purged = stories.purge_expired_stories(self.kv, now=NOW)
        self.assertEqual(purged, 2)
        self.assertEqual(self.kv.get(user_stories_key("ada")), ["fresh"])
        self.assertEqual(self.kv.get(user_stories_key("bob")), [])
        self.assertIsNone(self.kv.get(story_key("ada", "stale")))
        self.assertIsNotNone(self.kv.get(story_key("ada", "fresh")))
        self.assertEqual(stories.purge_expired_stories(self.kv, now=NOW), 0)


if __name__ == "__main__":
    unittest.main()
