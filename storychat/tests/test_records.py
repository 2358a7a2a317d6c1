import re
import unittest
from datetime import datetime, timezone

from storychat.kv import InMemoryKvClient
from storychat.records import (
    append_unique,
    chat_id_for,
    new_record_id,
    parse_iso,
    to_iso,
    upload_name,
)


class RecordHelperTests(unittest.TestCase):
    def test_chat_id_is_order_independent(self):
        self.assertEqual(chat_id_for("b", "a"), "a_b")
        self.assertEqual(chat_id_for("a", "b"), chat_id_for("b", "a"))

    def test_record_id_shape(self):
        self.assertRegex(new_record_id(), re.compile(r"^\d{13}_[a-z0-9]{9}$"))

    def test_iso_round_trip(self):
        moment = datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
        text = to_iso(moment)
        self.assertEqual(text, "2026-01-02T03:04:05.678Z")
        self.assertEqual(parse_iso(text), moment)
        self.assertIsNone(parse_iso("not a date"))
        self.assertIsNone(parse_iso(None))

    def test_naive_timestamps_are_utc(self):
        self.assertEqual(
            parse_iso("2026-01-02T03:04:05"),
            datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )

    def test_upload_name_keeps_extension(self):
        self.assertRegex(upload_name("u1", "photo.JPG"), r"^u1-\d+\.JPG$")

    def test_append_unique(self):
        kv = InMemoryKvClient()
        append_unique(kv, "users:list", "a")
        append_unique(kv, "users:list", "b")
        append_unique(kv, "users:list", "a")
        self.assertEqual(kv.get("users:list"), ["a", "b"])


if __name__ == "__main__":
    unittest.main()
