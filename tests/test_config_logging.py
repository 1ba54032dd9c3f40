import json
import logging
import os
import unittest
from unittest.mock import patch

from app.config import get_env_bool, get_env_int, load_config
from app.core.logger import JsonFormatter, PlainFormatter, get_logger


class TestConfig(unittest.TestCase):

    def test_env_overrides(self):
        env = {"DB_PATH": "/tmp/other.db", "MAX_STAKE": "500", "RATE_LIMIT_ENABLED": "false"}
        with patch.dict(os.environ, env):
            config = load_config()
        self.assertEqual(str(config.paths.get_db_path()), "/tmp/other.db")
        self.assertEqual(config.ledger.max_stake, 500)
        self.assertFalse(config.rate_limit.enabled)

    def test_env_helpers_fall_back(self):
        with patch.dict(os.environ, {"SOME_INT": "abc", "SOME_FLAG": "Yes"}):
            self.assertEqual(get_env_int("SOME_INT", 7), 7)
            self.assertTrue(get_env_bool("SOME_FLAG"))
            self.assertFalse(get_env_bool("MISSING_FLAG"))


class TestLogging(unittest.TestCase):

    def make_record(self, **extra):
        record = logging.LogRecord("flip-ledger.rooms", logging.INFO, __file__, 1, "Room created", None, None)
        record.__dict__.update(extra)
        return record

    def test_json_formatter_carries_extra_fields(self):
        line = JsonFormatter().format(self.make_record(room_id="r1", stake=100))
        data = json.loads(line)
        self.assertEqual(data["message"], "Room created")
        self.assertEqual(data["room_id"], "r1")
        self.assertEqual(data["stake"], 100)
        self.assertNotIn("lineno", data)

    def test_plain_formatter(self):
        line = PlainFormatter().format(self.make_record(identity="0xabc"))
        self.assertIn("Room created [identity=0xabc]", line)

    def test_child_loggers(self):
        self.assertEqual(get_logger("rooms").name, "flip-ledger.rooms")


if __name__ == "__main__":
    unittest.main()
