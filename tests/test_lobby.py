import unittest

from app.core.exceptions import NotFound
from app.core.models import RoomStatus
from support import LedgerTestCase


class TestLobby(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.accounts.register("0xhost", "Hosty")
        self.accounts.apply_delta("0xhost", 500)
        self.fund("0xjoiner", 500)

    def test_active_rooms_include_host_summary(self):
        room = self.rooms.create_room("0xhost", 25)

        rooms = self.lobby.list_active_rooms()

        self.assertEqual(len(rooms), 1)
        self.assertEqual(rooms[0].id, room.id)
        self.assertEqual(rooms[0].status, RoomStatus.WAITING)
        self.assertEqual(rooms[0].host.display_name, "Hosty")
        self.assertEqual(rooms[0].host.identity, "0xhost")

    def test_listing_reflects_latest_state(self):
        room = self.rooms.create_room("0xhost", 25)
        self.rooms.join_room(room.id, "0xjoiner")
        self.assertEqual(self.lobby.list_active_rooms()[0].status, RoomStatus.PLAYING)

        self.script(True)
        self.coinflip.resolve_room(room.id)
        self.assertEqual(self.lobby.list_active_rooms(), [])

    def test_get_room_with_game(self):
        room = self.rooms.create_room("0xhost", 25)
        self.assertIsNone(self.lobby.get_room(room.id).game)

        self.rooms.join_room(room.id, "0xjoiner")
        summary = self.lobby.get_room(room.id)

        self.assertEqual(summary.status, RoomStatus.PLAYING)
        self.assertEqual(summary.game.player2_id, self.accounts.get("0xjoiner").id)

    def test_get_missing_room(self):
        with self.assertRaises(NotFound):
            self.lobby.get_room("missing")

    def test_balance_passthrough(self):
        self.assertEqual(self.lobby.get_balance("0xHOST"), 500)
        with self.assertRaises(NotFound):
            self.lobby.get_balance("0xnobody")


if __name__ == "__main__":
    unittest.main()
