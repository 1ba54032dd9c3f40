import random

from locust import HttpUser, task, between

# Every simulated user shares this small pool of wallets so requests race
# on the same accounts and rooms.
WALLETS = [f"0xload{i:02d}" for i in range(8)]


class LedgerUser(HttpUser):
    wait_time = between(0.1, 0.5)
    host = "http://127.0.0.1:8000"

    def on_start(self):
        """Register and fund every shared wallet (idempotent)."""
        for wallet in WALLETS:
            self.client.post("/api/users", json={"wallet_address": wallet}, name="/api/users [register]")
            self.client.patch(
                "/api/users",
                json={"wallet_address": wallet, "balance_change": 100},
                name="/api/users [deposit]",
            )

    @task(3)
    def solo_flip(self):
        wallet = random.choice(WALLETS)
        with self.client.post(
            "/api/game/flip",
            json={"wallet_address": wallet, "amount": random.randint(1, 20)},
            catch_response=True,
        ) as response:
            # Losing the race for funds is an expected outcome, not a failure
            if response.status_code in (200, 400, 429):
                response.success()

    @task(2)
    def host_room(self):
        wallet = random.choice(WALLETS)
        with self.client.post(
            "/api/rooms",
            json={"wallet_address": wallet, "stake": random.randint(1, 20)},
            catch_response=True,
        ) as response:
            if response.status_code in (201, 400, 429):
                response.success()

    @task(2)
    def join_and_flip(self):
        rooms = self.client.get("/api/rooms").json()
        waiting = [r for r in rooms if r["status"] == "WAITING"]
        if not waiting:
            return
        room = random.choice(waiting)
        joiner = random.choice([w for w in WALLETS if w != room["host"]["identity"]])

        with self.client.patch(
            f"/api/rooms/{room['id']}",
            json={"wallet_address": joiner},
            name="/api/rooms/[id] [join]",
            catch_response=True,
        ) as response:
            # 409: another user joined first
            if response.status_code in (200, 400, 409, 429):
                response.success()
            if response.status_code != 200:
                return

        with self.client.post(
            f"/api/rooms/{room['id']}/flip",
            name="/api/rooms/[id]/flip",
            catch_response=True,
        ) as response:
            if response.status_code in (200, 400, 409, 429):
                response.success()

    @task(1)
    def check_health(self):
        self.client.get("/api/health")
