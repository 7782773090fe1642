"""In-memory stand-ins for the clock and for peer connections."""


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeHandle:
    """Stands in for PeerHandle; records every frame it is sent."""

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        self.sent = []
        self.is_open = True
        self.closed_with = None

    def __repr__(self):
        return f"FakeHandle({self.connection_id})"

    async def send(self, message: dict) -> bool:
        if not self.is_open:
            return False
        self.sent.append(message)
        return True

    async def close(self, code: int = 1000, reason: str = ""):
        self.is_open = False
        self.closed_with = (code, reason)

    def of_type(self, message_type: str) -> list:
        return [message for message in self.sent if message["type"] == message_type]

    def last(self) -> dict:
        return self.sent[-1]

