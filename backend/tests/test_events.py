import json

from redis.exceptions import ConnectionError as RedisConnectionError

from salon_booking.services.events import P2P_QUEUE, Audience, RedisOutbox


class FakeRedis:
    def __init__(self):
        self.lists = {}

    def rpush(self, name, value):
        self.lists.setdefault(name, []).append(value)
        return len(self.lists[name])


class DownRedis:
    def rpush(self, name, value):
        raise RedisConnectionError("Connection refused")


def test_enqueue_pushes_json_event():
    redis = FakeRedis()
    outbox = RedisOutbox(redis)

    outbox.enqueue(7, Audience.OWNER, "booked", {"service_name": "Haircut", "start_time": "2030-01-07T10:00:00"})

    [raw] = redis.lists[P2P_QUEUE]
    event = json.loads(raw)
    assert event["type"] == "booking_booked"
    assert event["reservation_id"] == 7
    assert event["audience"] == "owner"
    assert event["service_name"] == "Haircut"
    assert isinstance(event["ts"], int)


def test_enqueue_swallows_redis_errors(caplog):
    outbox = RedisOutbox(DownRedis())

    outbox.enqueue(7, Audience.CLIENT, "confirmation", {})

    assert "Failed to emit event booking_confirmation" in caplog.text
