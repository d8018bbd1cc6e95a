import logging
import uuid

from app.schemas.cart import CartChangeEvent
from app.services.cart_feed import CartChangeFeed


def make_event(user_id, event="INSERT"):
    return CartChangeEvent(event=event, user_id=user_id, line_id=uuid.uuid4())


class TestCartChangeFeed:
    def test_delivers_only_to_matching_user(self):
        feed = CartChangeFeed()
        alice, bob = uuid.uuid4(), uuid.uuid4()
        alice_events, bob_events = [], []
        feed.subscribe(alice, alice_events.append)
        feed.subscribe(bob, bob_events.append)

        change = make_event(alice)
        feed.publish(change)

        assert alice_events == [change]
        assert bob_events == []

    def test_unsubscribe_is_idempotent(self):
        feed = CartChangeFeed()
        user_id = uuid.uuid4()
        received = []
        unsubscribe = feed.subscribe(user_id, received.append)

        unsubscribe()
        unsubscribe()
        feed.publish(make_event(user_id))

        assert received == []
        assert feed.subscriber_count(user_id) == 0

    def test_failing_subscriber_does_not_block_others(self, caplog):
        feed = CartChangeFeed()
        user_id = uuid.uuid4()
        received = []

        def broken(_change):
            raise RuntimeError("socket gone")

        feed.subscribe(user_id, broken)
        feed.subscribe(user_id, received.append)

        with caplog.at_level(logging.WARNING, logger="app.services.cart_feed"):
            feed.publish(make_event(user_id, "DELETE"))

        assert len(received) == 1
        assert "subscriber failed" in caplog.text

    def test_publish_without_subscribers(self):
        feed = CartChangeFeed()

        feed.publish(make_event(uuid.uuid4()))

        assert feed.subscriber_count(uuid.uuid4()) == 0
