"""Tests for Subscription and Delivery."""

from unittest.mock import Mock

import pytest

from inventory_messaging.consumer import Delivery, Subscription
from inventory_messaging.contracts import IBrokerConnection
from inventory_messaging.envelope import DeliveryOutcome
from inventory_messaging.errors import (
    DeliveryAlreadyResolvedError,
    InvalidContentError,
    SubscriptionError,
)
from inventory_messaging.topology import BrokerTopology, ConnectionConfig


@pytest.fixture
def mock_connection():
    connection = Mock(spec=IBrokerConnection)
    connection.topology = BrokerTopology.inventory(ConnectionConfig(host="localhost"))
    connection.consumer_channel.return_value.basic_consume.return_value = "ctag-1"
    return connection


@pytest.fixture
def subscription(mock_connection):
    return Subscription(mock_connection, "inventory_listener")


def deliver(subscription, body, delivery_tag=7, message_id="m-1"):
    method = Mock(delivery_tag=delivery_tag, redelivered=False)
    properties = Mock(message_id=message_id)
    subscription._on_delivery(Mock(), method, properties, body)


def test_delivery_resolves_exactly_once():
    settle = Mock()
    delivery = Delivery(body=b"{}", delivery_tag=3, message_id="m", redelivered=False, settle=settle)

    delivery.resolve(DeliveryOutcome.ACKNOWLEDGED)

    with pytest.raises(DeliveryAlreadyResolvedError):
        delivery.resolve(DeliveryOutcome.REJECTED_NO_REQUEUE)
    settle.assert_called_once_with(3, DeliveryOutcome.ACKNOWLEDGED)
    assert delivery.outcome is DeliveryOutcome.ACKNOWLEDGED


def test_start_requires_message_handler(subscription, mock_connection):
    with pytest.raises(SubscriptionError):
        subscription.start()

    mock_connection.consumer_channel.assert_not_called()


def test_start_configures_prefetch_and_consumer(subscription, mock_connection):
    channel = mock_connection.consumer_channel.return_value

    subscription.on_message(Mock()).start()

    channel.basic_qos.assert_called_once_with(prefetch_count=1)
    channel.basic_consume.assert_called_once_with(
        queue="product_inventory",
        on_message_callback=subscription._on_delivery,
        auto_ack=False,
    )
    channel.add_on_cancel_callback.assert_called_once_with(subscription._on_cancelled)
    assert subscription.consumer_tag == "ctag-1"


def test_decoded_content_goes_to_message_handler(subscription, mock_connection):
    received = []

    def handler(delivery, content):
        received.append((delivery.message_id, content))
        delivery.resolve(DeliveryOutcome.ACKNOWLEDGED)

    subscription.on_message(handler)

    deliver(subscription, b'{"item_id": "macbook", "text": "ok"}')

    assert received == [("m-1", {"item_id": "macbook", "text": "ok"})]
    mock_connection.settle.assert_called_once_with(7, DeliveryOutcome.ACKNOWLEDGED)


def test_invalid_content_goes_to_invalid_content_handler(subscription, mock_connection):
    message_handler = Mock()
    invalid_handler = Mock(
        side_effect=lambda error, delivery: delivery.resolve(DeliveryOutcome.REJECTED_NO_REQUEUE)
    )
    subscription.on_message(message_handler).on_invalid_content(invalid_handler)

    deliver(subscription, b"{not json")

    message_handler.assert_not_called()
    error = invalid_handler.call_args.args[0]
    assert isinstance(error, InvalidContentError)
    mock_connection.settle.assert_called_once_with(7, DeliveryOutcome.REJECTED_NO_REQUEUE)


def test_invalid_content_without_handler_is_rejected(subscription, mock_connection):
    subscription.on_message(Mock())

    deliver(subscription, b"\xff")

    mock_connection.settle.assert_called_once_with(7, DeliveryOutcome.REJECTED_NO_REQUEUE)


def test_failing_handler_delivery_is_rejected(subscription, mock_connection):
    subscription.on_message(Mock(side_effect=RuntimeError("boom")))

    deliver(subscription, b"{}")

    mock_connection.settle.assert_called_once_with(7, DeliveryOutcome.REJECTED_NO_REQUEUE)


def test_handler_that_resolves_then_fails_is_not_resolved_again(subscription, mock_connection):
    def handler(delivery, content):
        delivery.resolve(DeliveryOutcome.ACKNOWLEDGED)
        raise RuntimeError("after ack")

    subscription.on_message(handler)

    deliver(subscription, b"{}")

    mock_connection.settle.assert_called_once_with(7, DeliveryOutcome.ACKNOWLEDGED)


def test_handler_may_resolve_later(subscription, mock_connection):
    pending = []
    subscription.on_message(lambda delivery, content: pending.append(delivery))

    deliver(subscription, b"{}", delivery_tag=1)
    deliver(subscription, b"{}", delivery_tag=2)

    mock_connection.settle.assert_not_called()
    pending[1].resolve(DeliveryOutcome.ACKNOWLEDGED)
    pending[0].resolve(DeliveryOutcome.REJECTED_REQUEUE)
    assert [c.args for c in mock_connection.settle.call_args_list] == [
        (2, DeliveryOutcome.ACKNOWLEDGED),
        (1, DeliveryOutcome.REJECTED_REQUEUE),
    ]


def test_settle_failure_goes_to_error_handler(subscription, mock_connection):
    errors = []
    mock_connection.settle.side_effect = SubscriptionError("channel closed")
    subscription.on_message(
        lambda delivery, content: delivery.resolve(DeliveryOutcome.ACKNOWLEDGED)
    ).on_error(errors.append)

    deliver(subscription, b"{}")

    assert [str(error) for error in errors] == ["channel closed"]
    mock_connection.settle.assert_called_once()


def test_broker_cancel_is_reported(subscription, mock_connection):
    errors = []
    subscription.on_message(Mock()).on_error(errors.append).start()

    subscription._on_cancelled(Mock())

    assert len(errors) == 1
    assert subscription.consumer_tag is None
    mock_connection.report_error.assert_called_once()
    assert mock_connection.report_error.call_args.kwargs == {"fatal": True}


def test_cancel_stops_consumer_once(subscription, mock_connection):
    channel = mock_connection.consumer_channel.return_value
    subscription.on_message(Mock()).start()

    subscription.cancel()
    subscription.cancel()

    channel.basic_cancel.assert_called_once_with("ctag-1")


def test_unexpected_decode_failure_takes_invalid_content_path(mock_connection):
    codec = Mock()
    codec.decode.side_effect = RecursionError("too deep")
    subscription = Subscription(mock_connection, "inventory_listener", codec=codec)
    invalid_handler = Mock(
        side_effect=lambda error, delivery: delivery.resolve(DeliveryOutcome.REJECTED_NO_REQUEUE)
    )
    message_handler = Mock()
    subscription.on_message(message_handler).on_invalid_content(invalid_handler)

    deliver(subscription, b"[[[")

    message_handler.assert_not_called()
    error = invalid_handler.call_args.args[0]
    assert isinstance(error, InvalidContentError)
    assert isinstance(error.__cause__, RecursionError)
    mock_connection.settle.assert_called_once_with(7, DeliveryOutcome.REJECTED_NO_REQUEUE)


def test_delivery_without_message_handler_is_requeued(subscription, mock_connection):
    errors = []
    subscription.on_error(errors.append)

    deliver(subscription, b'{"item_id": "macbook", "text": "ok"}')

    assert len(errors) == 1
    assert "No message handler" in str(errors[0])
    mock_connection.settle.assert_called_once_with(7, DeliveryOutcome.REJECTED_REQUEUE)
