"""Tests for the command line entry points."""

from unittest.mock import patch

from inventory_messaging import cli
from inventory_messaging.envelope import MessageEnvelope
from inventory_messaging.lifecycle import EXIT_FAILURE, EXIT_SUCCESS


def test_send_main_publishes_one_envelope():
    with patch("inventory_messaging.cli.LifecycleController") as controller_class:
        controller = controller_class.from_env.return_value
        controller.run_publisher.return_value = EXIT_SUCCESS

        exit_code = cli.send_main(["--item-id", "macbook", "--text", "check availability"])

    assert exit_code == EXIT_SUCCESS
    controller.run_publisher.assert_called_once_with(
        "inventory_check", MessageEnvelope(item_id="macbook", text="check availability")
    )


def test_receive_main_runs_consumer():
    with patch("inventory_messaging.cli.LifecycleController") as controller_class:
        controller = controller_class.from_env.return_value
        controller.run_consumer.return_value = EXIT_SUCCESS

        exit_code = cli.receive_main(["--subscription", "audit_listener"])

    assert exit_code == EXIT_SUCCESS
    controller.run_consumer.assert_called_once_with("audit_listener")


def test_missing_configuration_exits_with_failure(monkeypatch):
    monkeypatch.delenv("RABBITMQ_URL", raising=False)
    monkeypatch.delenv("RABBITMQ_HOST", raising=False)

    assert cli.send_main([]) == EXIT_FAILURE
    assert cli.receive_main([]) == EXIT_FAILURE
