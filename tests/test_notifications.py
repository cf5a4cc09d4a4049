import logging

import requests

from scrapeledger import notifications
from scrapeledger.notifications import build_message, notify_run_finished
from scrapeledger.schemas import RunEnvironment


ENV = RunEnvironment(run_id="run-1", dataset_id="ds-1")


class FakeResponse:
    status_code = 200

    def raise_for_status(self) -> None:
        pass


def test_message_uses_plural_for_several_categories() -> None:
    message = build_message("Acme", ENV, ["Shoes", "Bags"])

    assert message["subject"] == "Data ready for Acme and categories: Shoes, Bags"
    assert "<b>Acme</b>" in message["html"]
    assert "Dataset: ds-1" in message["html"]
    assert "category:" in build_message("Acme", ENV, ["Shoes"])["subject"]


def test_nothing_is_sent_outside_managed_environment(test_settings, monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(notifications.requests, "post", lambda *args, **kwargs: calls.append(args))

    assert notify_run_finished(test_settings, "Acme", ENV, ["Shoes"]) is False
    assert calls == []


def test_notification_is_posted_to_webhook(home_settings, monkeypatch) -> None:
    captured = {}

    def fake_post(url, json, timeout):
        captured.update(url=url, json=json, timeout=timeout)
        return FakeResponse()

    monkeypatch.setattr(notifications.requests, "post", fake_post)

    assert notify_run_finished(home_settings, "Acme", ENV, ["Shoes"]) is True
    assert captured["url"] == "https://hooks.example/notify"
    assert captured["timeout"] == home_settings.notify_timeout_seconds
    assert captured["json"]["subject"].startswith("Data ready for Acme")


def test_notification_failure_is_logged_not_raised(home_settings, monkeypatch, caplog) -> None:
    def failing_post(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(notifications.requests, "post", failing_post)

    with caplog.at_level(logging.ERROR):
        assert notify_run_finished(home_settings, "Acme", ENV, ["Shoes"]) is False

    assert "run notification failed" in caplog.text
