"""Tests for install events and the event hub."""

from __future__ import annotations

from lgpm.events import BatchFinished, EventHub, ModuleInstalled, PackageInstallFinished


class TestEventModels:
    """Tests for event payloads."""

    def test_module_installed(self):
        event = ModuleInstalled(path="/m/waku/waku.so", is_core_module=True)

        assert event.event_type == "module.installed"
        assert event.timestamp_utc.tzinfo is not None
        assert event.model_dump()["path"] == "/m/waku/waku.so"

    def test_package_finished_defaults(self):
        event = PackageInstallFinished(batch_id="b", package="waku", success=True)

        assert event.error == ""
        assert event.error_code is None
        assert not event.skipped

    def test_batch_finished_json(self):
        event = BatchFinished(batch_id="b", packages=["a"], success=False, failed=["a"])

        assert '"failed":["a"]' in event.model_dump_json()


class TestEventHub:
    """Tests for subscribe/publish."""

    def test_fan_out(self):
        hub = EventHub()
        first, second = [], []
        hub.subscribe(first.append)
        hub.subscribe(second.append)
        event = ModuleInstalled(path="x", is_core_module=False)

        delivered = hub.publish(event)

        assert delivered == 2
        assert first == [event] and second == [event]

    def test_unsubscribe(self):
        hub = EventHub()
        seen = []
        unsubscribe = hub.subscribe(seen.append)

        unsubscribe()
        unsubscribe()
        hub.publish(ModuleInstalled(path="x", is_core_module=True))

        assert seen == []
        assert hub.subscriber_count == 0

    def test_failing_subscriber_is_isolated(self, caplog):
        hub = EventHub()
        seen = []

        def broken(event):
            raise ValueError("boom")

        hub.subscribe(broken)
        hub.subscribe(seen.append)

        delivered = hub.publish(ModuleInstalled(path="x", is_core_module=True))

        assert delivered == 1
        assert len(seen) == 1
        assert "module.installed" in caplog.text
