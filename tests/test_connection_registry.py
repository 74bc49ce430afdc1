"""
Tests for the connection registry and the heartbeat monitor.

Run tests:
    pytest tests/test_connection_registry.py -v
"""

import asyncio

from websocket.heartbeat import HeartbeatMonitor
from websocket.manager import WILDCARD_TOPIC, ConnectionRegistry, MessageType

# ============================================================================
# Registration
# ============================================================================


class TestRegistration:
    def test_register_sends_welcome_with_id(self, make_transport):
        async def scenario():
            registry = ConnectionRegistry()
            transport = make_transport()
            connection_id = await registry.register(transport)
            return registry, transport, connection_id

        registry, transport, connection_id = asyncio.run(scenario())

        assert registry.count() == 1
        assert connection_id.startswith("client_")
        welcome = transport.sent[0]
        assert welcome["type"] == MessageType.CONNECTION.value
        assert welcome["data"]["clientId"] == connection_id
        assert "timestamp" in welcome

    def test_registered_ids_are_unique(self, make_transport):
        async def scenario():
            registry = ConnectionRegistry()
            return [await registry.register(make_transport()) for _ in range(200)]

        ids = asyncio.run(scenario())
        assert len(set(ids)) == len(ids)

    def test_new_connection_starts_without_subscriptions(self, make_transport, clock):
        async def scenario():
            registry = ConnectionRegistry(clock=clock)
            clock.now = 42.0
            connection_id = await registry.register(make_transport())
            return registry, connection_id

        registry, connection_id = asyncio.run(scenario())
        assert registry.subscriptions_of(connection_id) == set()
        assert registry.get(connection_id).last_seen == 42.0

    def test_unregister_is_idempotent(self, make_transport):
        async def scenario():
            registry = ConnectionRegistry()
            connection_id = await registry.register(make_transport())
            registry.unregister(connection_id)
            registry.unregister(connection_id)
            registry.unregister("client_unknown")
            return registry

        assert asyncio.run(scenario()).count() == 0


# ============================================================================
# Subscriptions
# ============================================================================


class TestSubscriptions:
    def test_subscribe_twice_keeps_single_topic(self, make_transport):
        async def scenario():
            registry = ConnectionRegistry()
            connection_id = await registry.register(make_transport())
            await registry.subscribe(connection_id, {"a"})
            await registry.subscribe(connection_id, {"a"})
            return registry.subscriptions_of(connection_id)

        assert asyncio.run(scenario()) == {"a"}

    def test_subscribe_confirms_full_subscription_set(self, make_transport):
        async def scenario():
            registry = ConnectionRegistry()
            transport = make_transport()
            connection_id = await registry.register(transport)
            await registry.subscribe(connection_id, ["alerts"])
            await registry.subscribe(connection_id, ["vessels", WILDCARD_TOPIC])
            return transport

        transport = asyncio.run(scenario())
        confirmations = transport.of_type(MessageType.SUBSCRIPTION_CONFIRMED.value)
        assert len(confirmations) == 2
        assert sorted(confirmations[-1]["data"]["channels"]) == ["alerts", "all", "vessels"]

    def test_subscribe_unknown_connection_is_noop(self):
        registry = ConnectionRegistry()
        assert asyncio.run(registry.subscribe("client_missing", {"a"})) == set()
        assert registry.subscriptions_of("client_missing") == set()

    def test_unsubscribe_removes_only_given_topics(self, make_transport):
        async def scenario():
            registry = ConnectionRegistry()
            connection_id = await registry.register(make_transport())
            await registry.subscribe(connection_id, {"a", "b"})
            registry.unsubscribe(connection_id, {"a", "not-subscribed"})
            registry.unsubscribe("client_missing", {"b"})
            return registry.subscriptions_of(connection_id)

        assert asyncio.run(scenario()) == {"b"}

    def test_touch_updates_liveness(self, make_transport, clock):
        async def scenario():
            registry = ConnectionRegistry(clock=clock)
            connection_id = await registry.register(make_transport())
            clock.advance(10)
            registry.touch(connection_id)
            registry.touch("client_missing")
            return registry.get(connection_id).last_seen

        assert asyncio.run(scenario()) == 10

    def test_close_all_closes_open_transports(self, make_transport):
        async def scenario():
            registry = ConnectionRegistry()
            open_transport = make_transport()
            dropped = make_transport()
            await registry.register(open_transport)
            await registry.register(dropped)
            dropped.drop()
            await registry.close_all()
            return registry, open_transport, dropped

        registry, open_transport, dropped = asyncio.run(scenario())
        assert registry.count() == 0
        assert open_transport.closed_with == (1000, "Server shutting down")
        assert dropped.closed_with is None


# ============================================================================
# Heartbeat
# ============================================================================


class TestHeartbeat:
    def test_silent_connection_is_evicted_and_terminated(self, make_transport, clock):
        async def scenario():
            registry = ConnectionRegistry(clock=clock)
            monitor = HeartbeatMonitor(registry, interval=15, timeout=30)
            stale = make_transport()
            stale_id = await registry.register(stale)
            clock.advance(31)
            fresh = make_transport()
            fresh_id = await registry.register(fresh)
            removed = await monitor.sweep()
            return registry, removed, stale, stale_id, fresh, fresh_id

        registry, removed, stale, stale_id, fresh, fresh_id = asyncio.run(scenario())

        assert removed == 1
        assert registry.get(stale_id) is None
        assert stale.terminated
        assert stale.pings == 0
        assert registry.get(fresh_id) is not None
        assert fresh.pings == 1
        assert not fresh.terminated

    def test_connection_at_timeout_boundary_survives(self, make_transport, clock):
        async def scenario():
            registry = ConnectionRegistry(clock=clock)
            monitor = HeartbeatMonitor(registry, interval=15, timeout=30)
            connection_id = await registry.register(make_transport())
            clock.advance(30)
            await monitor.sweep()
            return registry.get(connection_id)

        assert asyncio.run(scenario()) is not None

    def test_liveness_signal_keeps_connection(self, make_transport, clock):
        async def scenario():
            registry = ConnectionRegistry(clock=clock)
            monitor = HeartbeatMonitor(registry, interval=15, timeout=30)
            connection_id = await registry.register(make_transport())
            clock.advance(20)
            registry.touch(connection_id)
            clock.advance(25)
            await monitor.sweep()
            return registry.get(connection_id)

        assert asyncio.run(scenario()) is not None

    def test_closed_transport_is_removed_without_terminate(self, make_transport, clock):
        async def scenario():
            registry = ConnectionRegistry(clock=clock)
            monitor = HeartbeatMonitor(registry)
            transport = make_transport()
            connection_id = await registry.register(transport)
            transport.drop()
            removed = await monitor.sweep()
            return registry, connection_id, transport, removed

        registry, connection_id, transport, removed = asyncio.run(scenario())
        assert removed == 1
        assert registry.get(connection_id) is None
        assert not transport.terminated

    def test_failed_probe_does_not_stop_other_probes(self, make_transport, clock):
        async def scenario():
            registry = ConnectionRegistry(clock=clock)
            monitor = HeartbeatMonitor(registry)
            broken = make_transport()
            healthy = make_transport()
            await registry.register(broken)
            await registry.register(healthy)
            broken.fail = True
            await monitor.sweep()
            return registry, healthy

        registry, healthy = asyncio.run(scenario())
        assert healthy.pings == 1
        # A failed probe is not an eviction; the timeout handles that later
        assert registry.count() == 2

    def test_start_and_stop(self):
        async def scenario():
            monitor = HeartbeatMonitor(ConnectionRegistry(), interval=3600)
            monitor.start()
            started = monitor.running
            await monitor.stop()
            return started, monitor.running

        assert asyncio.run(scenario()) == (True, False)
