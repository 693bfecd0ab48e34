"""Blocking broker session on top of paho-mqtt.

paho runs its network loop on a background thread and reports acknowledgements
through callbacks. ``BrokerSession`` turns connect / publish / subscribe /
unsubscribe into calls that block the caller until the broker has acknowledged
them (or raise once ``ack_timeout`` expires). Incoming messages are still
delivered on paho's loop thread, through the handler passed to ``subscribe``.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Protocol

import paho.mqtt.client as mqtt

from retained_cleaner.config import Settings
from retained_cleaner.errors import (
    ConnectError,
    PublishError,
    SubscribeError,
    UnsubscribeError,
)

logger = logging.getLogger(__name__)

#: Handler signature for deliveries: (topic, payload, retained).
MessageHandler = Callable[[str, bytes, bool], None]

DISCONNECT_GRACE_PERIOD = 0.25


class Session(Protocol):
    """The broker capabilities the cleaning passes rely on."""

    def publish(self, topic: str, payload: bytes | str, qos: int = 0, retain: bool = False) -> None: ...

    def subscribe(self, topic_filter: str, qos: int, on_message: MessageHandler) -> None: ...

    def unsubscribe(self, *topic_filters: str) -> None: ...


class _AckTracker:
    """Collects SUBACK / UNSUBACK reason codes keyed by message id.

    paho may run the ack callback before ``subscribe()`` has even returned the
    mid to the caller, so results are stored until somebody claims them.
    Acks for mids whose waiter already timed out are dropped.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._acks: dict[int, list] = {}
        self._abandoned: set[int] = set()

    def resolve(self, mid: int, reason_codes: list) -> None:
        with self._cond:
            if mid in self._abandoned:
                self._abandoned.discard(mid)
                logger.debug("Dropping late ack for mid %d", mid)
                return
            self._acks[mid] = list(reason_codes)
            self._cond.notify_all()

    def wait(self, mid: int, timeout: float) -> list | None:
        """Return the reason codes for *mid*, or None on timeout."""
        with self._cond:
            if not self._cond.wait_for(lambda: mid in self._acks, timeout=timeout):
                self._abandon(mid)
                return None
            return self._acks.pop(mid)

    def abandon(self, mid: int) -> None:
        """Nobody will wait for *mid*; forget its ack whenever it arrives."""
        with self._cond:
            self._abandon(mid)

    def _abandon(self, mid: int) -> None:
        if self._acks.pop(mid, None) is None:
            self._abandoned.add(mid)

    def __len__(self) -> int:
        with self._cond:
            return len(self._acks)


class BrokerSession:
    """One paho client, shared by every pass of a run."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.address = settings.address
        self.ack_timeout = settings.ack_timeout

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            transport=self.address.transport,
        )
        if self.address.transport == "websockets":
            self.client.ws_set_options(path=self.address.path)
        if settings.username:
            self.client.username_pw_set(settings.username, settings.password or None)

        self._connected = threading.Event()
        self._disconnected = threading.Event()
        self._connect_error: str | None = None
        self._subacks = _AckTracker()
        self._unsubacks = _AckTracker()

        self.client.on_connect = self.on_connect
        self.client.on_connect_fail = self.on_connect_fail
        self.client.on_disconnect = self.on_disconnect
        self.client.on_subscribe = self.on_subscribe
        self.client.on_unsubscribe = self.on_unsubscribe

    # ── paho callbacks (network loop thread) ───────────────────────────────

    def on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            self._connect_error = f"broker refused connection: {reason_code}"
        else:
            logger.info("Connected to %s:%d", self.address.host, self.address.port)
        self._connected.set()

    def on_connect_fail(self, client, userdata):
        self._connect_error = "connection attempt failed"
        self._connected.set()

    def on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if reason_code.is_failure:
            logger.warning("Disconnected from broker: %s", reason_code)
        else:
            logger.debug("Disconnected from broker")
        self._disconnected.set()

    def on_subscribe(self, client, userdata, mid, reason_code_list, properties):
        self._subacks.resolve(mid, reason_code_list)

    def on_unsubscribe(self, client, userdata, mid, reason_code_list, properties):
        self._unsubacks.resolve(mid, reason_code_list)

    # ── Lifecycle ───────────────────────────────────────────────────────────

    def connect(self) -> None:
        """Connect and start the network loop; block until CONNACK.

        Raises:
            ConnectError: socket error, refused connection or no CONNACK.
        """
        host, port = self.address.host, self.address.port
        logger.debug("Connecting to %s:%d as %r", host, port, self.settings.client_id)
        try:
            self.client.connect(host, port, self.settings.keepalive)
        except (OSError, ValueError) as exc:
            raise ConnectError(f"cannot connect to {host}:{port}: {exc}") from exc

        self.client.loop_start()
        if not self._connected.wait(self.ack_timeout):
            self.client.loop_stop()
            raise ConnectError(f"no CONNACK from {host}:{port} within {self.ack_timeout}s")
        if self._connect_error:
            self.client.loop_stop()
            raise ConnectError(self._connect_error)

    def disconnect(self, grace_period: float = DISCONNECT_GRACE_PERIOD) -> None:
        """Send DISCONNECT, wait up to *grace_period* for it to go out, stop the loop."""
        if self._connected.is_set() and not self._connect_error:
            self.client.disconnect()
            self._disconnected.wait(grace_period)
        self.client.loop_stop()

    # ── Operations ──────────────────────────────────────────────────────────

    def publish(self, topic: str, payload: bytes | str, qos: int = 0, retain: bool = False) -> None:
        """Publish and wait for the broker's acknowledgement.

        Raises:
            PublishError: the client rejected the message or no ack arrived.
        """
        info = self.client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(f"publish to {topic} failed: {mqtt.error_string(info.rc)}")
        try:
            info.wait_for_publish(timeout=self.ack_timeout)
        except (RuntimeError, ValueError) as exc:
            raise PublishError(f"publish to {topic} failed: {exc}") from exc
        if not info.is_published():
            raise PublishError(f"publish to {topic} not acknowledged within {self.ack_timeout}s")

    def subscribe(self, topic_filter: str, qos: int, on_message: MessageHandler) -> None:
        """Route deliveries matching *topic_filter* to *on_message*, then SUBSCRIBE.

        Raises:
            SubscribeError: refused by the client or broker, or no SUBACK.
        """
        self.client.message_callback_add(topic_filter, self._dispatcher(on_message))

        result, mid = self.client.subscribe(topic_filter, qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self.client.message_callback_remove(topic_filter)
            raise SubscribeError(f"subscribe to {topic_filter} failed: {mqtt.error_string(result)}")

        reason_codes = self._subacks.wait(mid, self.ack_timeout)
        if reason_codes is None:
            self.client.message_callback_remove(topic_filter)
            # best effort: the broker may have applied it anyway
            result, unsub_mid = self.client.unsubscribe(topic_filter)
            if result == mqtt.MQTT_ERR_SUCCESS:
                self._unsubacks.abandon(unsub_mid)
            raise SubscribeError(f"no SUBACK for {topic_filter} within {self.ack_timeout}s")
        refused = [rc for rc in reason_codes if rc.is_failure]
        if refused:
            self.client.message_callback_remove(topic_filter)
            raise SubscribeError(f"broker refused subscription to {topic_filter}: {refused[0]}")
        logger.debug("Subscribed to %s (qos=%d)", topic_filter, qos)

    def unsubscribe(self, *topic_filters: str) -> None:
        """UNSUBSCRIBE from every filter in one request and wait for UNSUBACK.

        Message routes are removed even if the broker does not answer.

        Raises:
            UnsubscribeError: refused by the client or broker, or no UNSUBACK.
        """
        if not topic_filters:
            return
        filters = list(topic_filters)
        try:
            result, mid = self.client.unsubscribe(filters)
            if result != mqtt.MQTT_ERR_SUCCESS:
                raise UnsubscribeError(
                    f"unsubscribe from {', '.join(filters)} failed: {mqtt.error_string(result)}"
                )
            reason_codes = self._unsubacks.wait(mid, self.ack_timeout)
            if reason_codes is None:
                raise UnsubscribeError(
                    f"no UNSUBACK for {', '.join(filters)} within {self.ack_timeout}s"
                )
            refused = [rc for rc in reason_codes if rc.is_failure]
            if refused:
                raise UnsubscribeError(f"broker refused unsubscribe: {refused[0]}")
        finally:
            for topic_filter in filters:
                self.client.message_callback_remove(topic_filter)
        logger.debug("Unsubscribed from %s", ", ".join(filters))

    @staticmethod
    def _dispatcher(on_message: MessageHandler):
        def dispatch(client, userdata, msg):
            try:
                on_message(msg.topic, msg.payload, bool(msg.retain))
            except Exception:
                # an exception escaping here would stop paho's network loop
                logger.exception("Message handler failed for %s", msg.topic)

        return dispatch


@contextmanager
def open_session(settings: Settings) -> Iterator[BrokerSession]:
    """Yield a connected BrokerSession, disconnecting on the way out.

    Raises:
        ConnectError: the connection could not be established.
    """
    session = BrokerSession(settings)
    session.connect()
    try:
        yield session
    finally:
        session.disconnect()
