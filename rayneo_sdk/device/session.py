"""RayNeo device session.

Owns the USB link to the glasses:
- Finds the device, asks for permission, opens it and claims an interface
- Runs the acquire-device-info / open-IMU handshake with bounded waits
- Streams sensor frames through the orientation filter on a dedicated thread
- Reacts to permission, attach and detach events

Status messages and orientation updates are posted to a CallbackDispatcher,
never called from the I/O thread directly. Every failure ends in a status
message and a return to IDLE; calling start() again retries.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

from ..errors import (
    ClaimInterfaceFailedError,
    DeviceNotFoundError,
    EndpointsNotFoundError,
    HandshakeError,
    HandshakeTimeoutError,
    OpenFailedError,
    PermissionDeniedError,
    RayNeoError,
    TransportError,
    UnexpectedDetachError,
)
from ..fusion.orientation import OrientationFilter, SharedOrientation
from ..models import (
    DeviceInfo,
    EndpointSelection,
    Packet,
    Quaternion,
    ResponsePacket,
    SensorPacket,
    SessionState,
    UsbDevice,
    format_device,
)
from ..protocol.assembler import PacketAssembler
from ..protocol.codec import classify, decode_device_info, encode_command, select_endpoints
from ..protocol.constants import (
    CMD_ACQUIRE_DEVICE_INFO,
    CMD_CLOSE_IMU,
    CMD_OPEN_IMU,
    CMD_SWITCH_TO_2D,
    CMD_SWITCH_TO_3D,
    COMMAND_NAMES,
    PRODUCT_ID,
    VENDOR_ID,
)
from ..transport.base import UsbConnection, UsbHost
from .dispatcher import CallbackDispatcher
from .events import DeviceEvent, DeviceEventKind, DeviceEventSource
from .finder import find_single_device, is_matching_device

logger = logging.getLogger(__name__)

MIN_READ_SIZE = 64  # bytes


@dataclass(frozen=True)
class SessionTimings:
    """Timeouts and pacing of the I/O thread, in seconds unless noted.

    Attributes:
        device_info_timeout: Deadline for the acquire-device-info response
        open_imu_timeout: Deadline for the open-IMU acknowledgment
        handshake_read_window: Per-attempt read window while waiting for responses
        warmup_window: Deadline for the first surfaced orientation
        warmup_delay: Filter settle time before the first orientation is surfaced
        stream_read_window: Per-attempt read window while streaming
        usb_read_timeout_ms: Timeout of a single USB read call
        idle_sleep: Pause after a read that returned nothing
        write_timeout_ms: Timeout of a single USB write call
        stop_join_timeout: How long stop() waits for the I/O thread
    """
    device_info_timeout: float = 2.5
    open_imu_timeout: float = 1.5
    handshake_read_window: float = 0.2
    warmup_window: float = 4.0
    warmup_delay: float = 2.0
    stream_read_window: float = 0.25
    usb_read_timeout_ms: int = 50
    idle_sleep: float = 0.005
    write_timeout_ms: int = 1000
    stop_join_timeout: float = 0.6


DEFAULT_TIMINGS = SessionTimings()


@dataclass(eq=False)
class _Link:
    """One opened device, from claim to close.

    `running` is this link's own flag, so a late-exiting I/O thread can never
    stop or close a link opened after it.
    """
    connection: UsbConnection
    selection: EndpointSelection
    device_id: int
    running: threading.Event = field(default_factory=threading.Event)
    assembler: PacketAssembler = field(default_factory=PacketAssembler)
    lock: threading.Lock = field(default_factory=threading.Lock)
    closed: bool = False


class DeviceSession:
    """Connection to one pair of RayNeo glasses.

    Example:
        >>> from rayneo_sdk.transport import PyUsbHost
        >>> session = DeviceSession(
        ...     PyUsbHost(),
        ...     on_status=print,
        ...     on_orientation=lambda q: print(f"w={q[0]:.3f}"),
        ... )
        >>> session.start()
        >>> # Later...
        >>> session.stop()
    """

    def __init__(
        self,
        host: UsbHost,
        on_status: Optional[Callable[[str], None]] = None,
        on_orientation: Optional[Callable[[Quaternion], None]] = None,
        *,
        events: Optional[DeviceEventSource] = None,
        dispatcher: Optional[CallbackDispatcher] = None,
        timings: SessionTimings = DEFAULT_TIMINGS,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
    ):
        """Initialize session.

        Args:
            host: USB host used to enumerate and open devices
            on_status: Receives human-readable status messages
            on_orientation: Receives (w, x, y, z) unit quaternions
            events: Source of permission/attach/detach events, if any
            dispatcher: Where callbacks are posted. If None, the session owns
                one and runs its delivery thread between start() and stop().
            timings: I/O thread timeouts
            vendor_id: USB vendor id to look for
            product_id: USB product id to look for
        """
        self._host = host
        self._on_status = on_status
        self._on_orientation = on_orientation
        self._events = events
        self._owns_dispatcher = dispatcher is None
        self._dispatcher = dispatcher or CallbackDispatcher()
        self._timings = timings
        self._vendor_id = vendor_id
        self._product_id = product_id

        # Lifecycle
        self._lifecycle_lock = threading.Lock()
        self._started = False
        self._unsubscribe_events: Optional[Callable[[], None]] = None

        self._state = SessionState.IDLE
        self._state_lock = threading.Lock()

        # Active link, replaced only under _link_lock
        self._link_lock = threading.Lock()
        self._link: Optional[_Link] = None
        self._io_thread: Optional[threading.Thread] = None

        self._device_info: Optional[DeviceInfo] = None
        self._orientation = SharedOrientation()
        self._pending_commands: queue.Queue[Tuple[int, int]] = queue.Queue()

    # --- Public interface ---

    def start(self) -> None:
        """Look for the glasses and start streaming once access is granted.

        Calling start() on a started session does nothing.
        """
        with self._lifecycle_lock:
            if self._started:
                return
            self._started = True

        if self._owns_dispatcher:
            self._dispatcher.start()
        if self._events is not None:
            self._unsubscribe_events = self._events.subscribe(self.on_device_event)

        try:
            device = find_single_device(
                self._host,
                vendor_id=self._vendor_id,
                product_id=self._product_id,
            )
        except DeviceNotFoundError as e:
            logger.warning(f"{e}")
            self._post_status(str(e))
            return

        self._request_permission_or_start(device)

    def stop(self) -> None:
        """Stop streaming and release the device.

        Waits a bounded time for the I/O thread, then closes the connection
        whether or not the thread has exited. Calling stop() on a stopped
        session does nothing.
        """
        with self._lifecycle_lock:
            if not self._started:
                return
            self._started = False

        # Waits out an open already in progress on another thread
        with self._link_lock:
            link = self._link
            thread = self._io_thread

        if link is not None:
            self._set_state(SessionState.STOPPING)
            link.running.clear()

        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self._timings.stop_join_timeout)
            if thread.is_alive():
                logger.warning("I/O thread did not exit in time, closing connection anyway")
        self._io_thread = None

        if link is not None:
            self._close_link(link)

        if self._unsubscribe_events is not None:
            self._unsubscribe_events()
            self._unsubscribe_events = None

        self._set_state(SessionState.IDLE)
        logger.info("Session stopped")

        if self._owns_dispatcher:
            self._dispatcher.stop()

    def on_device_event(self, event: DeviceEvent) -> None:
        """Handle a platform lifecycle event. Safe to call from any thread."""
        if event.kind is DeviceEventKind.PERMISSION_RESULT:
            if event.granted:
                logger.info(f"USB permission granted for {format_device(event.device)}")
                self._start_streaming(event.device)
            else:
                error = PermissionDeniedError("USB permission denied")
                logger.warning(f"{error}: {format_device(event.device)}")
                self._post_status(str(error))
                self._set_state(SessionState.IDLE, only_from=SessionState.AWAITING_PERMISSION)

        elif event.kind is DeviceEventKind.ATTACHED:
            if not self.is_started:
                return
            if self._is_rayneo(event.device) and not self.is_running:
                logger.info(f"Device attached: {format_device(event.device)}")
                self._request_permission_or_start(event.device)

        elif event.kind is DeviceEventKind.DETACHED:
            link = self._link
            if link is not None and event.device.device_id == link.device_id:
                error = UnexpectedDetachError("RayNeo disconnected")
                logger.warning(f"{error}: {format_device(event.device)}")
                self._post_status(str(error))
                link.running.clear()

    def switch_to_3d(self) -> bool:
        """Ask the glasses to switch the display to side-by-side 3D.

        Returns:
            True if the command was queued (session is streaming)
        """
        return self._queue_command(CMD_SWITCH_TO_3D)

    def switch_to_2d(self) -> bool:
        """Ask the glasses to switch the display to 2D.

        Returns:
            True if the command was queued (session is streaming)
        """
        return self._queue_command(CMD_SWITCH_TO_2D)

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def is_started(self) -> bool:
        with self._lifecycle_lock:
            return self._started

    @property
    def is_running(self) -> bool:
        """True while a link is open and its I/O thread should keep going."""
        link = self._link
        return link is not None and link.running.is_set()

    @property
    def device_info(self) -> Optional[DeviceInfo]:
        """Info from the last successful handshake."""
        return self._device_info

    @property
    def orientation(self) -> Quaternion:
        """Latest published orientation, (w, x, y, z)."""
        return self._orientation.get()

    @property
    def dispatcher(self) -> CallbackDispatcher:
        return self._dispatcher

    def __enter__(self) -> DeviceSession:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # --- Setup (caller or event thread) ---

    def _is_rayneo(self, device: UsbDevice) -> bool:
        return is_matching_device(device, vendor_id=self._vendor_id, product_id=self._product_id)

    def _request_permission_or_start(self, device: UsbDevice) -> None:
        if not self._host.has_permission(device):
            self._set_state(SessionState.AWAITING_PERMISSION)
            self._post_status("Requesting USB permission...")
            self._host.request_permission(device)
            return
        self._start_streaming(device)

    def _start_streaming(self, device: UsbDevice) -> None:
        with self._link_lock:
            if not self.is_started or self.is_running:
                return

            self._set_state(SessionState.OPENING)
            try:
                link = self._open_link(device)
            except RayNeoError as e:
                logger.warning(f"Failed to open {format_device(device)}: {e}")
                self._post_status(str(e))
                self._set_state(SessionState.IDLE)
                return

            self._link = link
            self._device_info = None
            self._orientation.reset()
            self._drain_pending_commands()

            self._io_thread = threading.Thread(
                target=self._io_loop,
                args=(link,),
                daemon=True,
                name="RayNeoUsbThread"
            )
            self._io_thread.start()
            logger.info(f"Opened {format_device(device)} on interface {link.selection.interface.number}")

    def _open_link(self, device: UsbDevice) -> _Link:
        """Open the device, pick endpoints and claim the interface."""
        connection = self._host.open_device(device)
        if connection is None:
            raise OpenFailedError("Failed to open USB device")

        selection = select_endpoints(device)
        if selection is None:
            connection.close()
            raise EndpointsNotFoundError("Could not find IN/OUT endpoints")

        if not connection.claim_interface(selection.interface, force=True):
            connection.close()
            raise ClaimInterfaceFailedError("Failed to claim USB interface")

        link = _Link(connection=connection, selection=selection, device_id=device.device_id)
        link.running.set()
        return link

    def _close_link(self, link: _Link) -> None:
        """Release the interface and close the connection, once."""
        with link.lock:
            if link.closed:
                return
            link.closed = True
            try:
                link.connection.release_interface(link.selection.interface)
            except Exception as e:
                logger.warning(f"Error releasing interface: {e}")
            try:
                link.connection.close()
            except Exception as e:
                logger.warning(f"Error closing connection: {e}")
            link.assembler.clear()

        link.running.clear()
        with self._link_lock:
            if self._link is link:
                self._link = None

    # --- I/O thread ---

    def _io_loop(self, link: _Link) -> None:
        logger.debug("I/O thread started")
        try:
            self._set_state(SessionState.HANDSHAKING)
            self._post_status("Initializing protocol...")
            info = self._initialize_protocol(link)
            if info is None:
                return
            self._device_info = info

            orientation_filter = OrientationFilter(board_id=info.board_id)
            self._post_status(
                f"Streaming board=0x{info.board_id:02X}, "
                f"imuRotX={orientation_filter.mounting.angle_deg:+.1f} deg"
            )
            self._set_state(SessionState.STREAMING)

            first_orientation_at = time.monotonic() + self._timings.warmup_delay
            if not self._acquire_initial_pose(link, orientation_filter, first_orientation_at):
                if link.running.is_set():
                    self._post_status("No initial IMU sample")
                return

            while link.running.is_set():
                self._send_pending_commands(link)
                packet = self._read_packet(link, self._timings.stream_read_window)
                if isinstance(packet, SensorPacket):
                    self._publish_orientation(orientation_filter.update(packet.sample))

        except HandshakeError as e:
            if link.running.is_set():
                logger.warning(f"Handshake failed: {e}")
                self._post_status(f"Initialization failed: {e}")
        except TransportError as e:
            if link.running.is_set():
                logger.warning(f"Lost device: {e}")
                self._post_status("RayNeo disconnected")
        except Exception as e:
            logger.exception("Unexpected error in I/O thread")
            self._post_status(f"USB error: {e}")
        finally:
            self._send_best_effort(link, CMD_CLOSE_IMU)
            self._close_link(link)
            with self._link_lock:
                # A newer link may already be opening
                if self._link is None:
                    self._set_state(
                        SessionState.IDLE,
                        only_from=(SessionState.HANDSHAKING, SessionState.STREAMING, SessionState.STOPPING),
                    )
            logger.debug("I/O thread exiting")

    def _initialize_protocol(self, link: _Link) -> Optional[DeviceInfo]:
        """Run the handshake.

        Returns:
            DeviceInfo, or None if a response did not arrive in time
            (already reported)

        Raises:
            HandshakeError: A command could not be written
        """
        self._send_handshake_command(link, CMD_ACQUIRE_DEVICE_INFO)
        info = self._wait_for(link, self._timings.device_info_timeout, self._match_device_info)
        if info is None:
            self._report_handshake_timeout(link, "device info", self._timings.device_info_timeout)
            return None

        if info.side_by_side:
            self._post_status("Device reports side-by-side mode enabled")

        self._send_handshake_command(link, CMD_OPEN_IMU)
        ack = self._wait_for(
            link,
            self._timings.open_imu_timeout,
            lambda packet: self._match_ack(packet, CMD_OPEN_IMU),
        )
        if ack is None:
            self._report_handshake_timeout(
                link, "open IMU acknowledgment", self._timings.open_imu_timeout
            )
            return None

        return info

    def _report_handshake_timeout(self, link: _Link, step: str, timeout: float) -> None:
        if not link.running.is_set():
            return
        error = HandshakeTimeoutError(step, timeout)
        logger.warning(f"Handshake failed: {error}")
        self._post_status(f"Initialization failed: {error}")

    @staticmethod
    def _match_device_info(packet: Packet) -> Optional[DeviceInfo]:
        if isinstance(packet, ResponsePacket) and packet.cmd == CMD_ACQUIRE_DEVICE_INFO:
            return decode_device_info(packet.raw)
        return None

    @staticmethod
    def _match_ack(packet: Packet, expected_cmd: int) -> Optional[ResponsePacket]:
        if isinstance(packet, ResponsePacket) and packet.cmd == expected_cmd:
            return packet
        return None

    def _wait_for(self, link: _Link, timeout: float, match: Callable[[Packet], Optional[object]]):
        """Read packets until `match` returns something or the deadline passes."""
        deadline = time.monotonic() + timeout
        while link.running.is_set() and time.monotonic() < deadline:
            packet = self._read_packet(link, self._timings.handshake_read_window)
            if packet is None:
                continue
            result = match(packet)
            if result is not None:
                return result
        return None

    def _acquire_initial_pose(
        self,
        link: _Link,
        orientation_filter: OrientationFilter,
        first_orientation_at: float,
    ) -> bool:
        """Feed the filter until it has settled, then publish the first pose."""
        self._post_status("Waiting for IMU warmup...")
        deadline = time.monotonic() + self._timings.warmup_window
        while link.running.is_set() and time.monotonic() < deadline:
            packet = self._read_packet(link, self._timings.handshake_read_window)
            if isinstance(packet, SensorPacket):
                q = orientation_filter.update(packet.sample)
                if time.monotonic() >= first_orientation_at:
                    self._publish_orientation(q)
                    return True
        return False

    def _read_packet(self, link: _Link, window: float) -> Optional[Packet]:
        """Return the next framed packet, reading from USB as needed.

        Returns:
            Packet, or None if nothing complete arrived within `window`
        """
        endpoint = link.selection.in_endpoint
        read_size = max(endpoint.max_packet_size, MIN_READ_SIZE)
        deadline = time.monotonic() + window

        while link.running.is_set() and time.monotonic() < deadline:
            frame = link.assembler.next_packet()
            if frame is not None:
                return classify(frame)

            chunk = link.connection.bulk_read(endpoint, read_size, self._timings.usb_read_timeout_ms)
            if chunk:
                link.assembler.append(chunk)
            else:
                time.sleep(self._timings.idle_sleep)
        return None

    def _send_command(self, link: _Link, cmd: int, arg: int = 0) -> bool:
        endpoint = link.selection.out_endpoint
        packet = encode_command(cmd, arg, endpoint.max_packet_size)
        with link.lock:
            if link.closed:
                return False
            written = link.connection.bulk_write(endpoint, packet, self._timings.write_timeout_ms)
        return written == len(packet)

    def _send_handshake_command(self, link: _Link, cmd: int) -> None:
        if not self._send_command(link, cmd):
            raise HandshakeError(f"Failed to send {COMMAND_NAMES[cmd]} command")

    def _send_best_effort(self, link: _Link, cmd: int) -> None:
        try:
            if not self._send_command(link, cmd):
                logger.debug(f"Best-effort {COMMAND_NAMES[cmd]} command not delivered")
        except Exception as e:
            logger.debug(f"Best-effort {COMMAND_NAMES[cmd]} command failed: {e}")

    def _queue_command(self, cmd: int, arg: int = 0) -> bool:
        if self.state is not SessionState.STREAMING:
            logger.warning(f"Cannot send {COMMAND_NAMES[cmd]}, not streaming")
            return False
        self._pending_commands.put((cmd, arg))
        return True

    def _send_pending_commands(self, link: _Link) -> None:
        while True:
            try:
                cmd, arg = self._pending_commands.get_nowait()
            except queue.Empty:
                return
            if self._send_command(link, cmd, arg):
                logger.info(f"Sent {COMMAND_NAMES[cmd]} command")
            else:
                logger.warning(f"Failed to send {COMMAND_NAMES[cmd]} command")

    def _drain_pending_commands(self) -> None:
        while True:
            try:
                self._pending_commands.get_nowait()
            except queue.Empty:
                return

    # --- State & delivery ---

    def _set_state(self, state: SessionState, only_from=None) -> None:
        if isinstance(only_from, SessionState):
            only_from = (only_from,)
        with self._state_lock:
            if only_from is not None and self._state not in only_from:
                return
            if self._state is not state:
                logger.debug(f"State {self._state.value} -> {state.value}")
                self._state = state

    def _post_status(self, message: str) -> None:
        logger.info(message)
        if self._on_status is not None:
            self._dispatcher.post(self._on_status, message)

    def _publish_orientation(self, q: Quaternion) -> None:
        self._orientation.set(q)
        if self._on_orientation is not None:
            self._dispatcher.post(self._on_orientation, q)
