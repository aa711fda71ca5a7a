"""Line-oriented serial link to the rover's Arduino.

Uses only pyserial.  The firmware speaks newline-terminated ASCII in both
directions, so this layer only deals in text lines; framing of individual
records is the protocol module's job.
"""

from __future__ import annotations

import threading
from typing import Optional

import serial

from sipi_shared.constants import (
    SERIAL_BAUD_RATE,
    SERIAL_MAX_LINE_LENGTH,
    SERIAL_READ_TIMEOUT,
)


class SerialLinkError(Exception):
    """Base exception for serial link failures."""


class SerialLinkClosedError(SerialLinkError):
    """I/O attempted while the port is not open."""


class SerialLink:
    """Newline-framed text transport over a serial port.

    Thread-safe: all serial I/O is guarded by a lock.  The bridge drives it
    from a single timer callback, plus the occasional joint-angle write from
    a subscription callback.

    Args:
        port: Serial device path (e.g. ``/dev/ttyUSB0``).
        baud_rate: Serial baud rate.
        read_timeout: Per-read timeout in seconds.
    """

    def __init__(
        self,
        port: str,
        baud_rate: int = SERIAL_BAUD_RATE,
        read_timeout: float = SERIAL_READ_TIMEOUT,
    ) -> None:
        self.port = port
        self.baud_rate = baud_rate
        self.read_timeout = read_timeout
        self._lock = threading.Lock()
        self._serial: Optional[serial.Serial] = None
        self._partial = ""

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Open the serial port."""
        with self._lock:
            if self._serial is not None and self._serial.is_open:
                return
            try:
                self._serial = serial.Serial(
                    port=self.port,
                    baudrate=self.baud_rate,
                    timeout=self.read_timeout,
                )
            except (serial.SerialException, OSError) as exc:
                raise SerialLinkError(f"Cannot open {self.port}: {exc}") from exc
            self._partial = ""

    def close(self) -> None:
        """Close the serial port."""
        with self._lock:
            if self._serial is not None and self._serial.is_open:
                self._serial.close()
            self._serial = None
            self._partial = ""

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._serial is not None and self._serial.is_open

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    def send(self, text: str) -> None:
        """Write *text* to the port as ASCII."""
        with self._lock:
            port = self._require_open()
            try:
                port.write(text.encode("ascii"))
            except (serial.SerialException, OSError) as exc:
                raise SerialLinkError(f"Write failed on {self.port}: {exc}") from exc

    def read_lines(self) -> list:
        """Return every complete line received so far, without terminators.

        A trailing partial line is buffered and completed by a later call,
        unless it grows past ``SERIAL_MAX_LINE_LENGTH``, in which case it is
        dropped.

        Undecodable bytes are replaced rather than raising; the protocol
        layer discards whatever line they end up in.
        """
        with self._lock:
            port = self._require_open()
            try:
                data = port.read(max(1, port.in_waiting))
            except (serial.SerialException, OSError) as exc:
                raise SerialLinkError(f"Read failed on {self.port}: {exc}") from exc

            text = self._partial + data.decode("ascii", errors="replace")
            *lines, self._partial = text.split("\n")
            if len(self._partial) > SERIAL_MAX_LINE_LENGTH:
                self._partial = ""
        return [line.rstrip("\r") for line in lines]

    def _require_open(self) -> serial.Serial:
        if self._serial is None or not self._serial.is_open:
            raise SerialLinkClosedError(f"Serial port {self.port} is not open")
        return self._serial
