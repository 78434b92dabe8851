"""HTTP server and UDP status broadcasting around a bridge on a serial port."""

from __future__ import annotations

import argparse
import json
import logging
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional, Sequence
from urllib.parse import parse_qs, urlsplit

from samsungnasa.api import ApiResponse, BridgeApi
from samsungnasa.bridge import DEFAULT_DEVICE_TIMEOUT, SamsungACBridge

logger = logging.getLogger(__name__)

DEFAULT_HTTP_PORT = 80
DEFAULT_BAUD_RATE = 2400
DEFAULT_UDP_INTERVAL = 5.0
_LOOP_PAUSE = 0.01


class _BridgeServer(ThreadingHTTPServer):
    """HTTP server that carries the API and the lock guarding the bridge."""

    daemon_threads = True

    def __init__(self, address: tuple[str, int], api: BridgeApi) -> None:
        super().__init__(address, BridgeRequestHandler)
        self.api = api
        self.lock = threading.Lock()


class BridgeRequestHandler(BaseHTTPRequestHandler):
    """Hands every HTTP request to the server's BridgeApi."""

    server: _BridgeServer

    def _read_body(self) -> Optional[str]:
        length = int(self.headers.get("Content-Length") or 0)
        if length <= 0:
            return None
        return self.rfile.read(length).decode("utf-8", errors="replace")

    def _dispatch(self) -> None:
        parts = urlsplit(self.path)
        query = {
            key: values[0]
            for key, values in parse_qs(parts.query, keep_blank_values=True).items()
        }
        body = self._read_body()
        with self.server.lock:
            response = self.server.api.handle(self.command, parts.path or "/", query, body)
        self._send(response)

    def _send(self, response: ApiResponse) -> None:
        payload = response.body.encode("utf-8")
        self.send_response(response.status)
        self.send_header("Content-Type", response.content_type)
        self.send_header("Content-Length", str(len(payload)))
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(payload)

    do_GET = _dispatch
    do_POST = _dispatch
    do_PUT = _dispatch
    do_DELETE = _dispatch
    do_OPTIONS = _dispatch

    def log_message(self, format: str, *args: object) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


def send_status_update(
    api: BridgeApi, sock: socket.socket, target: tuple[str, int]
) -> Optional[int]:
    """Send the compact status of the online units to ``target`` over UDP.

    Returns the number of bytes sent, or None when there was nothing to send.
    """
    document = api.status_update()
    if document is None:
        return None
    payload = document.encode("utf-8")
    sent = sock.sendto(payload, target)
    logger.debug("UDP status sent to %s:%d, %d bytes", target[0], target[1], sent)
    return sent


def make_server(api: BridgeApi, host: str = "", port: int = DEFAULT_HTTP_PORT) -> _BridgeServer:
    """An HTTP server answering requests with ``api``; call ``serve_forever`` to run it."""
    return _BridgeServer((host, port), api)


def _udp_target(text: str) -> tuple[str, int]:
    host, colon, port_text = text.rpartition(":")
    if not colon or not host:
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {text!r}")
    try:
        port = int(port_text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port in {text!r}") from None
    if not 0 < port < 65536:
        raise argparse.ArgumentTypeError(f"invalid port in {text!r}")
    return host, port


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="samsungnasa",
        description="Serve the state of Samsung air conditioners on a NASA bus over HTTP.",
    )
    parser.add_argument("--serial", required=True, help="serial device or pyserial URL")
    parser.add_argument("--baud", type=int, default=DEFAULT_BAUD_RATE, help="baud rate")
    parser.add_argument("--host", default="", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_HTTP_PORT, help="HTTP port")
    parser.add_argument(
        "--device-timeout",
        type=float,
        default=DEFAULT_DEVICE_TIMEOUT,
        help="seconds after which a silent unit counts as offline",
    )
    parser.add_argument(
        "--udp-target", type=_udp_target, default=None, help="HOST:PORT for status updates"
    )
    parser.add_argument(
        "--udp-interval",
        type=float,
        default=DEFAULT_UDP_INTERVAL,
        help="seconds between status updates",
    )
    parser.add_argument("--verbose", action="store_true", help="log debug output")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the bridge until interrupted."""
    args = _parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    import serial

    port = serial.serial_for_url(
        args.serial,
        baudrate=args.baud,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_EVEN,
        stopbits=serial.STOPBITS_ONE,
        timeout=0.1,
    )
    bridge = SamsungACBridge(port=port, device_timeout=args.device_timeout)
    api = BridgeApi(bridge)
    server = make_server(api, args.host, args.port)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    logger.info("HTTP server started on port %d", server.server_address[1])

    udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM) if args.udp_target else None
    last_broadcast = time.monotonic()
    try:
        while True:
            with server.lock:
                bridge.loop()
            if udp is not None and time.monotonic() - last_broadcast >= args.udp_interval:
                with server.lock:
                    try:
                        send_status_update(api, udp, args.udp_target)
                    except OSError as error:
                        logger.warning("UDP status update failed: %s", error)
                last_broadcast = time.monotonic()
            time.sleep(_LOOP_PAUSE)
    except KeyboardInterrupt:
        logger.info("stopping")
    finally:
        server.shutdown()
        server.server_close()
        if udp is not None:
            udp.close()
        port.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())