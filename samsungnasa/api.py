"""HTTP-facing operations of the bridge: JSON documents for devices, sensors and control."""

from __future__ import annotations

import json
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from samsungnasa.bridge import ControlRequest, SamsungACBridge
from samsungnasa.processing import FanMode, Mode, Preset

NAME = "Samsung AC HTTP Bridge"
VERSION = "1.0.0"

JSON_TYPE = "application/json"
TEXT_TYPE = "text/plain"

_CORS_ORIGIN = {"Access-Control-Allow-Origin": "*"}
_CORS_ALL = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

_MISSING_ADDRESS = '{"error":"Missing address parameter"}'
_MISSING_BODY = '{"error":"Missing JSON body"}'
_INVALID_JSON = '{"error":"Invalid JSON"}'
_MISSING_ADDRESS_FIELD = '{"error":"Missing address field"}'
_DEVICE_NOT_FOUND = '{"error":"Device not found"}'

_PRESET_NAMES = {
    Preset.NONE: "none",
    Preset.Sleep: "sleep",
    Preset.Quiet: "quiet",
    Preset.Fast: "fast",
    Preset.Longreach: "longreach",
    Preset.Eco: "eco",
    Preset.Windfree: "windfree",
}
_PRESETS_BY_NAME = {name: preset for preset, name in _PRESET_NAMES.items()}


def preset_to_string(preset: Union[Preset, int]) -> str:
    """The name a preset has in the JSON API, or ``"unknown"``."""
    try:
        return _PRESET_NAMES[Preset(preset)]
    except (ValueError, KeyError):
        return "unknown"


def string_to_preset(text: str) -> Preset:
    """The preset named ``text``; unknown names mean no preset."""
    return _PRESETS_BY_NAME.get(text, Preset.NONE)


@dataclass
class ApiResponse:
    """Status, content type, body and headers of one HTTP answer."""

    status: int
    body: str = ""
    content_type: str = JSON_TYPE
    headers: dict[str, str] = field(default_factory=lambda: dict(_CORS_ORIGIN))

    def json(self) -> Any:
        """The body parsed as JSON."""
        return json.loads(self.body)


def _round1(value: float) -> float:
    """Round to one decimal, halves away from zero."""
    return math.copysign(math.floor(abs(value) * 10.0 + 0.5), value) / 10.0


def _pretty(document: Any) -> str:
    return json.dumps(document, indent=2)


def _as_bool(value: Any) -> bool:
    if isinstance(value, (bool, int, float)):
        return bool(value)
    return False


def _as_int(value: Any) -> int:
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return 0


def _as_float(value: Any) -> float:
    if isinstance(value, (bool, int, float)):
        return float(value)
    return 0.0


def _coerce(enum_cls: type, value: int) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        return value


class BridgeApi:
    """Answers the bridge's HTTP requests from the state a SamsungACBridge holds.

    ``clock`` returns seconds; uptime is counted from construction.
    """

    def __init__(
        self,
        bridge: SamsungACBridge,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.bridge = bridge
        self._clock = clock
        self._started = clock()

    @property
    def uptime(self) -> int:
        return int(self._clock() - self._started)

    def info(self) -> ApiResponse:
        document = {"name": NAME, "version": VERSION, "uptime": self.uptime}
        return ApiResponse(200, _pretty(document))

    def devices(self) -> ApiResponse:
        bridge = self.bridge
        document = {
            "devices": [
                {
                    "address": address,
                    "type": bridge.get_device_type(address),
                    "online": bridge.is_device_online(address),
                }
                for address in bridge.get_discovered_devices()
            ]
        }
        return ApiResponse(200, _pretty(document))

    def device(self, address: Optional[str]) -> ApiResponse:
        if address is None:
            return ApiResponse(400, _MISSING_ADDRESS)
        bridge = self.bridge
        if not bridge.is_device_known(address):
            return ApiResponse(404, _pretty({"error": "Device not found"}))
        state = bridge.get_device_state(address)
        document = {
            "address": address,
            "online": bridge.is_device_online(address),
            "power": state.power,
            "mode": int(state.mode),
            "target_temperature": _round1(state.target_temperature),
            "room_temperature": _round1(state.room_temperature),
            "fan_mode": int(state.fan_mode),
            "swing_vertical": state.swing_vertical,
            "swing_horizontal": state.swing_horizontal,
            "preset": preset_to_string(state.preset),
        }
        return ApiResponse(200, _pretty(document))

    def control(self, body: Optional[str]) -> ApiResponse:
        if not body:
            return ApiResponse(400, _MISSING_BODY)
        try:
            document = json.loads(body)
        except ValueError:
            return ApiResponse(400, _INVALID_JSON)
        if not isinstance(document, dict) or "address" not in document:
            return ApiResponse(400, _MISSING_ADDRESS_FIELD)

        raw_address = document["address"]
        address = raw_address if isinstance(raw_address, str) else json.dumps(raw_address)
        if not self.bridge.is_device_known(address):
            return ApiResponse(404, _DEVICE_NOT_FOUND)

        request = ControlRequest()
        if "power" in document:
            request.power = _as_bool(document["power"])
        if "mode" in document:
            request.mode = _coerce(Mode, _as_int(document["mode"]))
        if "target_temperature" in document:
            request.target_temperature = _as_float(document["target_temperature"])
        if "fan_mode" in document:
            request.fan_mode = _coerce(FanMode, _as_int(document["fan_mode"]))
        if "swing_vertical" in document:
            request.swing_vertical = _as_bool(document["swing_vertical"])
        if "swing_horizontal" in document:
            request.swing_horizontal = _as_bool(document["swing_horizontal"])
        if "preset" in document:
            preset = document["preset"]
            if isinstance(preset, str):
                request.preset = string_to_preset(preset)
            else:
                request.preset = _coerce(Preset, _as_int(preset))

        success = self.bridge.control_device(address, request)
        answer: dict[str, Any] = {"success": success}
        if not success:
            answer["error"] = "Failed to send command"
        return ApiResponse(200 if success else 500, _pretty(answer))

    def sensors(self, address: Optional[str]) -> ApiResponse:
        if address is None:
            return ApiResponse(400, _MISSING_ADDRESS)
        if not self.bridge.is_device_known(address):
            return ApiResponse(404, _DEVICE_NOT_FOUND)
        state = self.bridge.get_device_state(address)
        document = {
            "address": address,
            "room_temperature": _round1(state.room_temperature),
            "target_temperature": _round1(state.target_temperature),
            "outdoor_temperature": _round1(state.outdoor_temperature),
            "eva_in_temperature": _round1(state.eva_in_temperature),
            "eva_out_temperature": _round1(state.eva_out_temperature),
            "error_code": state.error_code,
            "instantaneous_power": state.instantaneous_power,
            "cumulative_energy": state.cumulative_energy,
            "current": state.current,
            "voltage": state.voltage,
        }
        return ApiResponse(200, _pretty(document))

    def status_update(self) -> Optional[str]:
        """Compact JSON status of the online units, or None when no unit is known."""
        bridge = self.bridge
        addresses = bridge.get_discovered_devices()
        if not addresses:
            return None
        entries = []
        for address in addresses:
            if not bridge.is_device_online(address):
                continue
            state = bridge.get_device_state(address)
            entry: dict[str, Any] = {
                "addr": address,
                "type": bridge.get_device_type(address),
                "power": state.power,
                "mode": int(state.mode),
                "temp_target": _round1(state.target_temperature),
                "temp_room": _round1(state.room_temperature),
                "fan": int(state.fan_mode),
                "preset": preset_to_string(state.preset),
            }
            if address.startswith("10."):
                entry["temp_outdoor"] = _round1(state.outdoor_temperature)
                entry["power_instant"] = state.instantaneous_power
                entry["current"] = state.current
                entry["voltage"] = state.voltage
            entries.append(entry)
        document = {"devices": entries, "timestamp": self.uptime}
        return json.dumps(document, separators=(",", ":"))

    def handle(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
    ) -> ApiResponse:
        """Route one request to the matching endpoint."""
        query = query or {}
        method = method.upper()
        if path == "/" and method == "OPTIONS":
            return ApiResponse(200, "", TEXT_TYPE, dict(_CORS_ALL))
        if method == "GET":
            if path == "/":
                return self.info()
            if path == "/devices":
                return self.devices()
            if path == "/device":
                return self.device(query.get("address"))
            if path == "/device/sensors":
                return self.sensors(query.get("address"))
        if method == "POST" and path == "/device/control":
            return self.control(body)
        return ApiResponse(404, "Not Found", TEXT_TYPE, dict(_CORS_ALL))