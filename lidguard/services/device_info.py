from __future__ import annotations

import logging
import socket
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime
from typing import Callable, Optional, Protocol, Tuple

import requests

from lidguard.core.state.activity_log import ActivityLog, LogCategory
from lidguard.domain.models import DeviceInfoSnapshot, GeoLocation
from lidguard.monitors import probes

logger = logging.getLogger(__name__)

PUBLIC_IP_URL = "https://api.ipify.org"
IP_GEOLOCATION_URL = "https://ipapi.co/json/"


class DeviceInfoCollector(Protocol):
    """
    Protocol interface for device telemetry.

    Methods
    -------
    warm_up()
        Best-effort pre-fetch (e.g. prime the location cache).
    collect()
        Assemble a fresh snapshot within a bounded time.
    """

    def warm_up(self) -> None:
        ...

    def collect(self) -> DeviceInfoSnapshot:
        ...


class LocationProvider(Protocol):
    def request_location(self) -> Optional[GeoLocation]:
        ...


class IpGeoLocationProvider:
    """
    Coarse location from IP geolocation.

    Accuracy is unknown (reported as 0), so the accuracy line is omitted.
    """

    def __init__(self, url: str = IP_GEOLOCATION_URL, timeout_s: float = 3.0):
        self._url = url
        self._timeout_s = timeout_s

    def request_location(self) -> Optional[GeoLocation]:
        r = requests.get(self._url, timeout=self._timeout_s)
        r.raise_for_status()
        data = r.json()
        lat, lon = data.get("latitude"), data.get("longitude")
        if lat is None or lon is None:
            return None
        return GeoLocation(latitude=float(lat), longitude=float(lon))


def fetch_public_ip(url: str = PUBLIC_IP_URL, timeout_s: float = 3.0) -> Optional[str]:
    try:
        r = requests.get(url, timeout=timeout_s)
        r.raise_for_status()
    except requests.RequestException as e:
        logger.error("Failed to get public IP: %s", type(e).__name__)
        return None
    ip = r.text.strip()
    return ip or None


def wifi_name() -> Optional[str]:
    try:
        out = subprocess.run(["iwgetid", "-r"], capture_output=True, text=True, timeout=2.0, check=False)
    except (OSError, subprocess.SubprocessError):
        return None
    name = out.stdout.strip()
    return name or None


class SystemDeviceInfoCollector:
    """
    Default device info collector.

    Location is requested on a helper thread and awaited for at most
    ``timeout_s``; on timeout or error the last known location (possibly
    None) is used. Public IP, Wi-Fi and battery are read meanwhile. A failing
    source only removes its field from the snapshot.

    Parameters
    ----------
    location_provider
        Source of geographic fixes (None disables location).
    activity_log
        Receives "Location updated" / "Location error" entries.
    timeout_s
        Upper bound on waiting for a location fix.
    public_ip, wifi, battery, device_name
        Injectable field sources.
    """

    def __init__(
        self,
        location_provider: Optional[LocationProvider] = None,
        activity_log: Optional[ActivityLog] = None,
        timeout_s: float = 5.0,
        public_ip: Callable[[], Optional[str]] = fetch_public_ip,
        wifi: Callable[[], Optional[str]] = wifi_name,
        battery: Callable[[], Optional[Tuple[int, bool]]] = probes.battery,
        device_name: Callable[[], str] = socket.gethostname,
    ):
        self._location_provider = location_provider
        self._log = activity_log
        self._timeout_s = timeout_s
        self._public_ip = public_ip
        self._wifi = wifi
        self._battery = battery
        self._device_name = device_name
        self._pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="device-info")
        self._cache_lock = threading.Lock()
        self._last_location: Optional[GeoLocation] = None

    @property
    def last_location(self) -> Optional[GeoLocation]:
        with self._cache_lock:
            return self._last_location

    def warm_up(self) -> None:
        if self._location_provider is not None:
            self._pool.submit(self._locate)

    def shutdown(self) -> None:
        self._pool.shutdown(wait=False)

    def collect(self) -> DeviceInfoSnapshot:
        location_future = self._pool.submit(self._locate) if self._location_provider is not None else None

        ip = self._safe(self._public_ip, "public IP")
        wifi = self._safe(self._wifi, "Wi-Fi")
        batt = self._safe(self._battery, "battery")
        name = self._safe(self._device_name, "device name") or "Unknown"

        location = None
        if location_future is not None:
            try:
                location = location_future.result(timeout=self._timeout_s)
            except FutureTimeout:
                logger.info("Location timed out, using last known")
                location = self.last_location

        return DeviceInfoSnapshot(
            timestamp=datetime.now(),
            device_name=name,
            location=location,
            public_ip=ip,
            wifi_name=wifi,
            battery_percent=batt[0] if batt else None,
            is_charging=batt[1] if batt else None,
        )

    def _locate(self) -> Optional[GeoLocation]:
        try:
            location = self._location_provider.request_location()  # type: ignore[union-attr]
        except Exception as e:
            logger.error("Location error: %s", type(e).__name__)
            if self._log is not None:
                self._log.append(LogCategory.LOCATION, f"Location error: {type(e).__name__}")
            return self.last_location

        if location is None:
            return self.last_location

        with self._cache_lock:
            self._last_location = location
        if self._log is not None:
            self._log.append(LogCategory.LOCATION, f"Location updated: {location.latitude:.4f}, {location.longitude:.4f}")
        return location

    @staticmethod
    def _safe(fn: Callable, what: str):
        try:
            return fn()
        except Exception as e:
            logger.warning("Failed to read %s: %r", what, e)
            return None
