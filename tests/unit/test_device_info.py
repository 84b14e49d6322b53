"""
Unit tests for lidguard.services.device_info.

These tests validate:
- a full snapshot from injected field sources
- failing sources degrade the snapshot instead of raising
- the location timeout falls back to the last known fix
- the public IP / geolocation helpers with mocked HTTP
"""

from __future__ import annotations

import threading
from typing import Optional
from unittest.mock import MagicMock

import requests

from lidguard.core.state.activity_log import ActivityLog, LogCategory
from lidguard.domain.models import GeoLocation
from lidguard.services.device_info import IpGeoLocationProvider, SystemDeviceInfoCollector, fetch_public_ip

HOME = GeoLocation(latitude=52.52, longitude=13.405, accuracy_m=25.0)


class StaticLocation:
    def __init__(self, location: Optional[GeoLocation]) -> None:
        self.location = location
        self.calls = 0

    def request_location(self) -> Optional[GeoLocation]:
        self.calls += 1
        return self.location


class BlockingLocation:
    """Answers once, then blocks until released."""

    def __init__(self) -> None:
        self.release = threading.Event()
        self.calls = 0

    def request_location(self) -> Optional[GeoLocation]:
        self.calls += 1
        if self.calls > 1:
            self.release.wait(timeout=5.0)
        return HOME


class FailingLocation:
    def request_location(self) -> Optional[GeoLocation]:
        raise TimeoutError("no fix")


def _collector(provider, log: Optional[ActivityLog] = None, timeout_s: float = 2.0, **kw) -> SystemDeviceInfoCollector:
    sources = dict(
        public_ip=lambda: "203.0.113.7",
        wifi=lambda: "CafeNet",
        battery=lambda: (64, False),
        device_name=lambda: "work-laptop",
    )
    sources.update(kw)
    return SystemDeviceInfoCollector(location_provider=provider, activity_log=log, timeout_s=timeout_s, **sources)


def test_collect_full_snapshot() -> None:
    log = ActivityLog()
    collector = _collector(StaticLocation(HOME), log)

    snap = collector.collect()
    collector.shutdown()

    assert snap.location == HOME
    assert snap.public_ip == "203.0.113.7"
    assert snap.wifi_name == "CafeNet"
    assert (snap.battery_percent, snap.is_charging) == (64, False)
    assert snap.device_name == "work-laptop"
    assert collector.last_location == HOME
    assert log.entries()[-1].category == LogCategory.LOCATION
    assert log.entries()[-1].message.startswith("Location updated")


def test_failing_sources_degrade_snapshot() -> None:
    def boom():
        raise OSError("unavailable")

    collector = _collector(FailingLocation(), ActivityLog(), public_ip=boom, wifi=lambda: None, battery=boom, device_name=boom)

    snap = collector.collect()
    collector.shutdown()

    assert snap.location is None
    assert snap.public_ip is None
    assert snap.wifi_name is None
    assert snap.battery_percent is None
    assert snap.device_name == "Unknown"
    assert "unavailable" in snap.formatted_message()


def test_location_error_is_logged() -> None:
    log = ActivityLog()
    collector = _collector(FailingLocation(), log)
    collector.collect()
    collector.shutdown()
    assert log.entries()[-1].message == "Location error: TimeoutError"


def test_location_timeout_uses_last_known() -> None:
    provider = BlockingLocation()
    collector = _collector(provider, timeout_s=0.1)

    assert collector.collect().location == HOME
    second = collector.collect()

    provider.release.set()
    collector.shutdown()
    assert second.location == HOME
    assert provider.calls == 2


def test_no_provider_means_no_location() -> None:
    collector = _collector(None)
    collector.warm_up()
    assert collector.collect().location is None
    collector.shutdown()


def test_fetch_public_ip(monkeypatch) -> None:
    mock_response = MagicMock()
    mock_response.text = " 198.51.100.1\n"
    monkeypatch.setattr("requests.get", lambda url, timeout: mock_response)
    assert fetch_public_ip() == "198.51.100.1"


def test_fetch_public_ip_error_returns_none(monkeypatch) -> None:
    def fake_get(url, timeout):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr("requests.get", fake_get)
    assert fetch_public_ip() is None


def test_ip_geolocation_provider(monkeypatch) -> None:
    mock_response = MagicMock()
    mock_response.json.return_value = {"latitude": 48.85, "longitude": 2.35}
    monkeypatch.setattr("requests.get", lambda url, timeout: mock_response)

    assert IpGeoLocationProvider().request_location() == GeoLocation(48.85, 2.35)
