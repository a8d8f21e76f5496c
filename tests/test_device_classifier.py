"""Tests for user-agent classification and composite device signatures."""

import pytest

from app.services.device_classifier import (
    build_device_signature,
    classify_device,
    classify_device_type,
    classify_os,
    signature_device_type,
    signature_os,
)
from tests.conftest import DESKTOP_UA, IPHONE_UA

IPAD_UA = (
    "Mozilla/5.0 (iPad; CPU OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
)
ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.6099.144 Mobile Safari/537.36"
)
MAC_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Safari/605.1.15"
)


class TestClassifyDeviceType:
    """Ordered device rules: tablet, then mobile, then desktop."""

    def test_tablet_wins_over_mobile(self) -> None:
        """An iPad UA also says Mobile but is a tablet."""
        assert classify_device_type(IPAD_UA) == "tablet"

    def test_mobile(self) -> None:
        assert classify_device_type(IPHONE_UA) == "mobile"
        assert classify_device_type(ANDROID_UA) == "mobile"

    def test_desktop_fallback(self) -> None:
        assert classify_device_type(DESKTOP_UA) == "desktop"
        assert classify_device_type("curl/8.4.0") == "desktop"

    def test_empty_is_unknown(self) -> None:
        assert classify_device_type("") == "unknown"
        assert classify_device_type(None) == "unknown"


class TestClassifyOs:
    """Ordered OS rules: Android, iOS, Windows, MacOS, Other."""

    @pytest.mark.parametrize(
        ("ua", "expected"),
        [
            (ANDROID_UA, "Android"),
            (IPHONE_UA, "iOS"),
            (IPAD_UA, "iOS"),
            (DESKTOP_UA, "Windows"),
            (MAC_UA, "MacOS"),
            ("Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0", "Other"),
            (None, "Other"),
        ],
    )
    def test_labels(self, ua: str | None, expected: str) -> None:
        assert classify_os(ua) == expected

    def test_iphone_is_ios_even_though_it_says_mac_os_x(self) -> None:
        """iOS is checked before MacOS."""
        assert "Mac OS X" in IPHONE_UA
        assert classify_os(IPHONE_UA) == "iOS"

    def test_classify_device_combines_both(self) -> None:
        info = classify_device(ANDROID_UA)
        assert info.device_type == "mobile"
        assert info.os == "Android"


class TestDeviceSignature:
    """Composite ``device | OS | browser`` signature used by the security log."""

    def test_desktop_chrome_on_windows(self) -> None:
        signature = build_device_signature(DESKTOP_UA)
        assert signature.startswith("desktop | Windows 10 | Chrome 120")

    def test_signature_round_trips_through_helpers(self) -> None:
        signature = build_device_signature(ANDROID_UA)
        assert signature_device_type(signature) == "mobile"
        assert classify_os(signature_os(signature)) == "Android"

    def test_missing_user_agent_defaults_to_desktop(self) -> None:
        assert build_device_signature(None) == "desktop"
        assert signature_os("desktop") is None

    def test_empty_signature_is_unknown(self) -> None:
        assert signature_device_type(None) == "unknown"
        assert signature_device_type("") == "unknown"
