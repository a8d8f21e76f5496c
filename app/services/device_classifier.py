"""User-agent heuristics for device, OS and browser breakdowns.

All rules are plain ordered tables: the first matching rule wins. Matching is
case-insensitive substring/regex matching, which is good enough for
dashboard share-of-traffic numbers and nothing more.

Device precedence: tablet, mobile, desktop (fallback).
OS precedence: Android, iOS, Windows, MacOS, Other (fallback).
"""

import re
from dataclasses import dataclass

UNKNOWN_DEVICE = "unknown"
DESKTOP = "desktop"
OTHER_OS = "Other"

OS_LABELS = ("Android", "iOS", "Windows", "MacOS", OTHER_OS)

# Tablets first: many tablet UAs also contain "mobile"
DEVICE_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "tablet",
        re.compile(
            r"ipad|tablet|sm-p|sm-t|sgp|lg-v|kf[a-z0-9]+|silk|lenovo yt-|shield tablet"
            r"|k1 build|gt-p|tab|playbook|crkey|nest hub"
        ),
    ),
    ("mobile", re.compile(r"mobile")),
)

OS_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Android", ("android",)),
    ("iOS", ("iphone", "ipad", "ipod", "ios", "iphone os")),
    ("Windows", ("windows nt", "windows", "win32", "win64")),
    ("MacOS", ("mac os x", "macintosh", "macos")),
)

# Name and version extraction for the composite security-log signature
_OS_VERSION_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Android", re.compile(r"android\s*([\d.]+)?", re.I)),
    ("iOS", re.compile(r"(?:iphone|cpu) os ([\d_]+)|ip(?:ad|od|hone)", re.I)),
    ("Windows", re.compile(r"windows nt ([\d.]+)|windows|win32|win64", re.I)),
    ("macOS", re.compile(r"mac os x ([\d_.]+)|macintosh", re.I)),
    ("Linux", re.compile(r"linux", re.I)),
)

_WINDOWS_NT_NAMES = {"10.0": "10", "6.3": "8.1", "6.2": "8", "6.1": "7"}

_BROWSER_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Edge", re.compile(r"edg(?:e|a|ios)?/([\d.]+)", re.I)),
    ("Opera", re.compile(r"(?:opr|opera)/([\d.]+)", re.I)),
    ("Samsung Internet", re.compile(r"samsungbrowser/([\d.]+)", re.I)),
    ("Firefox", re.compile(r"(?:firefox|fxios)/([\d.]+)", re.I)),
    ("Chrome", re.compile(r"(?:chrome|crios)/([\d.]+)", re.I)),
    ("Safari", re.compile(r"version/([\d.]+).*safari", re.I)),
)


@dataclass(frozen=True)
class DeviceInfo:
    device_type: str
    os: str


def classify_device_type(user_agent: str | None) -> str:
    """Return ``tablet``, ``mobile``, ``desktop`` or ``unknown`` for an empty UA."""
    if not user_agent:
        return UNKNOWN_DEVICE
    ua = user_agent.lower()
    for category, pattern in DEVICE_RULES:
        if pattern.search(ua):
            return category
    return DESKTOP


def classify_os(text: str | None) -> str:
    """Return the OS label for a user agent (or the OS part of a signature)."""
    if not text:
        return OTHER_OS
    s = text.lower()
    for label, needles in OS_RULES:
        if any(needle in s for needle in needles):
            return label
    return OTHER_OS


def classify_device(user_agent: str | None) -> DeviceInfo:
    return DeviceInfo(device_type=classify_device_type(user_agent), os=classify_os(user_agent))


def _os_with_version(user_agent: str) -> str:
    for name, pattern in _OS_VERSION_RULES:
        match = pattern.search(user_agent)
        if not match:
            continue
        version = match.group(1) if match.groups() else None
        if not version:
            return name
        version = version.replace("_", ".").strip(".")
        if name == "Windows":
            version = _WINDOWS_NT_NAMES.get(version, version)
        return f"{name} {version}"
    return ""


def _browser_with_version(user_agent: str) -> str:
    for name, pattern in _BROWSER_RULES:
        match = pattern.search(user_agent)
        if match:
            return f"{name} {match.group(1)}"
    return ""


def build_device_signature(user_agent: str | None) -> str:
    """Composite ``device-type | OS version | Browser version`` signature.

    Empty parts are dropped; the device type is always present and defaults
    to ``desktop``.
    """
    ua = user_agent or ""
    device_type = classify_device_type(ua) if ua else DESKTOP
    parts = [device_type, _os_with_version(ua), _browser_with_version(ua)]
    return " | ".join(part for part in parts if part)


def signature_device_type(signature: str | None) -> str:
    """Device category from a composite signature."""
    if not signature:
        return UNKNOWN_DEVICE
    return signature.split(" | ")[0].strip() or UNKNOWN_DEVICE


def signature_os(signature: str | None) -> str | None:
    """OS part of a composite signature, if it has one."""
    if not signature or " | " not in signature:
        return None
    return signature.split(" | ")[1].strip() or None
