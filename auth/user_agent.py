"""Human-readable "<device> / <browser>" labels for the device history column."""

import re

UNKNOWN_DEVICE = "Nepoznat uređaj"

# Android model prefix → brand shown in the label (None keeps the model as-is).
_ANDROID_BRANDS = [
    (re.compile(r"^(SM-|Galaxy|samsung)", re.I), "Samsung"),
    (re.compile(r"^(Redmi|Mi |POCO|Xiaomi|M2\d)", re.I), "Xiaomi"),
    (re.compile(r"^RMX", re.I), "Realme"),
    (re.compile(r"^(CPH|OPPO)", re.I), "OPPO"),
    (re.compile(r"^(V\d{4}|vivo)", re.I), "Vivo"),
    (re.compile(r"^(HUAWEI|ELE-|VOG-|ANE-)", re.I), "Huawei"),
    (re.compile(r"^Pixel", re.I), "Google"),
    (re.compile(r"^LM-", re.I), "LG"),
    (re.compile(r"^moto", re.I), "Motorola"),
]

_DESKTOP_OS = [
    ("Windows NT 10.0", "Windows 10/11"),
    ("Windows NT 6.3", "Windows 8.1"),
    ("Windows NT 6.2", "Windows 8"),
    ("Windows NT 6.1", "Windows 7"),
    ("Mac OS X", "macOS"),
    ("CrOS", "Chrome OS"),
    ("Linux", "Linux"),
]


def _android_device(user_agent: str) -> str:
    match = re.search(r"Android[^;]*;\s*([^;)]+?)(?:\s+Build/[^;)]*)?[;)]", user_agent)
    if not match:
        return "Android"
    model = match.group(1).strip()
    if model in ("K", "wv"):
        # Reduced user agents hide the model.
        return "Android"
    for pattern, brand in _ANDROID_BRANDS:
        if pattern.search(model):
            cleaned = re.sub(brand, "", model, flags=re.I).strip()
            return f"{brand} {cleaned or model}"
    return f"Android ({model})"


def _device(user_agent: str) -> str:
    if "iPhone" in user_agent:
        return "iPhone"
    if "iPad" in user_agent:
        return "iPad"
    if "Android" in user_agent:
        return _android_device(user_agent)
    for marker, name in _DESKTOP_OS:
        if marker in user_agent:
            return name
    return "Nepoznat OS"


def _version(user_agent: str, pattern: str, name: str) -> str:
    match = re.search(pattern, user_agent)
    return f"{name} {match.group(1)}" if match else name


def _browser(user_agent: str) -> str:
    if "Edg/" in user_agent:
        return _version(user_agent, r"Edg/(\d+)", "Edge")
    if "OPR/" in user_agent or "Opera" in user_agent:
        return _version(user_agent, r"OPR/(\d+)", "Opera")
    if "Chrome/" in user_agent:
        return _version(user_agent, r"Chrome/(\d+)", "Chrome")
    if "Firefox/" in user_agent:
        return _version(user_agent, r"Firefox/(\d+)", "Firefox")
    if "Safari/" in user_agent:
        return _version(user_agent, r"Version/(\d+)", "Safari")
    if "MSIE" in user_agent or "Trident/" in user_agent:
        return "Internet Explorer"
    return "Nepoznat browser"


def parse_user_agent(user_agent: str | None) -> str:
    if not user_agent:
        return UNKNOWN_DEVICE
    return f"{_device(user_agent)} / {_browser(user_agent)}"
