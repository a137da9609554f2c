"""Named device profiles for user-agent emulation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int
    device_scale_factor: float = 1.0
    is_mobile: bool = False
    has_touch: bool = False


@dataclass(frozen=True)
class DeviceProfile:
    name: str
    user_agent: str
    viewport: Viewport


def _profile(name: str, user_agent: str, width: int, height: int, scale: float, mobile: bool) -> DeviceProfile:
    return DeviceProfile(
        name=name,
        user_agent=user_agent,
        viewport=Viewport(width, height, scale, is_mobile=mobile, has_touch=mobile),
    )


_PROFILES = [
    _profile(
        "iPhone X",
        "Mozilla/5.0 (iPhone; CPU iPhone OS 11_0 like Mac OS X) AppleWebKit/604.1.38 "
        "(KHTML, like Gecko) Version/11.0 Mobile/15A372 Safari/604.1",
        375, 812, 3.0, True,
    ),
    _profile(
        "iPhone 13",
        "Mozilla/5.0 (iPhone; CPU iPhone OS 15_0 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/15.0 Mobile/15E148 Safari/604.1",
        390, 844, 3.0, True,
    ),
    _profile(
        "iPad",
        "Mozilla/5.0 (iPad; CPU OS 11_0 like Mac OS X) AppleWebKit/604.1.34 "
        "(KHTML, like Gecko) Version/11.0 Mobile/15A5341f Safari/604.1",
        768, 1024, 2.0, True,
    ),
    _profile(
        "Pixel 2",
        "Mozilla/5.0 (Linux; Android 8.0; Pixel 2 Build/OPD3.170816.012) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/75.0.3765.0 Mobile Safari/537.36",
        411, 731, 2.625, True,
    ),
    _profile(
        "Galaxy S5",
        "Mozilla/5.0 (Linux; Android 5.0; SM-G900P Build/LRX21T) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/75.0.3765.0 Mobile Safari/537.36",
        360, 640, 3.0, True,
    ),
    _profile(
        "Desktop Chrome",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        1280, 800, 1.0, False,
    ),
    _profile(
        "Desktop Firefox",
        "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
        1280, 800, 1.0, False,
    ),
]

DEVICES: dict[str, DeviceProfile] = {profile.name: profile for profile in _PROFILES}


def get_device(name: str | None) -> DeviceProfile | None:
    if not name:
        return None
    return DEVICES.get(name)


def resolve_user_agent(options: Any, default: str) -> str:
    """User agent a request is sent with: explicit, then device, then default."""
    if getattr(options, "user_agent", None):
        return options.user_agent
    device = get_device(getattr(options, "device", None))
    if device is not None:
        return device.user_agent
    return default
