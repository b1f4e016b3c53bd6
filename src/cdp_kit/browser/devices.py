"""Device descriptors for viewport/user-agent emulation."""
from dataclasses import dataclass, fields

from ..engine.errors import InvalidArgumentError


@dataclass
class Device:
    name: str
    user_agent: str
    width: int
    height: int
    device_scale_factor: float = 1.0
    mobile: bool = False
    touch: bool = False
    page_scale_factor: float = 1.0

    @classmethod
    def from_dict(cls, data: dict) -> "Device":
        """Build from snake_case or camelCase keys; unknown keys are ignored."""
        aliases = {
            "userAgent": "user_agent",
            "deviceScaleFactor": "device_scale_factor",
            "pageScaleFactor": "page_scale_factor",
        }
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            key = aliases.get(key, key)
            if key in names:
                kwargs[key] = value
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise InvalidArgumentError(f"invalid device descriptor: {e}") from e


_IOS_SAFARI = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS {ver} like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/{short} Mobile/15E148 Safari/604.1"
)
_ANDROID_CHROME = (
    "Mozilla/5.0 (Linux; Android {ver}; {model}) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
)

DEVICES: dict[str, Device] = {}


def _register(device: Device) -> None:
    DEVICES[device.name] = device


for _device in (
    Device("iPhone 6", _IOS_SAFARI.format(ver="11_0", short="11.0"),
           375, 667, 2, mobile=True, touch=True),
    Device("iPhone 6 Plus", _IOS_SAFARI.format(ver="11_0", short="11.0"),
           414, 736, 3, mobile=True, touch=True),
    Device("iPhone X", _IOS_SAFARI.format(ver="11_0", short="11.0"),
           375, 812, 3, mobile=True, touch=True),
    Device("iPhone 12", _IOS_SAFARI.format(ver="14_4", short="14.0"),
           390, 844, 3, mobile=True, touch=True),
    Device("iPad", _IOS_SAFARI.format(ver="11_0", short="11.0").replace("iPhone;", "iPad;"),
           768, 1024, 2, mobile=True, touch=True),
    Device("Nexus 5", _ANDROID_CHROME.format(ver="6.0", model="Nexus 5"),
           360, 640, 3, mobile=True, touch=True),
    Device("Pixel 2", _ANDROID_CHROME.format(ver="8.0", model="Pixel 2"),
           411, 731, 2.625, mobile=True, touch=True),
    Device("Galaxy S5", _ANDROID_CHROME.format(ver="5.0", model="SM-G900P"),
           360, 640, 3, mobile=True, touch=True),
    Device("Laptop with HiDPI screen",
           "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
           "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
           1440, 900, 2),
):
    _register(_device)


def add_custom_device(devices) -> None:
    """Register one device or a list of devices, replacing same-named entries.

    Accepts :class:`Device` instances or dicts.
    """
    if not isinstance(devices, (list, tuple)):
        devices = [devices]
    for item in devices:
        device = item if isinstance(item, Device) else Device.from_dict(item)
        _register(device)


def get_device(name: str) -> Device:
    try:
        return DEVICES[name]
    except KeyError:
        raise InvalidArgumentError(f"unknown device: {name}") from None
