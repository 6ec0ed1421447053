"""External image hosting integrations."""

from src.hosting.base import HostedImage, ImageHost
from src.hosting.factory import get_image_host, reset_image_host_cache
from src.hosting.imgbb_provider import ImgBBImageHost
from src.hosting.imgur_provider import ImgurImageHost
from src.hosting.mock_provider import MockImageHost

__all__ = [
    "HostedImage",
    "ImageHost",
    "ImgBBImageHost",
    "ImgurImageHost",
    "MockImageHost",
    "get_image_host",
    "reset_image_host_cache",
]
