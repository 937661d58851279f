"""
Object storage for order images.
"""

from .images import (
    ImageStorage,
    LocalImageStorage,
    S3ImageStorage,
    build_image_storage,
    discard_images,
    make_storage_key,
)

__all__ = [
    "ImageStorage",
    "LocalImageStorage",
    "S3ImageStorage",
    "build_image_storage",
    "discard_images",
    "make_storage_key",
]
