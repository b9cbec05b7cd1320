"""Services for mirror_publisher module."""
from .checksum import sha1_file
from .upload_client import CHECKSUM_HEADER, HTTPUploadClient, classify_status

__all__ = [
    "sha1_file",
    "CHECKSUM_HEADER",
    "HTTPUploadClient",
    "classify_status",
]
