"""Remote file naming and URL encoding helpers."""
import time
from pathlib import PurePath
from urllib.parse import quote

# Characters encodeURIComponent / encodeURI leave untouched
_COMPONENT_SAFE = "-_.!~*'()"
_URI_SAFE = _COMPONENT_SAFE + ";,/?:@&=+$#"


def strip_extension(filename: str) -> str:
    """'clip.final.mp4' -> 'clip.final'"""
    suffix = PurePath(filename).suffix
    return filename[: -len(suffix)] if suffix else filename


def unique_upload_name(display_name: str, source_name: str) -> str:
    """
    Collision-resistant remote name.

    Appends a microsecond timestamp to the display name, before the source
    file's extension, so repeated uploads of same-named files never clash.
    """
    stamp = time.time_ns() // 1000
    suffix = PurePath(source_name).suffix
    return f"{display_name}_{stamp}{suffix}"


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_COMPONENT_SAFE)


def encode_uri(value: str) -> str:
    return quote(value, safe=_URI_SAFE)
