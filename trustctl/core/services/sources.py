"""
Certificate content sources — materialise a certificate's bytes.

A certificate declares either inline ``content`` or a ``source``:

    /abs/path.pem          local file
    relative/path.pem      local file, relative to the config directory
    file:///abs/path.pem   local file URI
    https://host/ca.pem    downloaded (TLS verified unless verify_https=False)
    http://host/ca.pem     downloaded

If the certificate carries a sha256 ``checksum``, the bytes must match.
No parsing or validation of the certificate itself happens here.
"""

from __future__ import annotations

import hashlib
import logging
import ssl
import urllib.error
import urllib.request
from pathlib import Path
from urllib.parse import unquote, urlparse

from trustctl.core.models.config import DesiredCertificate

logger = logging.getLogger(__name__)

_USER_AGENT = "trustctl"


class SourceError(Exception):
    """Raised when certificate content cannot be materialised."""


def resolve_content(
    cert: DesiredCertificate,
    base_dir: Path | None = None,
    timeout: int = 30,
) -> bytes:
    """Return the content bytes of a desired certificate.

    Args:
        cert: The certificate declaration.
        base_dir: Directory relative sources resolve against.
        timeout: Download timeout in seconds.

    Raises:
        SourceError: If the source is unreadable or fails its checksum.
    """
    if cert.content is not None:
        data = cert.content.encode("utf-8")
    elif cert.source:
        data = _fetch(cert, base_dir, timeout)
    else:
        raise SourceError(f"certificate '{cert.name}' has no source or content")

    if cert.checksum:
        digest = hashlib.sha256(data).hexdigest()
        if digest != cert.checksum:
            raise SourceError(
                f"checksum mismatch for '{cert.name}': expected {cert.checksum}, got {digest}"
            )

    return data


def _fetch(cert: DesiredCertificate, base_dir: Path | None, timeout: int) -> bytes:
    source = cert.source or ""
    parsed = urlparse(source)

    if parsed.scheme in ("http", "https"):
        return _download(source, verify=cert.verify_https, timeout=timeout)

    if parsed.scheme == "file":
        path = Path(unquote(parsed.path))
    elif parsed.scheme and len(parsed.scheme) > 1:
        raise SourceError(f"unsupported source scheme '{parsed.scheme}' for '{cert.name}'")
    else:
        path = Path(source).expanduser()
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path

    try:
        return path.read_bytes()
    except OSError as e:
        raise SourceError(f"cannot read source for '{cert.name}': {e}") from e


def _download(url: str, verify: bool, timeout: int) -> bytes:
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    logger.debug("Downloading %s (verify=%s)", url, verify)
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=timeout, context=context) as resp:
            return resp.read()
    except (urllib.error.URLError, OSError) as e:
        raise SourceError(f"cannot download {url}: {e}") from e
