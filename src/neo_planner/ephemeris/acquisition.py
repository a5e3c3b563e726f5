"""
Download and verification of the DE442s planetary kernel from NAIF.

The expected MD5 comes from NAIF's published ``aa_checksums.txt`` manifest
next to the kernel. A kernel already on disk is reused when its digest
matches; otherwise a fresh copy is streamed to a temporary file, verified,
and moved into place.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

import requests

from ..exceptions import KernelAcquisitionError

logger = logging.getLogger(__name__)

NAIF_PLANETS_URL = "https://naif.jpl.nasa.gov/pub/naif/generic_kernels/spk/planets/"
KERNEL_FILE = "de442s.bsp"
CHECKSUM_FILE = "aa_checksums.txt"

DOWNLOAD_CHUNK_BYTES = 64 * 1024
REQUEST_TIMEOUT_SECONDS = 60


def kernel_url(filename: str = KERNEL_FILE) -> str:
    return NAIF_PLANETS_URL + filename


def checksums_url() -> str:
    return NAIF_PLANETS_URL + CHECKSUM_FILE


def parse_checksum_manifest(text: str) -> Dict[str, str]:
    """
    Parse a NAIF checksum manifest.

    The manifest is a whitespace separated run of ``<md5> <file>`` pairs
    (line breaks are not significant). A trailing unpaired token is ignored.

    Args:
        text: Manifest contents

    Returns:
        Mapping of filename to lowercase MD5 hex digest
    """
    tokens = text.split()
    manifest: Dict[str, str] = {}
    for i in range(0, len(tokens) - 1, 2):
        md5, filename = tokens[i], tokens[i + 1]
        manifest.setdefault(filename, md5.lower())
    return manifest


def md5_of(path: Union[str, Path], chunk_size: int = DOWNLOAD_CHUNK_BYTES) -> str:
    """Lowercase MD5 hex digest of a file, read in chunks."""
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


class KernelStore:
    """Local directory holding the kernel and its in-progress download."""

    def __init__(self, directory: Union[str, Path], filename: str = KERNEL_FILE) -> None:
        self.directory = Path(directory)
        self.filename = filename

    @property
    def kernel_path(self) -> Path:
        return self.directory / self.filename

    @property
    def temp_path(self) -> Path:
        return self.directory / f"{self.filename}.download"

    def ensure_directory(self) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory


def fetch_expected_md5(
    filename: str = KERNEL_FILE, session: Optional[requests.Session] = None
) -> str:
    """
    Look up a kernel's published MD5.

    Raises:
        KernelAcquisitionError: On HTTP failure or if the file is not listed
    """
    http = session or requests
    url = checksums_url()
    try:
        response = http.get(url, timeout=REQUEST_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.RequestException as e:
        raise KernelAcquisitionError(f"Checksum fetch failed from {url}: {e}") from e

    expected = parse_checksum_manifest(response.text).get(filename)
    if expected is None:
        raise KernelAcquisitionError(f"MD5 not found for {filename} in {CHECKSUM_FILE}")
    return expected


def download_to_file(
    url: str, destination: Path, session: Optional[requests.Session] = None
) -> int:
    """
    Stream ``url`` into ``destination``.

    Returns:
        Number of bytes written

    Raises:
        KernelAcquisitionError: On HTTP failure
    """
    http = session or requests
    written = 0
    try:
        with http.get(url, stream=True, timeout=REQUEST_TIMEOUT_SECONDS) as response:
            response.raise_for_status()
            with open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
    except requests.RequestException as e:
        raise KernelAcquisitionError(f"Kernel download failed from {url}: {e}") from e
    return written


def ensure_kernel(store: KernelStore, session: Optional[requests.Session] = None) -> Path:
    """
    Make sure a verified kernel is present in ``store``.

    Args:
        store: Target directory and filename
        session: Optional requests session (defaults to module-level requests)

    Returns:
        Path of the verified kernel file

    Raises:
        KernelAcquisitionError: Missing checksum, HTTP failure or MD5 mismatch
    """
    expected = fetch_expected_md5(store.filename, session=session)
    target = store.kernel_path

    if target.exists():
        current = md5_of(target)
        if current == expected:
            logger.info(f"Kernel {target} is up to date (md5 {current})")
            return target
        logger.info(f"Kernel {target} is stale (md5 {current}, expected {expected})")

    store.ensure_directory()
    temp = store.temp_path
    if temp.exists():
        temp.unlink()

    url = kernel_url(store.filename)
    logger.info(f"Downloading kernel from {url}")
    size = download_to_file(url, temp, session=session)

    actual = md5_of(temp)
    if actual != expected:
        temp.unlink()
        raise KernelAcquisitionError(
            f"Kernel MD5 mismatch. Expected={expected} got={actual}",
            expected=expected,
            actual=actual,
        )

    os.replace(temp, target)
    logger.info(f"Kernel saved to {target} ({size / 1e6:.1f} MB)")
    return target
