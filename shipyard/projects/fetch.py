"""Component source fetching.

This module handles:
- Downloading archives with checksum verification
- Cloning git repositories
- Copying local sources from the config directory
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from pathlib import Path
from urllib.parse import urlparse

import httpx

from shipyard.errors import CommandFailedError, SourceFetchError
from shipyard.process import run_command
from shipyard.projects.schema import SourceSchema

logger = logging.getLogger(__name__)

# Chunk size for downloads (bytes)
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB


def source_filename(url: str) -> str:
    """Return the file name a download is saved under."""
    name = Path(urlparse(url).path).name
    return name or "source"


def download_file(
    client: httpx.Client,
    url: str,
    dest_path: Path,
    expected_checksum: str | None = None,
    timeout: float | None = None,
) -> str:
    """Download a file with optional checksum verification.

    Args:
        client: HTTPX client instance.
        url: URL to download from.
        dest_path: Destination path for the downloaded file.
        expected_checksum: Expected SHA256 checksum (optional).
        timeout: Download timeout in seconds.

    Returns:
        SHA256 hex digest of the downloaded file.

    Raises:
        SourceFetchError: If the download fails or the checksum mismatches.
    """
    logger.info("Downloading %s to %s", url, dest_path)

    try:
        with client.stream("GET", url, timeout=timeout) as response:
            response.raise_for_status()

            sha256 = hashlib.sha256()
            dest_path.parent.mkdir(parents=True, exist_ok=True)

            with dest_path.open("wb") as f:
                for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                    f.write(chunk)
                    sha256.update(chunk)

    except httpx.HTTPStatusError as e:
        raise SourceFetchError(
            f"HTTP error downloading {url}: {e.response.status_code}",
            code="http_error",
        ) from e
    except httpx.RequestError as e:
        raise SourceFetchError(
            f"Network error downloading {url}: {e}",
            code="network_error",
        ) from e

    computed = sha256.hexdigest()
    if expected_checksum and computed != expected_checksum.lower():
        dest_path.unlink(missing_ok=True)
        raise SourceFetchError(
            f"Checksum mismatch for {url}: expected {expected_checksum}, got {computed}",
            code="checksum_mismatch",
        )
    return computed


def clone_repository(
    url: str, dest_dir: Path, ref: str | None = None, timeout: float | None = None
) -> None:
    """Clone a git repository, optionally at a branch or tag."""
    argv = ["git", "clone", "--quiet"]
    if ref:
        argv += ["--branch", ref]
    argv += [url, str(dest_dir)]
    try:
        run_command(argv, timeout=timeout)
    except CommandFailedError as e:
        raise SourceFetchError(
            f"Failed to clone {url}: {e.output.strip() or e}", code="git_error"
        ) from e


def copy_local_source(path: Path, dest_dir: Path) -> None:
    """Copy a local file or directory into ``dest_dir``."""
    if not path.exists():
        raise SourceFetchError(f"Local source not found: {path}", code="missing_source")
    if path.is_dir():
        shutil.copytree(path, dest_dir, dirs_exist_ok=True)
    else:
        dest_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, dest_dir / path.name)


def fetch_source(
    source: SourceSchema,
    dest_dir: Path,
    base_path: Path,
    client: httpx.Client | None = None,
    timeout: float | None = None,
) -> Path:
    """Fetch one component source into ``dest_dir``.

    Args:
        source: Source definition.
        dest_dir: Directory the source is staged in.
        base_path: Directory local paths are relative to.
        client: HTTPX client for downloads.
        timeout: Download timeout in seconds.

    Returns:
        ``dest_dir``.
    """
    if source.url:
        if client is None:
            with httpx.Client(follow_redirects=True) as own_client:
                download_file(
                    own_client,
                    source.url,
                    dest_dir / source_filename(source.url),
                    expected_checksum=source.sha256,
                    timeout=timeout,
                )
        else:
            download_file(
                client,
                source.url,
                dest_dir / source_filename(source.url),
                expected_checksum=source.sha256,
                timeout=timeout,
            )
    elif source.git:
        if dest_dir.exists():
            shutil.rmtree(dest_dir)
        clone_repository(source.git, dest_dir, source.ref, timeout=timeout)
    else:
        local = Path(source.path)
        if not local.is_absolute():
            local = base_path / local
        copy_local_source(local, dest_dir)
    return dest_dir


def fetch_commands(source: SourceSchema, dest: str) -> list[str]:
    """Shell commands fetching a remote source on the build host itself."""
    if source.url:
        target = f"{dest}/{source_filename(source.url)}"
        commands = [f"mkdir -p {dest}", f"curl -fsSL -o {target} {source.url}"]
        if source.sha256:
            commands.append(f'echo "{source.sha256}  {target}" | sha256sum -c -')
        return commands
    if source.git:
        branch = f" --branch {source.ref}" if source.ref else ""
        return [f"rm -rf {dest}", f"git clone --quiet{branch} {source.git} {dest}"]
    return []


__all__ = [
    "clone_repository",
    "copy_local_source",
    "download_file",
    "fetch_commands",
    "fetch_source",
    "source_filename",
]
