"""
Engine transfer — put the four engine executables in the operator's home.

Each engine ships as a ZIP archive holding exactly one executable named
after the engine (``TSLA`` or ``TSLA.exe``). An engine already present on
the instance is left alone and never downloaded again.
"""

from __future__ import annotations

import logging
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import requests

from . import ENGINE_NAMES
from .errors import EngineArchiveError
from .ssh import RemoteShell

logger = logging.getLogger("algora1.engine_transfer")

_ARCHIVE_BASE = "https://ce61ee09-0950-4d0d-b651-266705220b65.usrfiles.com/archives"

ENGINE_ARCHIVE_URLS: Dict[str, str] = {
    "BEXP": f"{_ARCHIVE_BASE}/ce61ee_c7d95081e6a44835911d55171c3721f4.zip",
    "PMNY": f"{_ARCHIVE_BASE}/ce61ee_9599255c688e49d99381eeafae3bb8fe.zip",
    "TSLA": f"{_ARCHIVE_BASE}/ce61ee_a19125ed34b2454fa50d7bd8075a9a72.zip",
    "NVDA": f"{_ARCHIVE_BASE}/ce61ee_871af284fc2043db98c9864fd933b90e.zip",
}

DOWNLOAD_TIMEOUT = 120
CHUNK_SIZE = 1 << 16


@dataclass
class TransferReport:
    uploaded: List[str]
    skipped: List[str]


def download(url: str, dest: Path) -> Path:
    """Stream ``url`` to ``dest``.

    Raises:
        EngineArchiveError: On HTTP or network failure.
    """
    try:
        with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as resp:
            resp.raise_for_status()
            with dest.open("wb") as fh:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    fh.write(chunk)
    except requests.RequestException as exc:
        raise EngineArchiveError(f"Failed to download {url}: {exc}") from exc
    return dest


def extract_engine(archive: Path, name: str, dest_dir: Path) -> Path:
    """Extract the single engine file for ``name`` from ``archive``.

    Files named ``name`` or ``name.exe`` are preferred; an archive with no
    such file is accepted only if it holds exactly one file.

    Raises:
        EngineArchiveError: If the archive is unreadable or ambiguous.
    """
    try:
        with zipfile.ZipFile(archive) as zf:
            members = [m for m in zf.infolist() if not m.is_dir()]
            named = [
                m for m in members
                if Path(m.filename).name in (name, f"{name}.exe")
            ]
            candidates = named or members
            if len(candidates) != 1:
                found = ", ".join(m.filename for m in members) or "nothing"
                raise EngineArchiveError(
                    f"{name}.zip must contain exactly ONE engine file "
                    f"(named '{name}' or '{name}.exe'). Found: {found}"
                )
            return Path(zf.extract(candidates[0], dest_dir))
    except zipfile.BadZipFile as exc:
        raise EngineArchiveError(f"Failed to unzip {name}.zip: {exc}") from exc


class EngineUploader:
    """Uploads missing engines to the instance.

    Args:
        shell: Remote shell to the instance.
        urls: Archive URL per engine.
        fetch: Downloader (``download`` by default).
    """

    def __init__(
        self,
        shell: RemoteShell,
        urls: Optional[Dict[str, str]] = None,
        fetch: Callable[[str, Path], Path] = download,
    ) -> None:
        self.shell = shell
        self.urls = urls or ENGINE_ARCHIVE_URLS
        self.fetch = fetch

    def remote_path(self, name: str) -> str:
        return f"/home/{self.shell.user}/{name}"

    def upload_all(
        self,
        host: str,
        engines: Sequence[str] = ENGINE_NAMES,
        progress: Optional[Callable[[str], None]] = None,
    ) -> TransferReport:
        report = TransferReport(uploaded=[], skipped=[])
        for name in engines:
            dst = self.remote_path(name)
            if self.shell.remote_file_exists(host, dst):
                logger.info("%s already present on %s", name, host)
                report.skipped.append(name)
                if progress:
                    progress(f"{name} already present; skipping")
                continue
            self.upload_one(host, name, dst)
            report.uploaded.append(name)
            if progress:
                progress(f"{name} uploaded")
        return report

    def upload_one(self, host: str, name: str, dst: str) -> None:
        url = self.urls.get(name)
        if not url:
            raise EngineArchiveError(f"No archive URL set for {name}")
        with tempfile.TemporaryDirectory(prefix=f"algora1-{name}-") as tmp:
            work = Path(tmp)
            archive = self.fetch(url, work / f"{name}.zip")
            exe = extract_engine(archive, name, work / "extract")
            self.shell.upload(host, exe, dst)
        self.shell.run(host, f"chmod +x '{dst}'", timeout=30)
        logger.info("Uploaded %s to %s:%s", name, host, dst)
