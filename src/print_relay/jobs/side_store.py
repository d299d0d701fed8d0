"""
On-disk side store used to stop duplicate prints.

Each printed job leaves one artifact:

    <root>/<printer id>/<base identity>_<YYYYmmddTHHMMSSffffff>.<ext>

The base identity comes from the job's file name (or the printer id when the
job has none), so a redelivered job maps to the same identity regardless of
when it arrives. A job is only "already handled" when an artifact with the
same identity and extension holds exactly the same bytes; a different
document under a reused name is printed. Only one job is in flight per
process, so nothing here locks.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from print_relay.jobs.errors import SideStoreWriteError
from print_relay.jobs.models import Job

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = 'pdf'
TIMESTAMP_FORMAT = '%Y%m%dT%H%M%S%f'

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]+')
_ARTIFACT_NAME = re.compile(r'^(?P<base>.+)_(?P<ts>\d{8}T\d{12})(?:\.(?P<ext>[^.]*))?$')


@dataclass(frozen=True)
class GuardResult:
    already_handled: bool
    location: Path


def sanitize(name: str) -> str:
    cleaned = _UNSAFE_CHARS.sub('_', name).strip('._')
    return cleaned or 'job'


def base_identity(job: Job) -> str:
    if job.file_name:
        return sanitize(Path(job.file_name).stem)
    return sanitize(job.printer_id)


def artifact_extension(job: Job) -> str:
    suffix = Path(job.file_name).suffix.lstrip('.') if job.file_name else ''
    return sanitize(suffix).lower() if suffix else DEFAULT_EXTENSION


def _same_content(path: Path, payload: bytes) -> bool:
    try:
        if path.stat().st_size != len(payload):
            return False
        return path.read_bytes() == payload
    except OSError as e:
        # An unreadable artifact cannot prove the job was printed
        logger.warning(f"Could not read artifact {path}: {e}")
        return False


class DuplicateGuard:

    def __init__(self, root_dir: Union[str, Path], clock=datetime.now):
        self.root_dir = Path(root_dir)
        self._clock = clock

    def check(self, job: Job) -> GuardResult:
        """
        Return the existing artifact if this job was already handled,
        otherwise persist the payload as a new artifact.

        Raises:
            SideStoreWriteError: the artifact could not be written
        """
        directory = self.root_dir / sanitize(job.printer_id)
        base = base_identity(job)
        ext = artifact_extension(job)

        existing = self.find_existing(directory, base, ext, job.payload)
        if existing:
            logger.info(f"Duplicate job: {base}.{ext} already handled at {existing}")
            return GuardResult(already_handled=True, location=existing)

        location = self._write(directory, base, ext, job.payload)
        logger.debug(f"Recorded {len(job.payload)} bytes for {base} at {location}")
        return GuardResult(already_handled=False, location=location)

    def find_existing(self, directory: Path, base: str, ext: str, payload: bytes) -> Optional[Path]:
        """First artifact named <base>_<timestamp>.<ext> whose content equals payload."""
        for entry in self.artifacts(directory, base, ext):
            if _same_content(entry, payload):
                return entry
        return None

    def artifacts(self, directory: Path, base: str, ext: str) -> List[Path]:
        if not directory.is_dir():
            return []
        found = []
        for entry in sorted(directory.iterdir()):
            match = _ARTIFACT_NAME.match(entry.name)
            if match and match.group('base') == base and (match.group('ext') or '') == ext:
                found.append(entry)
        return found

    def discard(self, location: Path) -> None:
        """Drop an artifact whose print did not go through, so a retry is not skipped."""
        try:
            Path(location).unlink()
            logger.debug(f"Discarded artifact {location}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not discard artifact {location}: {e}")

    def _write(self, directory: Path, base: str, ext: str, payload: bytes) -> Path:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SideStoreWriteError(directory, e) from e

        stamp = self._clock()
        while True:
            location = directory / f"{base}_{stamp.strftime(TIMESTAMP_FORMAT)}.{ext}"
            try:
                with open(location, 'xb') as f:
                    f.write(payload)
                return location
            except FileExistsError:
                stamp = stamp.replace(microsecond=(stamp.microsecond + 1) % 1_000_000)
            except OSError as e:
                self.discard(location)
                raise SideStoreWriteError(location, e) from e
