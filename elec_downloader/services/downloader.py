"""Process runner driving the external downloader for one job."""

import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Set

from elec_downloader.config import Settings
from elec_downloader.models.job import JobMode
from elec_downloader.services.interpreter import LineInterpreter, stream_lines
from elec_downloader.services.jobs import JobRecord
from elec_downloader.utils.errors import (
    DownloaderError,
    DownloaderExitError,
    DownloaderLaunchError,
    DownloaderTimeoutError,
)

logger = logging.getLogger(__name__)

VIDEO_FORMAT = (
    "bestvideo[ext=mp4][vcodec!*=av01]+bestaudio[ext=m4a]"
    "/best[ext=mp4][vcodec!*=av01]"
    "/best[ext=mp4]"
    "/best"
)
AUDIO_FORMAT = "bestaudio/best"

# Upper bound for a single output line; yt-dlp lines with --newline stay far below it
STREAM_LIMIT = 1024 * 1024


@dataclass(frozen=True)
class DownloaderLocation:
    """Where the downloader lives and where it writes its output."""

    executable: Path
    work_dir: Path
    found: bool = True


def program_dir() -> Path:
    """Directory of the running program (the frozen executable or the launched script)."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    if sys.argv and sys.argv[0]:
        return Path(sys.argv[0]).resolve().parent
    return Path.cwd()


def _candidate_names(name: str) -> List[str]:
    names = [name]
    if os.name == "nt" and not name.lower().endswith(".exe"):
        names.append(f"{name}.exe")
    return names


def _find_in(directory: Path, names: List[str]) -> Optional[Path]:
    for name in names:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def resolve_downloader(settings: Settings) -> DownloaderLocation:
    """
    Locate the downloader executable.

    An explicit ``downloader_path`` wins. Otherwise the program directory is
    searched first, then the current working directory. When neither has the
    executable a warning is logged and the program directory path is returned
    anyway, so each job fails with a launch error.

    Args:
        settings: Application settings

    Returns:
        DownloaderLocation with the executable and the output directory
    """
    output_dir = Path(settings.output_dir).expanduser() if settings.output_dir else None

    if settings.downloader_path:
        executable = Path(settings.downloader_path).expanduser()
        return DownloaderLocation(
            executable=executable,
            work_dir=output_dir or executable.parent,
            found=executable.is_file(),
        )

    names = _candidate_names(settings.downloader_name)
    base_dir = program_dir()
    executable = _find_in(base_dir, names)
    if executable is None:
        cwd = Path.cwd()
        executable = _find_in(cwd, names)
        if executable is not None:
            logger.info(
                f"{settings.downloader_name} not found in {base_dir}, "
                f"using working directory {cwd}"
            )
    if executable is None:
        logger.warning(f"{settings.downloader_name} not found in {base_dir}")
        return DownloaderLocation(
            executable=base_dir / names[-1],
            work_dir=output_dir or base_dir,
            found=False,
        )
    return DownloaderLocation(executable=executable, work_dir=output_dir or executable.parent)


def build_download_args(
    mode: JobMode,
    url: str,
    output_template: str = "%(title)s.%(ext)s",
    audio_format: str = "mp3",
    merge_output_format: str = "mp4",
) -> List[str]:
    """
    Construct the downloader argument list for a mode.

    Args:
        mode: AUDIO extracts the best audio stream at maximum quality,
            VIDEO picks the best mp4-compatible video+audio pair and merges it
        url: Normalized target URL, always the last argument
        output_template: Filename template derived from title and extension
        audio_format: Codec audio extraction converts to
        merge_output_format: Container merged video is written to

    Returns:
        Arguments to pass after the executable
    """
    args = ["--newline", "-o", output_template]
    if mode is JobMode.AUDIO:
        args += [
            "-f", AUDIO_FORMAT,
            "--extract-audio",
            "--audio-format", audio_format,
            "--audio-quality", "0",
        ]
    else:
        args += [
            "-f", VIDEO_FORMAT,
            "--merge-output-format", merge_output_format,
        ]
    args.append(url)
    return args


class DownloadRunner:
    """Spawns the downloader per job and drives the job to a terminal state."""

    def __init__(
        self,
        executable: Path,
        work_dir: Path,
        timeout_seconds: float = 60 * 60,
        reader_grace_seconds: float = 5.0,
        output_template: str = "%(title)s.%(ext)s",
        audio_format: str = "mp3",
        merge_output_format: str = "mp4",
        interpreter: Optional[LineInterpreter] = None,
    ) -> None:
        """
        Initialize the DownloadRunner.

        Args:
            executable: Path of the downloader executable
            work_dir: Working directory of spawned processes, where files land
            timeout_seconds: Overall deadline of one run
            reader_grace_seconds: Time the output reader gets to drain after exit
            output_template: Output filename template
            audio_format: Target codec in audio mode
            merge_output_format: Target container in video mode
            interpreter: Rules applied to output lines
        """
        self.executable = Path(executable)
        self.work_dir = Path(work_dir)
        self.timeout_seconds = timeout_seconds
        self.reader_grace_seconds = reader_grace_seconds
        self.output_template = output_template
        self.audio_format = audio_format
        self.merge_output_format = merge_output_format
        self.interpreter = interpreter or LineInterpreter()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        """Number of runs still in flight."""
        return len(self._tasks)

    def build_args(self, mode: JobMode, url: str) -> List[str]:
        return build_download_args(
            mode,
            url,
            output_template=self.output_template,
            audio_format=self.audio_format,
            merge_output_format=self.merge_output_format,
        )

    def start(self, job: JobRecord, url: str) -> asyncio.Task:
        """
        Schedule a run on the running event loop and return immediately.

        The task is not tied to the request that triggered it, so it keeps
        going after the response is sent or the client goes away.
        """
        task = asyncio.create_task(self.run(job, url), name=f"download-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, job: JobRecord, url: str) -> None:
        """Run the downloader for a job; every outcome ends in a terminal state."""
        logger.info(f"Job {job.id} starting ({job.mode.value}): {url}")
        try:
            await self._execute(job, url)
        except DownloaderError as e:
            logger.error(f"Job {job.id} failed: {e}")
            job.fail(str(e))
            return
        except Exception as e:
            logger.exception(f"Job {job.id} crashed: {e}")
            job.fail(f"{type(e).__name__}: {e}")
            return
        job.complete()
        logger.info(f"Job {job.id} completed")

    async def _execute(self, job: JobRecord, url: str) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                str(self.executable),
                *self.build_args(job.mode, url),
                cwd=str(self.work_dir),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise DownloaderLaunchError(f"could not start {self.executable}: {e}") from e

        reader = asyncio.create_task(stream_lines(job, process.stdout, self.interpreter))
        try:
            try:
                returncode = await asyncio.wait_for(process.wait(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                self._kill(process)
                await process.wait()
                await self._drain(job, reader)
                raise DownloaderTimeoutError(self.timeout_seconds)
            await self._drain(job, reader)
        finally:
            if process.returncode is None:
                self._kill(process)
            if not reader.done():
                reader.cancel()

        if returncode != 0:
            raise DownloaderExitError(returncode)

    async def _drain(self, job: JobRecord, reader: asyncio.Task) -> None:
        """Let the reader consume what is left in the pipe, within the grace period."""
        try:
            await asyncio.wait_for(reader, timeout=self.reader_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Output reader of job {job.id} did not finish, dropping it")

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            pass


def create_download_runner(
    settings: Settings,
    location: Optional[DownloaderLocation] = None,
) -> DownloadRunner:
    """Factory function to create a DownloadRunner from settings."""
    location = location or resolve_downloader(settings)
    return DownloadRunner(
        executable=location.executable,
        work_dir=location.work_dir,
        timeout_seconds=settings.job_timeout_seconds,
        reader_grace_seconds=settings.reader_grace_seconds,
        output_template=settings.output_template,
        audio_format=settings.audio_format,
        merge_output_format=settings.merge_output_format,
    )
