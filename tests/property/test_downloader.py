"""Tests for the process runner driving the external downloader."""

import asyncio
import logging
import os
import sys
from pathlib import Path

import pytest

from elec_downloader.config import Settings
from elec_downloader.models.job import JobMode, JobPhase
from elec_downloader.services.downloader import (
    AUDIO_FORMAT,
    VIDEO_FORMAT,
    DownloadRunner,
    build_download_args,
    create_download_runner,
    resolve_downloader,
)
from elec_downloader.services.jobs import JobRecord, new_job_id

WATCH_URL = "https://www.youtube.com/watch?v=abc123"

SUCCESS_OUTPUT = [
    "[youtube] abc123: Downloading webpage",
    "[download] Destination: clip.f137.mp4",
    "[download]  12.5% of 10.00MiB at  1.00MiB/s ETA 00:09",
    "[download]  100% of 10.00MiB in 00:10",
    "[Merger] Merging formats into \"clip.mp4\"",
    "Deleting original file clip.f137.mp4 (pass -k to keep)",
]


def read_invocation(tmp_path: Path) -> tuple[str, list[str]]:
    cwd, *args = (tmp_path / "invocation.txt").read_text(encoding="utf-8").split("\n")
    return cwd, args


def new_job(mode: JobMode = JobMode.VIDEO) -> JobRecord:
    return JobRecord(new_job_id(), mode)


class TestBuildDownloadArgs:
    """Argument lists have a fixed shape per mode."""

    def test_video_arguments(self) -> None:
        args = build_download_args(JobMode.VIDEO, WATCH_URL)
        assert args == [
            "--newline", "-o", "%(title)s.%(ext)s",
            "-f", VIDEO_FORMAT,
            "--merge-output-format", "mp4",
            WATCH_URL,
        ]
        assert VIDEO_FORMAT.endswith("/best")
        assert "vcodec!*=av01" in VIDEO_FORMAT

    def test_audio_arguments(self) -> None:
        args = build_download_args(JobMode.AUDIO, WATCH_URL, audio_format="opus")
        assert args == [
            "--newline", "-o", "%(title)s.%(ext)s",
            "-f", AUDIO_FORMAT,
            "--extract-audio",
            "--audio-format", "opus",
            "--audio-quality", "0",
            WATCH_URL,
        ]

    def test_url_is_always_last(self) -> None:
        for mode in JobMode:
            assert build_download_args(mode, "https://example.com/x")[-1] == "https://example.com/x"


class TestResolveDownloader:
    """Lookup in the program directory, then the working directory."""

    def test_explicit_path_wins(self, tmp_path: Path) -> None:
        exe = tmp_path / "bin" / "yt-dlp"
        exe.parent.mkdir()
        exe.write_text("")
        location = resolve_downloader(Settings(downloader_path=str(exe)))

        assert location.executable == exe
        assert location.work_dir == exe.parent
        assert location.found

    def test_output_dir_overrides_work_dir(self, tmp_path: Path) -> None:
        location = resolve_downloader(
            Settings(downloader_path=str(tmp_path / "yt-dlp"), output_dir=str(tmp_path / "out"))
        )
        assert location.work_dir == tmp_path / "out"
        assert not location.found

    def test_program_directory_first(self, tmp_path: Path, monkeypatch) -> None:
        program = tmp_path / "program"
        program.mkdir()
        (program / "youtube-dl").write_text("")
        monkeypatch.setattr(sys, "argv", [str(program / "run.py")])
        monkeypatch.chdir(tmp_path)

        location = resolve_downloader(Settings(downloader_path=None, downloader_name="youtube-dl"))

        assert location.executable == (program / "youtube-dl").resolve()
        assert location.work_dir == program.resolve()

    def test_working_directory_fallback(self, tmp_path: Path, monkeypatch) -> None:
        program = tmp_path / "program"
        program.mkdir()
        workdir = tmp_path / "work"
        workdir.mkdir()
        (workdir / "youtube-dl").write_text("")
        monkeypatch.setattr(sys, "argv", [str(program / "run.py")])
        monkeypatch.chdir(workdir)

        location = resolve_downloader(Settings(downloader_path=None, downloader_name="youtube-dl"))

        assert location.executable == (workdir / "youtube-dl").resolve()
        assert location.work_dir == workdir.resolve()
        assert location.found

    def test_missing_executable_warns(self, tmp_path: Path, monkeypatch, caplog) -> None:
        program = tmp_path / "program"
        program.mkdir()
        monkeypatch.setattr(sys, "argv", [str(program / "run.py")])
        monkeypatch.chdir(tmp_path)

        with caplog.at_level(logging.WARNING):
            location = resolve_downloader(Settings(downloader_path=None, downloader_name="youtube-dl"))

        assert not location.found
        assert location.executable.parent == program.resolve()
        assert "not found" in caplog.text


class TestDownloadRunner:
    """Subprocess lifecycle against a fake downloader."""

    @pytest.mark.asyncio
    async def test_successful_run_completes_job(self, make_downloader, tmp_path: Path) -> None:
        exe = make_downloader(lines=SUCCESS_OUTPUT, exit_code=0)
        runner = DownloadRunner(executable=exe, work_dir=tmp_path)
        job = new_job()

        await runner.run(job, WATCH_URL)

        snap = job.snapshot()
        assert snap.status is JobPhase.COMPLETED
        assert snap.download_pct == 100
        assert snap.conversion_pct == 100
        assert snap.finished is True
        assert snap.completed_at is not None
        assert snap.error is None
        assert snap.log == SUCCESS_OUTPUT

        cwd, args = read_invocation(tmp_path)
        assert Path(cwd).resolve() == tmp_path.resolve()
        assert args == runner.build_args(JobMode.VIDEO, WATCH_URL)

    @pytest.mark.asyncio
    async def test_audio_mode_arguments_reach_process(self, make_downloader, tmp_path: Path) -> None:
        exe = make_downloader(lines=["[ffmpeg] Destination: song.mp3"])
        runner = DownloadRunner(executable=exe, work_dir=tmp_path)
        job = new_job(JobMode.AUDIO)

        await runner.run(job, WATCH_URL)

        _, args = read_invocation(tmp_path)
        assert "--extract-audio" in args
        assert args[-1] == WATCH_URL
        assert job.snapshot().status is JobPhase.COMPLETED

    @pytest.mark.asyncio
    async def test_non_zero_exit_fails_job(self, make_downloader, tmp_path: Path) -> None:
        exe = make_downloader(
            lines=["[download]  30.0% of 1MiB", "ERROR: unable to download video data"],
            exit_code=2,
        )
        runner = DownloadRunner(executable=exe, work_dir=tmp_path)
        job = new_job()

        await runner.run(job, WATCH_URL)

        snap = job.snapshot()
        assert snap.status is JobPhase.FAILED
        assert snap.error == "downloader exited with status 2"
        assert snap.finished is True
        assert snap.completed_at is not None
        assert snap.download_pct == 30.0
        assert "ERROR: unable to download video data" in snap.log
        assert snap.log[-1] == "Error: downloader exited with status 2"

    @pytest.mark.asyncio
    async def test_launch_failure_fails_without_streaming(self, tmp_path: Path) -> None:
        runner = DownloadRunner(executable=tmp_path / "missing-downloader", work_dir=tmp_path)
        job = new_job()

        await runner.run(job, WATCH_URL)

        snap = job.snapshot()
        assert snap.status is JobPhase.FAILED
        assert snap.error is not None
        assert snap.error.startswith("could not start")
        assert len(snap.log) == 1
        assert snap.finished is True

    @pytest.mark.asyncio
    async def test_timeout_kills_process_and_fails(self, make_downloader, tmp_path: Path) -> None:
        exe = make_downloader(lines=["[download]   1.0% of 1GiB"], sleep=30)
        runner = DownloadRunner(executable=exe, work_dir=tmp_path, timeout_seconds=1.0)
        job = new_job()

        await asyncio.wait_for(runner.run(job, WATCH_URL), timeout=20)

        snap = job.snapshot()
        assert snap.status is JobPhase.FAILED
        assert "timed out" in snap.error
        assert snap.finished is True

    @pytest.mark.asyncio
    async def test_start_runs_in_background(self, make_downloader, tmp_path: Path) -> None:
        exe = make_downloader(lines=SUCCESS_OUTPUT, sleep=0.2)
        runner = DownloadRunner(executable=exe, work_dir=tmp_path)
        job = new_job()

        task = runner.start(job, WATCH_URL)
        assert runner.active_count == 1
        assert not job.is_finished

        await asyncio.wait_for(task, timeout=20)
        await asyncio.sleep(0)

        assert job.snapshot().status is JobPhase.COMPLETED
        assert runner.active_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_jobs_are_independent(self, make_downloader, tmp_path: Path) -> None:
        ok = make_downloader(lines=SUCCESS_OUTPUT, name="ok-dl")
        bad = make_downloader(lines=["ERROR: nope"], exit_code=1, name="bad-dl")
        good_jobs = [new_job() for _ in range(3)]
        bad_jobs = [new_job() for _ in range(3)]

        await asyncio.gather(
            *(DownloadRunner(ok, tmp_path).run(job, WATCH_URL) for job in good_jobs),
            *(DownloadRunner(bad, tmp_path).run(job, WATCH_URL) for job in bad_jobs),
        )

        assert all(job.snapshot().status is JobPhase.COMPLETED for job in good_jobs)
        assert all(job.snapshot().status is JobPhase.FAILED for job in bad_jobs)

    def test_factory_uses_settings(self, tmp_path: Path) -> None:
        settings = Settings(
            downloader_path=str(tmp_path / "yt-dlp"),
            job_timeout_seconds=12,
            audio_format="m4a",
        )
        runner = create_download_runner(settings)

        assert runner.executable == tmp_path / "yt-dlp"
        assert runner.timeout_seconds == 12
        assert "m4a" in runner.build_args(JobMode.AUDIO, WATCH_URL)


@pytest.mark.skipif(os.name != "nt", reason="Windows executable suffix lookup")
def test_exe_suffix_is_tried_on_windows(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "youtube-dl.exe").write_text("")
    monkeypatch.setattr(sys, "argv", [str(tmp_path / "run.py")])

    location = resolve_downloader(Settings(downloader_path=None, downloader_name="youtube-dl"))

    assert location.executable == (tmp_path / "youtube-dl.exe").resolve()
