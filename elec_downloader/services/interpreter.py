"""Line interpreter turning downloader output into job state transitions.

Each non-blank output line is matched against an ordered list of rules; the
first rule that matches decides the effect. Rules are plain values, so new
progress formats are added by extending the list rather than by editing the
interpreter.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from elec_downloader.models.job import JobPhase
from elec_downloader.services.jobs import JobRecord

logger = logging.getLogger(__name__)

DOWNLOAD_PROGRESS_RE = re.compile(r"\[download\]\s+(\d+(?:\.\d+)?)%")

# Case-sensitive markers printed by the merge/post-processing steps
CONVERSION_MARKERS = ("[ffmpeg]", "[Merger]")


@dataclass(frozen=True)
class LineEffect:
    """State transition produced by one output line."""

    phase: JobPhase
    download_pct: Optional[float] = None


@dataclass(frozen=True)
class LineRule:
    """A named matcher returning an effect, or None when the line does not apply."""

    name: str
    match: Callable[[str], Optional[LineEffect]]


def _match_download_progress(line: str) -> Optional[LineEffect]:
    found = DOWNLOAD_PROGRESS_RE.search(line)
    if not found:
        return None
    return LineEffect(phase=JobPhase.DOWNLOADING, download_pct=float(found.group(1)))


def _match_conversion(line: str) -> Optional[LineEffect]:
    if any(marker in line for marker in CONVERSION_MARKERS) or "conversion" in line.lower():
        return LineEffect(phase=JobPhase.CONVERTING)
    return None


DEFAULT_RULES: tuple[LineRule, ...] = (
    LineRule("download-progress", _match_download_progress),
    LineRule("conversion", _match_conversion),
)


class LineInterpreter:
    """Ordered, first-match-wins rule list."""

    def __init__(self, rules: Sequence[LineRule] = DEFAULT_RULES) -> None:
        self.rules = tuple(rules)

    def interpret(self, line: str) -> Optional[LineEffect]:
        for rule in self.rules:
            effect = rule.match(line)
            if effect is not None:
                return effect
        return None


_default_interpreter = LineInterpreter()


def interpret_line(line: str) -> Optional[LineEffect]:
    """Interpret one cleaned line with the default rules. Pure."""
    return _default_interpreter.interpret(line)


def apply_effect(job: JobRecord, effect: LineEffect) -> None:
    """Apply an interpreted effect to a job record."""
    if effect.phase is JobPhase.DOWNLOADING and effect.download_pct is not None:
        job.record_download_progress(effect.download_pct)
    elif effect.phase is JobPhase.CONVERTING:
        job.enter_conversion()


def clean_line(raw: str) -> str:
    """Strip carriage returns and surrounding whitespace."""
    return raw.replace("\r", "").strip()


def handle_line(job: JobRecord, raw: str, interpreter: LineInterpreter = _default_interpreter) -> None:
    """
    Record one raw output line on a job and apply its interpretation.

    Blank lines are ignored. Non-blank lines always land in the log and the
    current message before the rules run.

    Args:
        job: Job receiving the line
        raw: Line as read from the process, possibly with line terminators
        interpreter: Rules used to interpret the line
    """
    line = clean_line(raw)
    if not line:
        return
    job.append_line(line)
    effect = interpreter.interpret(line)
    if effect is not None:
        apply_effect(job, effect)


async def stream_lines(
    job: JobRecord,
    stream: asyncio.StreamReader,
    interpreter: LineInterpreter = _default_interpreter,
) -> None:
    """
    Consume a process output stream line by line until it ends.

    Clean end-of-stream returns silently. Any other read error is written to
    the job's log and ends the reader without failing the job; the exit status
    of the process decides the outcome.

    Args:
        job: Job receiving the lines
        stream: Combined stdout/stderr of the downloader
        interpreter: Rules used to interpret each line
    """
    while True:
        try:
            chunk = await stream.readline()
        except Exception as e:
            logger.warning(f"Output stream of job {job.id} interrupted: {e}")
            job.append_line(f"stream interrupted: {e}")
            return
        if not chunk:
            return
        handle_line(job, chunk.decode("utf-8", errors="replace"), interpreter)
