"""One-shot ``reanalyze -json`` runs."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from pathlib import Path

import structlog

from reanalyst.analysis.models import RunResult
from reanalyst.analysis.parsers import parse_reanalyze_json
from reanalyst.config.constants import STREAM_LINE_LIMIT
from reanalyst.config.models import AnalysisConfig

logger = structlog.get_logger()

StderrCallback = Callable[[str, bool], None]
"""Called per non-blank stderr line with (text, is_distress)."""


class AnalysisRunner:
    """Runs the analysis subprocess and parses what it prints.

    Distinct from the long-lived server: each run is its own process, started
    in the monorepo root and read to EOF. Stdout is accumulated; stderr is read
    concurrently, line by line, and each line is checked for the
    corrupted-artifacts signature.
    """

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        self._config = config or AnalysisConfig()

    def build_command(self, binary_path: Path) -> list[str]:
        return [str(binary_path), *self._config.args]

    async def run(
        self,
        root: Path,
        binary_path: Path,
        *,
        on_stderr: StderrCallback | None = None,
    ) -> RunResult:
        """Run the analysis in root and parse its JSON output.

        Never raises for process or output problems; the outcome is reported in
        RunResult.status with the command line and cwd needed to reproduce it.
        """
        start_time = time.time()
        cmd = self.build_command(binary_path)
        cwd = str(root)
        logger.info("analysis_started", command=cmd, cwd=cwd)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=root,
                limit=STREAM_LINE_LIMIT,
            )
        except OSError as e:
            logger.error("analysis_spawn_failed", command=cmd, cwd=cwd, error=str(e))
            return RunResult(
                status="spawn_failed",
                command=cmd,
                cwd=cwd,
                error_detail=str(e),
                duration_seconds=time.time() - start_time,
            )

        stderr_lines: list[str] = []
        distress = False

        async def read_stdout() -> bytes:
            assert proc.stdout is not None
            return await proc.stdout.read()

        async def read_stderr() -> None:
            nonlocal distress
            assert proc.stderr is not None
            while True:
                try:
                    raw = await proc.stderr.readline()
                except ValueError:
                    logger.warning("analysis_stderr_line_too_long", limit=STREAM_LINE_LIMIT)
                    continue
                if not raw:
                    return
                text = raw.decode(errors="replace")
                stderr_lines.append(text)
                if not text.strip():
                    continue
                is_distress = self._config.distress_signature in text
                distress = distress or is_distress
                logger.warning("analysis_stderr", text=text.strip(), distress=is_distress)
                if on_stderr is not None:
                    on_stderr(text, is_distress)

        stdout_bytes, _ = await asyncio.gather(read_stdout(), read_stderr())
        returncode = await proc.wait()
        stdout = stdout_bytes.decode(errors="replace")
        stderr = "".join(stderr_lines)

        parse_result = parse_reanalyze_json(stdout, stderr)
        duration = time.time() - start_time

        if not parse_result.success:
            result = RunResult(
                status="malformed",
                command=cmd,
                cwd=cwd,
                raw_output=stdout,
                stderr=stderr,
                distress=distress,
                returncode=returncode,
                duration_seconds=duration,
                error_detail=parse_result.parse_error,
            )
            logger.error(
                "analysis_malformed_output",
                command=cmd,
                cwd=cwd,
                returncode=returncode,
                error=parse_result.parse_error,
                raw_output=stdout[:2000],
                reproduce=result.reproduce_hint,
            )
            return result

        logger.info(
            "analysis_finished",
            items=len(parse_result.items),
            returncode=returncode,
            duration_s=round(duration, 3),
        )
        return RunResult(
            status="ok",
            command=cmd,
            cwd=cwd,
            items=parse_result.items,
            raw_output=stdout,
            stderr=stderr,
            distress=distress,
            returncode=returncode,
            duration_seconds=duration,
        )
