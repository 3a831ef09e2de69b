"""
External process invocation (git, unzip, pgrep).

Processes are started with asyncio and tracked while they run so a caller can
terminate them explicitly. There is no automatic timeout: a hung clone keeps
running until someone calls terminate_all().
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Outcome of a finished external process."""

    args: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error_text(self) -> str:
        """Captured stderr, falling back to stdout, for failure messages."""
        text = self.stderr.strip() or self.stdout.strip()
        return text or f"exit code {self.returncode}"


class ProcessRunner:
    """Runs external commands and keeps a handle on the ones still running."""

    def __init__(self) -> None:
        self._active: set[asyncio.subprocess.Process] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    async def run(
        self,
        *args: str,
        cwd: Optional[Path] = None,
        env: Optional[dict[str, str]] = None,
    ) -> ProcessResult:
        """Run a command to completion and capture its output.

        A missing executable is reported as returncode 127, like a shell would.
        Cancelling the awaiting task kills the process.
        """
        cmd = [str(a) for a in args]
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(cwd) if cwd else None,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return ProcessResult(cmd, 127, "", f"{cmd[0]}: command not found")
        except OSError as e:
            return ProcessResult(cmd, 126, "", f"{cmd[0]}: {e}")

        self._active.add(proc)
        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            _kill(proc)
            await proc.wait()
            raise
        finally:
            self._active.discard(proc)

        return ProcessResult(
            cmd,
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode(errors="replace") if stdout else "",
            stderr.decode(errors="replace") if stderr else "",
        )

    def terminate_all(self) -> int:
        """Terminate every running process. Returns how many were signalled."""
        count = 0
        for proc in list(self._active):
            if proc.returncode is None:
                _kill(proc)
                count += 1
        if count:
            logger.info(f"Terminated {count} external process(es)")
        return count


def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.terminate()
    except ProcessLookupError:
        pass


# ---------------------------------------------------------------------------
# Git helpers
# ---------------------------------------------------------------------------

async def git_clone(runner: ProcessRunner, url: str, dest: Path) -> ProcessResult:
    return await runner.run("git", "clone", "--depth", "1", url, str(dest))


async def git_pull(runner: ProcessRunner, repo: Path) -> ProcessResult:
    return await runner.run("git", "-C", str(repo), "pull")


async def git_remote_url(runner: ProcessRunner, repo: Path) -> Optional[str]:
    """Return the origin URL of a checkout, or None if git can't tell us."""
    result = await runner.run("git", "-C", str(repo), "remote", "get-url", "origin")
    if not result.ok:
        logger.debug(f"No origin remote for {repo}: {result.error_text}")
        return None
    url = result.stdout.strip()
    return url or None


async def unzip(runner: ProcessRunner, archive: Path, dest: Path) -> ProcessResult:
    return await runner.run("unzip", "-q", "-o", str(archive), "-d", str(dest))
