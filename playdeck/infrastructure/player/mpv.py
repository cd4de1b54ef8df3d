import logging
import os
import shutil
import signal
import subprocess
from pathlib import Path
from typing import List, Optional, Union


logger = logging.getLogger(__name__)


class MpvTrackPlayer:
    """TrackPlayer adapter that plays a track in a background ``mpv`` process.

    mpv resolves the stream itself through its ytdl hook. A play counts as
    failed when mpv cannot be launched or exits with an error within the
    start-up grace period; the alternate URL is tried before giving up.

    Only one mpv process is kept alive at a time. With a ``pid_file`` the
    running process is also found again by later invocations (e.g. a second
    CLI command), so ``next`` replaces the track instead of playing on top.
    """

    def __init__(self, command: str = 'mpv', startup_grace_sec: float = 3.0,
                 extra_args: Optional[List[str]] = None,
                 pid_file: Optional[Union[str, Path]] = None):
        self.command = command
        self.startup_grace_sec = startup_grace_sec
        self.extra_args = list(extra_args or [])
        self.pid_file = Path(pid_file) if pid_file else None
        self._process: Optional[subprocess.Popen] = None

    def is_available(self) -> bool:
        return shutil.which(self.command) is not None

    def play(self, primary_url: str, title: str, alternate_url: str) -> bool:
        self.stop()
        for url in _unique([primary_url, alternate_url]):
            if self._launch(url, title):
                return True
        logger.warning(f"mpv could not play '{title}'")
        return False

    def stop(self) -> None:
        """Stop the mpv process started by this player or recorded in the pid file."""
        proc, self._process = self._process, None
        if proc is not None and proc.poll() is None:
            _terminate(proc.pid)
            try:
                proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                proc.kill()
        elif self.pid_file is not None:
            pid = self._read_pid()
            if pid is not None:
                _terminate(pid)

        if self.pid_file is not None and self.pid_file.exists():
            self.pid_file.unlink()

    def _launch(self, url: str, title: str) -> bool:
        cmd = [
            self.command,
            '--no-video',
            '--really-quiet',
            f'--force-media-title={title}',
            *self.extra_args,
            url,
        ]
        kwargs = {}
        if os.name != 'nt':
            # Own process group: stop() takes down mpv and its ytdl helper together
            kwargs['start_new_session'] = True

        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **kwargs,
            )
        except (FileNotFoundError, PermissionError) as e:
            logger.error(f"Cannot launch {self.command}: {e}")
            return False

        try:
            returncode = proc.wait(timeout=self.startup_grace_sec)
        except subprocess.TimeoutExpired:
            self._process = proc
            self._write_pid(proc.pid)
            logger.info(f"mpv playing {url} (pid {proc.pid})")
            return True

        if returncode == 0:
            # Ended inside the grace window; still a completed play
            return True
        logger.warning(f"mpv exited with code {returncode} for {url}")
        return False

    def _read_pid(self) -> Optional[int]:
        try:
            return int(self.pid_file.read_text().strip())
        except (OSError, ValueError):
            return None

    def _write_pid(self, pid: int) -> None:
        if self.pid_file is None:
            return
        try:
            self.pid_file.parent.mkdir(parents=True, exist_ok=True)
            self.pid_file.write_text(str(pid))
        except OSError as e:
            logger.warning(f"Could not record mpv pid in {self.pid_file}: {e}")


def _terminate(pid: int) -> None:
    try:
        if os.name != 'nt':
            os.killpg(os.getpgid(pid), signal.SIGTERM)
        else:
            os.kill(pid, signal.SIGTERM)
    except OSError as e:
        logger.debug(f"mpv process {pid} already gone: {e}")


def _unique(urls: List[str]) -> List[str]:
    seen = []
    for url in urls:
        if url and url not in seen:
            seen.append(url)
    return seen
