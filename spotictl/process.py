"""Lifecycle control of the Spotify desktop application process."""

from __future__ import annotations

import csv
import io
import subprocess
import sys
import threading
from typing import Callable, List, Optional, Sequence, Tuple

import psutil
import structlog

from .errors import AlreadyRunning, AttachFailed, KillFailed, NotRunning, StartFailed
from .logging import get_logger

Runner = Callable[[Sequence[str]], Tuple[int, str, str]]


def run_cmd(cmd: Sequence[str]) -> Tuple[int, str, str]:
    """Run a command, capture stdout/stderr, return ``(rc, out, err)``."""

    proc = subprocess.Popen(
        list(cmd),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    out, err = proc.communicate()
    return proc.returncode, out.strip(), err.strip()


def parse_pidof(output: str) -> List[int]:
    """Parse the whitespace separated output of ``pidof``."""

    pids = []
    for value in output.split():
        try:
            pids.append(int(value))
        except ValueError as exc:
            raise NotRunning(f"PID is invalid: {value!r}") from exc
    return pids


def parse_tasklist(output: str) -> List[int]:
    """Parse ``tasklist /FO CSV`` output; the PID is the second column."""

    if "No tasks are running" in output:
        return []
    rows = list(csv.reader(io.StringIO(output)))
    pids = []
    for row in rows[1:]:
        if not row:
            continue
        try:
            pids.append(int(row[1]))
        except (IndexError, ValueError) as exc:
            raise NotRunning(f"PID is invalid: {row!r}") from exc
    return pids


class ProcessController:
    """Start, stop and locate a single named application process.

    The controller binds to one PID at a time: the child it spawned, or the
    lowest PID found by :meth:`attach`. All operations are serialised by a
    per-instance lock.
    """

    def __init__(
        self,
        name: str = "spotify",
        executable: Optional[str] = None,
        *,
        runner: Runner = run_cmd,
        spawner: Callable[..., subprocess.Popen] = subprocess.Popen,
        platform: str = sys.platform,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        self.name = name
        self.executable = executable or name
        self._runner = runner
        self._spawner = spawner
        self._platform = platform
        self._lock = threading.Lock()
        self._pid: Optional[int] = None
        self._handle: Optional[psutil.Process] = None
        self.logger = (logger or get_logger("spotictl.process")).bind(process=name)

    @property
    def pid(self) -> Optional[int]:
        """PID the controller is currently bound to, if any."""

        return self._pid

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start(self) -> int:
        """Spawn the application unless an instance is already running."""

        with self._lock:
            try:
                running = self._lowest_pid()
            except NotRunning:
                running = None
            if running is not None:
                raise AlreadyRunning(self.name, running)

            try:
                child = self._spawner(
                    [self.executable],
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    start_new_session=True,
                )
            except OSError as exc:
                raise StartFailed(f"failed to start {self.executable}: {exc}") from exc

            self._bind(child.pid)
            self.logger.info("process.started", pid=child.pid)
            return child.pid

    def kill(self) -> int:
        """Terminate the bound process, attaching to a running one first if needed.

        A bound handle whose process has exited (or whose PID now belongs to
        another process) is dropped and the controller re-attaches. On Windows
        the whole process tree is killed.
        """

        with self._lock:
            handle = self._live_handle()
            if handle is None:
                try:
                    self._attach()
                except NotRunning as exc:
                    raise AttachFailed(f"cannot attach to {self.name}: {exc}") from exc
                handle = self._handle

            pid = self._pid
            try:
                if handle is None:
                    handle = psutil.Process(pid)
                self._kill_tree(handle)
            except psutil.NoSuchProcess as exc:
                self._unbind()
                raise KillFailed(f"process {pid} no longer exists") from exc
            except psutil.AccessDenied as exc:
                raise KillFailed(f"permission denied killing process {pid}") from exc
            except psutil.Error as exc:
                raise KillFailed(f"failed to kill process {pid}: {exc}") from exc

            self._unbind()
            self.logger.info("process.killed", pid=pid)
            return pid

    def attach(self) -> int:
        """Bind to the lowest PID of the running application."""

        with self._lock:
            return self._attach()

    def ping(self) -> int:
        """Return the lowest matching PID without changing the bound handle."""

        with self._lock:
            return self._lowest_pid()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _bind(self, pid: int) -> None:
        self._pid = pid
        try:
            self._handle = psutil.Process(pid)
        except psutil.Error:
            self._handle = None

    def _unbind(self) -> None:
        self._pid = None
        self._handle = None

    def _live_handle(self) -> Optional[psutil.Process]:
        if self._handle is not None and self._handle.is_running():
            return self._handle
        self._unbind()
        return None

    def _kill_tree(self, handle: psutil.Process) -> None:
        if self._platform == "win32":
            # Spotify on Windows runs helper processes under the main one.
            for child in handle.children(recursive=True):
                try:
                    child.kill()
                except psutil.NoSuchProcess:
                    continue
        handle.kill()

    def _attach(self) -> int:
        pid = self._lowest_pid()
        self._bind(pid)
        self.logger.debug("process.attached", pid=pid)
        return pid

    def _lowest_pid(self) -> int:
        return min(self.list_pids())

    def _pid_query(self) -> Tuple[List[str], Callable[[str], List[int]]]:
        if self._platform == "win32":
            image = self.name if self.name.lower().endswith(".exe") else f"{self.name}.exe"
            return ["tasklist.exe", "/FI", f"IMAGENAME eq {image}", "/FO", "CSV"], parse_tasklist
        return ["pidof", self.name], parse_pidof

    def list_pids(self) -> List[int]:
        """Return all PIDs of processes named like the application, ascending."""

        cmd, parse = self._pid_query()
        try:
            rc, out, err = self._runner(cmd)
        except OSError as exc:
            raise NotRunning(f"failed to get PID of {self.name}: {exc}") from exc

        if rc != 0:
            raise NotRunning(f"{self.name} is not running")

        pids = parse(out)
        if not pids:
            raise NotRunning(f"{self.name} is not running")
        self.logger.debug("process.pids", pids=pids)
        return sorted(pids)
