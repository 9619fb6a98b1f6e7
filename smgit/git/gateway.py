"""Gateway to the git binary: runs commands and classifies their outcome."""

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Dict, Optional, Sequence, TextIO, Union

from git import Repo, RemoteProgress
from git.exc import GitCommandError, GitCommandNotFound

from ..config import Config
from ..errors import CommandError, PreconditionError, ProcessSpawnError, FATAL_MARKER
from ..platform import get_git_executable, get_platform_info


class _CloneProgress(RemoteProgress):
    """Streams clone progress lines to a console stream."""

    def __init__(self, stream: TextIO):
        super().__init__()
        self.stream = stream

    def update(self, op_code, cur_count, max_count=None, message=''):
        if max_count:
            line = f"{cur_count:.0f}/{max_count:.0f} {message}".rstrip()
        else:
            line = f"{cur_count:.0f} {message}".rstrip()
        self.stream.write(line + "\n")
        self.stream.flush()


class GitCommandGateway:
    """
    Runs git as a subprocess on behalf of the query layer.

    Every command gets stdout and stderr merged into one captured text. A command
    fails when git exits non-zero or prints a ``fatal:`` line, because some git
    commands exit 0 after printing a fatal diagnostic.
    """

    def __init__(self, config: Config, stream: Optional[TextIO] = None):
        """
        Initialize the gateway.

        Args:
            config: Configuration providing the transport/auth helper overlay
            stream: Console stream used when commands run verbosely
        """
        self.config = config
        self.stream = stream or sys.stdout
        self.executable = get_git_executable()
        self.logger = logging.getLogger('smgit.git.gateway')

    def environment(self, env: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Build the subprocess environment without touching ``os.environ``."""
        merged = dict(os.environ)
        merged.update(self.config.git_environment())
        if env:
            merged.update(env)
        return merged

    def run(
        self,
        args: Sequence[str],
        cwd: Union[str, Path],
        verbose: bool = False,
        env: Optional[Dict[str, str]] = None
    ) -> str:
        """
        Run ``git <args>`` in ``cwd`` and return the combined output.

        Raises:
            ProcessSpawnError: git could not be launched
            CommandError: git failed or reported a fatal error
        """
        command = [self.executable, *args]
        self.logger.debug(f"Running {' '.join(command)} in {cwd}")

        try:
            proc = subprocess.Popen(
                command,
                cwd=str(cwd),
                env=self.environment(env),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                shell=get_platform_info().is_windows
            )
        except OSError as e:
            raise ProcessSpawnError(self.executable, e)

        chunks = []
        with proc.stdout:
            for line in iter(proc.stdout.readline, ''):
                if verbose:
                    self.stream.write(line)
                    self.stream.flush()
                chunks.append(line)
        returncode = proc.wait()
        output = "".join(chunks)

        if returncode != 0:
            self.logger.debug(f"git {args[0] if args else ''} exited with {returncode}")
            raise CommandError(args, output, returncode)
        if FATAL_MARKER.search(output):
            raise CommandError(args, output, returncode)

        return output

    def clone(self, uri: str, target: Union[str, Path], verbose: bool = False) -> Path:
        """
        Make a full clone of ``uri`` at ``target``, streaming progress when verbose.

        Raises:
            PreconditionError: target already exists
            ProcessSpawnError: git could not be launched
            CommandError: the clone failed
        """
        target = Path(target)
        if target.exists():
            raise PreconditionError(
                f"Error cloning git repository. Target path '{target}' already exists!"
            )
        target.parent.mkdir(parents=True, exist_ok=True)

        progress = _CloneProgress(self.stream) if verbose else None
        try:
            Repo.clone_from(uri, str(target), progress=progress, env=self.config.git_environment())
        except GitCommandNotFound as e:
            raise ProcessSpawnError(self.executable, e)
        except GitCommandError as e:
            output = f"{e.stdout or ''}{e.stderr or ''}".strip() or str(e)
            raise CommandError(["clone", "--progress", uri, str(target)], output, e.status)

        return target
