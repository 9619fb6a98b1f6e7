"""
Scripted stand-in for ``GitCommandGateway`` used by the unit tests.

Rules match on a prefix of the git argument vector; the first registered rule
that matches wins. Unmatched commands succeed with empty output.
"""

from pathlib import Path
from typing import List, Optional, Tuple

from smgit.config import Config
from smgit.errors import CommandError


class FakeGateway:
    """Records git invocations and answers them from a script."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.calls: List[Tuple[List[str], Path]] = []
        self.clones: List[Tuple[str, Path]] = []
        self.rules = []
        self.clone_error: Optional[CommandError] = None
        self.clone_files = {}

    def on(self, *prefix: str, output: str = "", error: Optional[str] = None, times: Optional[int] = None):
        """Answer commands starting with ``prefix`` with ``output`` or a CommandError."""
        self.rules.append({"prefix": tuple(prefix), "output": output, "error": error, "times": times})
        return self

    def run(self, args, cwd, verbose=False, env=None) -> str:
        args = list(args)
        self.calls.append((args, Path(cwd)))
        for rule in self.rules:
            prefix = rule["prefix"]
            if tuple(args[:len(prefix)]) != prefix:
                continue
            if rule["times"] is not None:
                if rule["times"] == 0:
                    continue
                rule["times"] -= 1
            if rule["error"] is not None:
                raise CommandError(args, rule["error"], 1)
            return rule["output"]
        return ""

    def clone(self, uri: str, target, verbose: bool = False) -> Path:
        target = Path(target)
        self.clones.append((uri, target))
        if self.clone_error is not None:
            raise self.clone_error
        (target / ".git").mkdir(parents=True)
        (target / ".git" / "HEAD").write_text("ref: refs/heads/master\n")
        for name, content in self.clone_files.items():
            (target / name).parent.mkdir(parents=True, exist_ok=True)
            (target / name).write_text(content)
        return target

    def commands(self, *prefix: str) -> List[List[str]]:
        """Recorded argument vectors starting with ``prefix``."""
        return [args for args, _ in self.calls if tuple(args[:len(prefix)]) == tuple(prefix)]

    def count(self, *prefix: str) -> int:
        return len(self.commands(*prefix))
