import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from mediainterface_build.builders.toolchain import InvocationResult, ToolchainInvoker
from mediainterface_build.config import ConfigLoader
from mediainterface_build.utils import Logger


class FakeInvoker(ToolchainInvoker):
    """Records commands instead of running them.

    ``on_run`` receives the full command list and may return an
    InvocationResult; returning None falls through to the default, which is
    success for every tool except git (reported as not a repository).
    """

    def __init__(self, on_run=None, git_tag=None):
        super().__init__()
        self.on_run = on_run
        self.git_tag = git_tag
        self.calls = []

    def run(self, working_dir, command, args=(), env_overrides=None, timeout=None):
        cmd = [str(command)] + [str(a) for a in args]
        self.calls.append((Path(working_dir), cmd, dict(env_overrides or {})))
        self.history.append(cmd)

        if self.on_run is not None:
            result = self.on_run(cmd)
            if result is not None:
                return result

        if cmd[0] == "git":
            if self.git_tag:
                return InvocationResult(0, self.git_tag + "\n")
            return InvocationResult(128, "fatal: not a git repository")
        return InvocationResult(0, "")

    def commands(self, tool=None):
        return [c for _, c, _ in self.calls if tool is None or Path(c[0]).stem == tool]


@pytest.fixture
def logger():
    return Logger(verbose=True, name="mediainterface_build.tests")


@pytest.fixture
def config():
    return ConfigLoader()


@pytest.fixture
def fake_invoker():
    return FakeInvoker()


@pytest.fixture
def invoker_factory():
    return FakeInvoker
