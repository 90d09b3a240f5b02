"""External command runner and the CDK backend invoked through npx."""

import os
import shutil
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)

OutputCallback = Callable[[str], None]


@dataclass
class ToolResult:
    """Outcome of one tool invocation. ``output`` has stdout and stderr merged."""
    command: List[str]
    success: bool
    returncode: int
    output: str = ''
    duration: float = 0.0

    @property
    def command_line(self) -> str:
        return ' '.join(self.command)

    def tail(self, lines: int = 40) -> str:
        """Last lines of output, for error messages."""
        return '\n'.join(self.output.splitlines()[-lines:])


class DeployBackend(ABC):
    """Declarative infrastructure tool used by the executor."""

    @abstractmethod
    def prepare(self, clean: bool = True) -> ToolResult:
        """Install the tool's dependencies; ``clean`` uses the lockfile."""

    @abstractmethod
    def has_lockfile(self) -> bool:
        """Whether a dependency lockfile exists."""

    @abstractmethod
    def synthesize(self, context: Optional[Dict[str, str]] = None) -> ToolResult:
        """Render templates without changing anything in the cloud."""

    @abstractmethod
    def deploy(self, context: Optional[Dict[str, str]] = None) -> ToolResult:
        """Create or update the stack."""

    @abstractmethod
    def destroy(self, context: Optional[Dict[str, str]] = None) -> ToolResult:
        """Delete the stack."""

    @abstractmethod
    def list_stacks(self) -> ToolResult:
        """List stacks declared by the app; one name per output line."""


class CommandRunner:
    """Runs external commands, streaming and capturing their merged output."""

    def __init__(
        self,
        cwd: str = '.',
        on_output: Optional[OutputCallback] = None,
        env: Optional[Dict[str, str]] = None
    ):
        """Initialize command runner.

        Args:
            cwd: Default working directory
            on_output: Called with each output line as it is produced
            env: Extra environment variables for every command
        """
        self.cwd = Path(cwd)
        self.on_output = on_output
        self.env = env or {}

    def run(self, command: Sequence[str], cwd: Optional[str] = None) -> ToolResult:
        """Run a command in ``cwd`` (default: the runner's directory).

        A missing executable is reported as a failed result, not raised.
        """
        command = list(command)
        workdir = Path(cwd) if cwd is not None else self.cwd
        started = time.monotonic()
        logger.info(f"$ {' '.join(command)}", extra={'operation': command[1] if len(command) > 1 else command[0]})

        executable = shutil.which(command[0]) or command[0]
        lines: List[str] = []
        try:
            process = subprocess.Popen(
                [executable] + command[1:],
                cwd=str(workdir),
                env={**os.environ, **self.env},
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,  # Line buffered
            )
        except OSError as e:
            logger.error(f"Failed to start {command[0]}: {e}")
            return ToolResult(command=command, success=False, returncode=127, output=str(e))

        for line in process.stdout:
            line = line.rstrip('\n')
            lines.append(line)
            if self.on_output:
                self.on_output(line)
        returncode = process.wait()

        duration = time.monotonic() - started
        result = ToolResult(
            command=command,
            success=returncode == 0,
            returncode=returncode,
            output='\n'.join(lines),
            duration=duration,
        )
        logger.debug(f"{result.command_line} exited with {returncode}",
                     extra={'duration': round(duration, 3)})
        return result


class CdkBackend(DeployBackend):
    """Runs ``npx cdk`` in the CDK project directory."""

    def __init__(
        self,
        cdk_dir: str,
        on_output: Optional[OutputCallback] = None,
        npm: str = 'npm',
        npx: str = 'npx',
        env: Optional[Dict[str, str]] = None
    ):
        """Initialize CDK backend.

        Args:
            cdk_dir: Directory holding the CDK app (package.json, cdk.json)
            on_output: Called with each output line as it is produced
            npm: npm executable
            npx: npx executable
            env: Extra environment variables for every command
        """
        self.cdk_dir = Path(cdk_dir)
        self.runner = CommandRunner(cdk_dir, on_output=on_output, env=env)
        self.npm = npm
        self.npx = npx

    def has_lockfile(self) -> bool:
        return (self.cdk_dir / 'package-lock.json').exists()

    def prepare(self, clean: bool = True) -> ToolResult:
        return self.run([self.npm, 'ci' if clean else 'i'])

    def synthesize(self, context: Optional[Dict[str, str]] = None) -> ToolResult:
        return self.run([self.npx, 'cdk', 'synth'] + self.context_args(context))

    def deploy(self, context: Optional[Dict[str, str]] = None) -> ToolResult:
        return self.run(
            [self.npx, 'cdk', 'deploy', '--require-approval', 'never'] + self.context_args(context)
        )

    def destroy(self, context: Optional[Dict[str, str]] = None) -> ToolResult:
        return self.run([self.npx, 'cdk', 'destroy', '--force'] + self.context_args(context))

    def list_stacks(self) -> ToolResult:
        return self.run([self.npx, 'cdk', 'list'])

    @staticmethod
    def context_args(context: Optional[Dict[str, str]]) -> List[str]:
        """Turn context parameters into ``-c key=value`` arguments."""
        args: List[str] = []
        for key, value in sorted((context or {}).items()):
            args.extend(['-c', f'{key}={value}'])
        return args

    def run(self, command: Sequence[str]) -> ToolResult:
        return self.runner.run(command)
