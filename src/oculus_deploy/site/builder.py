"""Frontend build before publishing."""

from pathlib import Path
from typing import List

from oculus_deploy.deploy.backend import CommandRunner, ToolResult
from oculus_deploy.utils.errors import ConfigurationError, ErrorContext, ToolExecutionError
from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class SiteBuilder:
    """Installs the app's dependencies and runs its build script."""

    def __init__(self, runner: CommandRunner, npm: str = 'npm'):
        self.runner = runner
        self.npm = npm

    def build(self, app_dir: str) -> List[ToolResult]:
        """Run ``npm install`` then ``npm run build`` in ``app_dir``.

        Raises:
            ConfigurationError: If ``app_dir`` has no package.json
            ToolExecutionError: If either step fails
        """
        root = Path(app_dir)
        if not (root / 'package.json').is_file():
            raise ConfigurationError(
                f"No package.json in {root}",
                suggestions=["Set paths.app_dir in oculus.yaml", "Pass --no-build to publish an existing build"],
            )

        results = []
        for command in ([self.npm, 'install'], [self.npm, 'run', 'build']):
            result = self.runner.run(command, cwd=str(root))
            results.append(result)
            if not result.success:
                raise ToolExecutionError(
                    f"{result.command_line} failed in {root}",
                    context=ErrorContext(operation='build-site'),
                    output=result.output,
                )

        logger.info(f"Built {root}")
        return results
