"""Code-only updates of the API function, without touching the stack."""

import io
import json
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from oculus_deploy.deploy.backend import CommandRunner
from oculus_deploy.inventory.models import InventorySnapshot, ResourceKind
from oculus_deploy.utils.errors import (
    ConfigurationError,
    ErrorContext,
    ToolExecutionError,
    error_handler,
)
from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)

# package.json written next to the handler before compiling it
FUNCTION_PACKAGE = {
    "name": "oculus-lambda",
    "version": "1.0.0",
    "main": "index.js",
    "dependencies": {
        "@aws-sdk/client-secrets-manager": "^3.0.0",
        "pg": "^8.16.3",
    },
    "devDependencies": {
        "@types/aws-lambda": "^8.10.0",
        "@types/node": "^18.0.0",
        "@types/pg": "^8.10.0",
        "typescript": "^5.0.0",
    },
}

COMPILER_OPTIONS = ['--target', 'es2020', '--module', 'commonjs', '--outDir', '.']


@dataclass
class FunctionUpdate:
    """Result of an ``update_function_code`` call."""
    function_name: str
    code_size: int
    code_sha256: Optional[str] = None
    last_modified: Optional[str] = None


def find_api_function(snapshot: InventorySnapshot, patterns: Iterable[str]):
    """First function whose name contains one of ``patterns``, case-insensitively."""
    folded = [pattern.casefold() for pattern in patterns]
    for record in snapshot.of_kind(ResourceKind.COMPUTE_FUNCTION):
        name = (record.name or record.id).casefold()
        if any(pattern in name for pattern in folded):
            return record
    return None


def zip_directory(root: Path) -> bytes:
    """Zip every file under ``root`` with paths relative to it."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(root.rglob('*')):
            if path.is_file():
                archive.write(path, path.relative_to(root).as_posix())
    return buffer.getvalue()


class FunctionPackager:
    """Builds a deployment archive from a single TypeScript handler.

    The handler is copied to ``index.ts`` in a scratch directory, its runtime
    dependencies are installed and it is compiled to CommonJS. The whole
    directory, ``node_modules`` included, becomes the archive.
    """

    def __init__(self, runner: CommandRunner, npm: str = 'npm', npx: str = 'npx'):
        self.runner = runner
        self.npm = npm
        self.npx = npx

    def package(self, source: str) -> bytes:
        """Compile ``source`` and return the zip archive bytes.

        Raises:
            ConfigurationError: If the handler source does not exist
            ToolExecutionError: If installing or compiling fails
        """
        source_path = Path(source)
        if not source_path.is_file():
            raise ConfigurationError(
                f"Function source not found: {source_path}",
                suggestions=["Set paths.function_source in oculus.yaml or pass --source"],
            )

        with tempfile.TemporaryDirectory(prefix='oculus-lambda-') as build_dir:
            build = Path(build_dir)
            (build / 'package.json').write_text(json.dumps(FUNCTION_PACKAGE, indent=2))
            shutil.copyfile(source_path, build / 'index.ts')

            self._step([self.npm, 'install'], build, "Function dependency install failed")
            self._step([self.npx, 'tsc', 'index.ts'] + COMPILER_OPTIONS, build,
                       "Function compile failed")

            if not (build / 'index.js').is_file():
                raise ToolExecutionError(
                    "Compiler produced no index.js",
                    context=ErrorContext(operation='package-function'),
                )

            archive = zip_directory(build)

        logger.info(f"Packaged {source_path} ({len(archive)} bytes)")
        return archive

    def _step(self, command, cwd: Path, message: str):
        result = self.runner.run(command, cwd=str(cwd))
        if not result.success:
            raise ToolExecutionError(
                message,
                context=ErrorContext(operation='package-function'),
                output=result.output,
            )


def update_function_code(lambda_client, function_name: str, archive: bytes) -> FunctionUpdate:
    """Replace the function's code with ``archive``.

    Raises:
        DeploymentError: If the Lambda API call fails
    """
    try:
        response = lambda_client.update_function_code(FunctionName=function_name, ZipFile=archive)
    except (ClientError, BotoCoreError) as e:
        raise error_handler.handle_exception(
            e,
            ErrorContext(
                resource_kind=ResourceKind.COMPUTE_FUNCTION.value,
                resource_id=function_name,
                operation='update-function-code',
                aws_service='lambda',
            ),
        )

    logger.info(f"Updated code of {function_name}",
                extra={'resource_kind': ResourceKind.COMPUTE_FUNCTION.value})
    return FunctionUpdate(
        function_name=function_name,
        code_size=response.get('CodeSize', len(archive)),
        code_sha256=response.get('CodeSha256'),
        last_modified=response.get('LastModified'),
    )
