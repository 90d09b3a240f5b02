"""Unit tests for API function packaging and code updates."""

import io
import json
import zipfile
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from oculus_deploy.deploy.functions import (
    FunctionPackager,
    find_api_function,
    update_function_code,
    zip_directory,
)
from oculus_deploy.inventory.models import ComputeFunctionRecord, InventorySnapshot, ResourceKind
from oculus_deploy.utils.errors import ConfigurationError, DeploymentError, ToolExecutionError

from conftest import RecordingRunner

PATTERNS = ["oculus_api", "oculus-api", "oculusapifn", "oculusdevapifn"]


def _snapshot(*names):
    return InventorySnapshot(
        region="us-east-1",
        resources={ResourceKind.COMPUTE_FUNCTION: [
            ComputeFunctionRecord(id=name, name=name, runtime="nodejs18.x") for name in names
        ]},
    )


def _compile(build_dir):
    (build_dir / "index.js").write_text("exports.handler = async () => ({});")
    (build_dir / "node_modules" / "pg").mkdir(parents=True)
    (build_dir / "node_modules" / "pg" / "index.js").write_text("module.exports = {};")


@pytest.fixture
def handler(tmp_path):
    path = tmp_path / "lambdas" / "api.ts"
    path.parent.mkdir()
    path.write_text("export const handler = async () => ({ statusCode: 200 });")
    return path


# =============================================================================
# Lookup
# =============================================================================

def test_find_api_function_matches_generated_name():
    snapshot = _snapshot("OculusMiniStack-createdbfn9F8E", "OculusMiniStack-oculusapifn1A2B3C")

    assert find_api_function(snapshot, PATTERNS).id == "OculusMiniStack-oculusapifn1A2B3C"


def test_find_api_function_is_case_insensitive():
    assert find_api_function(_snapshot("OCULUS_API_FN"), PATTERNS) is not None


def test_find_api_function_none():
    assert find_api_function(_snapshot("other-fn"), PATTERNS) is None
    assert find_api_function(_snapshot(), PATTERNS) is None


# =============================================================================
# Packaging
# =============================================================================

def test_package_installs_compiles_and_zips(handler):
    runner = RecordingRunner(effects={"tsc": _compile})

    archive = FunctionPackager(runner).package(str(handler))

    assert runner.commands() == [
        ["npm", "install"],
        ["npx", "tsc", "index.ts", "--target", "es2020", "--module", "commonjs", "--outDir", "."],
    ]
    # Both steps run in the same scratch directory
    assert runner.calls[0][1] == runner.calls[1][1]

    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        names = set(zf.namelist())
        assert {"index.js", "index.ts", "package.json", "node_modules/pg/index.js"} <= names
        assert json.loads(zf.read("package.json"))["dependencies"]["pg"]
        assert zf.read("index.ts").decode() == handler.read_text()


def test_package_missing_source(tmp_path):
    with pytest.raises(ConfigurationError):
        FunctionPackager(RecordingRunner()).package(str(tmp_path / "missing.ts"))


def test_package_install_failure_carries_output(handler):
    runner = RecordingRunner(fail_on="install")

    with pytest.raises(ToolExecutionError) as excinfo:
        FunctionPackager(runner).package(str(handler))

    assert "npm install failed" in excinfo.value.output
    assert len(runner.calls) == 1


def test_package_without_compiled_output(handler):
    with pytest.raises(ToolExecutionError, match="index.js"):
        FunctionPackager(RecordingRunner()).package(str(handler))


def test_zip_directory_uses_relative_paths(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "b.txt").write_text("b")

    with zipfile.ZipFile(io.BytesIO(zip_directory(tmp_path))) as zf:
        assert zf.namelist() == ["a/b.txt"]


# =============================================================================
# Code update
# =============================================================================

def test_update_function_code():
    client = MagicMock()
    client.update_function_code.return_value = {
        "FunctionName": "oculus-api", "CodeSize": 2048, "CodeSha256": "abc=", "LastModified": "2024-05-01",
    }

    update = update_function_code(client, "oculus-api", b"zip-bytes")

    client.update_function_code.assert_called_once_with(FunctionName="oculus-api", ZipFile=b"zip-bytes")
    assert update.code_size == 2048
    assert update.code_sha256 == "abc="


def test_update_function_code_not_found():
    client = MagicMock()
    client.update_function_code.side_effect = ClientError(
        {"Error": {"Code": "ResourceNotFoundException", "Message": "Function not found"}},
        "UpdateFunctionCode",
    )

    with pytest.raises(DeploymentError) as excinfo:
        update_function_code(client, "oculus-api", b"zip-bytes")

    assert excinfo.value.context.resource_id == "oculus-api"
    assert "Function not found" in excinfo.value.message
