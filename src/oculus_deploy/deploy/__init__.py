"""Infrastructure tool execution, function code updates and stack outputs."""

from .backend import CdkBackend, CommandRunner, DeployBackend, ToolResult
from .executor import DeployExecutor
from .functions import FunctionPackager, FunctionUpdate, find_api_function, update_function_code
from .outputs import StackOutputs, seed_database

__all__ = [
    'CdkBackend',
    'CommandRunner',
    'DeployBackend',
    'ToolResult',
    'DeployExecutor',
    'FunctionPackager',
    'FunctionUpdate',
    'find_api_function',
    'update_function_code',
    'StackOutputs',
    'seed_database',
]
