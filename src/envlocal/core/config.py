"""
Service configuration read from serverless.yml.

Only the fields needed to address environment files are read:

    service: my-service
    provider:
      stage: dev
      region: eu-west-1
    custom:
      resource-output-dir: .env-local
    functions:
      hello:
        custom:
          resource-output-file: .hello-env

Values that still contain ``${...}`` framework variables are treated as not
set, since they cannot be evaluated here.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .address import strip_build_output


SERVICE_FILE_NAMES = ("serverless.yml", "serverless.yaml")
DIRECTORY_OVERRIDE_KEY = "resource-output-dir"
FILE_OVERRIDE_KEY = "resource-output-file"

STAGE_ENV = "ENVLOCAL_STAGE"
REGION_ENV = "ENVLOCAL_REGION"
PROJECT_ROOT_ENV = "ENVLOCAL_PROJECT_ROOT"
MAX_WORKERS_ENV = "ENVLOCAL_MAX_WORKERS"
DEFAULT_MAX_WORKERS = 8


class _ServiceLoader(yaml.SafeLoader):
    """SafeLoader that tolerates CloudFormation tags such as !Ref and !GetAtt."""


def _ignore_tag(loader, tag_suffix, node):
    return None


_ServiceLoader.add_multi_constructor("!", _ignore_tag)


class ConfigError(Exception):
    """The service configuration is missing or unusable."""


class UnknownFunctionError(ConfigError):
    """A function name was requested that the service does not declare."""


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if parsed < 1:
        raise ConfigError(f"{name} must be at least 1, got {parsed}")
    return parsed


def _literal(value: Any) -> Optional[str]:
    """Return a plain string setting, or None if unset or unresolved."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    if not text or "${" in text:
        return None
    return text


def _custom(section: Any) -> Dict[str, Any]:
    if not isinstance(section, dict):
        return {}
    custom = section.get("custom")
    return custom if isinstance(custom, dict) else {}


@dataclass
class FunctionConfig:
    """A function declared by the service."""
    name: str
    custom_file_name: Optional[str] = None


@dataclass
class ServiceConfig:
    """Settings from the service file plus environment overrides."""
    service_name: str
    project_root: Path
    provider_stage: Optional[str] = None
    provider_region: Optional[str] = None
    custom_directory: Optional[str] = None
    functions: Dict[str, FunctionConfig] = field(default_factory=dict)
    config_stage: Optional[str] = None
    config_region: Optional[str] = None
    max_workers: int = DEFAULT_MAX_WORKERS

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_root: Union[str, Path] = ".") -> "ServiceConfig":
        """
        Build configuration from a parsed service file.

        Raises:
            ConfigError: if the service name is missing
        """
        if not isinstance(data, dict):
            raise ConfigError("Service file must contain a mapping")

        service = data.get("service")
        if isinstance(service, dict):
            service = service.get("name")
        service_name = _literal(service)
        if not service_name:
            raise ConfigError("Service file does not declare a 'service' name")

        provider = data.get("provider") or {}
        if not isinstance(provider, dict):
            provider = {}

        declared = data.get("functions")
        if not isinstance(declared, dict):
            declared = {}

        functions = {}
        for name, body in declared.items():
            functions[str(name)] = FunctionConfig(
                name=str(name),
                custom_file_name=_literal(_custom(body).get(FILE_OVERRIDE_KEY)),
            )

        return cls(
            service_name=service_name,
            project_root=strip_build_output(project_root),
            provider_stage=_literal(provider.get("stage")),
            provider_region=_literal(provider.get("region")),
            custom_directory=_literal(_custom(data).get(DIRECTORY_OVERRIDE_KEY)),
            functions=functions,
            config_stage=_literal(os.getenv(STAGE_ENV)),
            config_region=_literal(os.getenv(REGION_ENV)),
            max_workers=_env_int(MAX_WORKERS_ENV, DEFAULT_MAX_WORKERS),
        )

    @property
    def function_names(self) -> List[str]:
        return list(self.functions)

    def get_function(self, name: str) -> FunctionConfig:
        """
        Raises:
            UnknownFunctionError: if the service does not declare ``name``
        """
        try:
            return self.functions[name]
        except KeyError:
            declared = ", ".join(self.functions) or "none"
            raise UnknownFunctionError(
                f"Function '{name}' is not declared in service '{self.service_name}' (declared: {declared})"
            ) from None


def find_service_file(project_root: Union[str, Path]) -> Optional[Path]:
    root = strip_build_output(project_root)
    for name in SERVICE_FILE_NAMES:
        path = root / name
        if path.exists():
            return path
    return None


def default_project_root() -> Path:
    return Path(os.getenv(PROJECT_ROOT_ENV) or ".")


def load_config(project_root: Union[str, Path, None] = None) -> ServiceConfig:
    """
    Load the service configuration for a project.

    Args:
        project_root: Project directory; defaults to ``ENVLOCAL_PROJECT_ROOT``
            or the current directory

    Raises:
        ConfigError: if no service file exists or it cannot be parsed
    """
    root = Path(project_root) if project_root is not None else default_project_root()
    path = find_service_file(root)
    if path is None:
        raise ConfigError(f"No serverless.yml found in {strip_build_output(root)}")

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.load(f, Loader=_ServiceLoader)
    except yaml.YAMLError as err:
        raise ConfigError(f"Could not parse {path}: {err}") from err

    return ServiceConfig.from_dict(data or {}, root)
