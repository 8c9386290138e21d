"""
Addressing scheme for persisted environment files.

Maps (service, stage, region, function) plus optional overrides to a
deterministic directory and file name:

    <project root>/.serverless-env-local/.<region>_<stage>_<function>

Region and stage must not contain ``_``, so the three fields can always be
split back apart and distinct triples never collide. No field may contain a
path separator.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union


DEFAULT_DIRECTORY = ".serverless-env-local"
DEFAULT_STAGE = "dev"
DEFAULT_REGION = "us-east-1"
FIELD_SEPARATOR = "_"
BUILD_OUTPUT_SUFFIX = Path(".webpack") / "service"


@dataclass(frozen=True)
class Address:
    """Location of one persisted environment file."""
    directory: Path
    file_name: str

    @property
    def path(self) -> Path:
        return self.directory / self.file_name

    def __str__(self):
        return str(self.path)


@dataclass(frozen=True)
class FunctionTarget:
    """A declared function and the name it is deployed under."""
    function_name: str
    remote_id: str


def _first_set(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def _check_path_safe(label: str, value: str) -> None:
    separators = {"/", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    if any(sep in value for sep in separators) or value in (".", ".."):
        raise ValueError(f"{label} {value!r} cannot be used in a file name")


def strip_build_output(base_path: Union[str, Path]) -> Path:
    """
    Strip the webpack build directory from a service path.

    Packaging plugins run the service from ``<root>/.webpack/service``; the
    store always lives under the real project root.
    """
    path = Path(base_path)
    suffix_parts = BUILD_OUTPUT_SUFFIX.parts
    if path.parts[-len(suffix_parts):] == suffix_parts:
        return path.parents[len(suffix_parts) - 1]
    return path


def resolve_directory(base_path: Union[str, Path], custom_directory: Optional[str] = None) -> Path:
    """
    Resolve the directory that holds environment files.

    Args:
        base_path: Project root, possibly inside a build output directory
        custom_directory: Service-level override; used as given when set.
            A relative override is resolved against the project root.

    Returns:
        Directory path
    """
    root = strip_build_output(base_path)
    directory = custom_directory or DEFAULT_DIRECTORY
    return root / directory


def resolve_file_name(
    region: str,
    stage: str,
    function_name: str,
    custom_file_name: Optional[str] = None,
) -> str:
    """
    Resolve the file name for one function's environment.

    Args:
        region: Provider region, e.g. ``us-east-1``
        stage: Deployment stage, e.g. ``dev``
        function_name: Function name as declared in the service
        custom_file_name: Per-function override

    Returns:
        ``custom_file_name`` if set, else ``.<region>_<stage>_<function_name>``

    Raises:
        ValueError: if region or stage contain the field separator, or any
            field would escape the directory
    """
    if custom_file_name:
        _check_path_safe("File name", custom_file_name)
        return custom_file_name

    for label, value in (("Region", region), ("Stage", stage)):
        if not value:
            raise ValueError(f"{label} must not be empty")
        if FIELD_SEPARATOR in value:
            raise ValueError(f"{label} {value!r} must not contain {FIELD_SEPARATOR!r}")
        _check_path_safe(label, value)

    if not function_name:
        raise ValueError("Function name must not be empty")
    _check_path_safe("Function name", function_name)

    return f".{region}{FIELD_SEPARATOR}{stage}{FIELD_SEPARATOR}{function_name}"


def resolve_stage(
    cli_option: Optional[str] = None,
    config_stage: Optional[str] = None,
    provider_stage: Optional[str] = None,
) -> str:
    """CLI option > project config > provider default > ``dev``."""
    return _first_set(cli_option, config_stage, provider_stage) or DEFAULT_STAGE


def resolve_region(
    cli_option: Optional[str] = None,
    config_region: Optional[str] = None,
    provider_region: Optional[str] = None,
) -> str:
    """CLI option > project config > provider default > ``us-east-1``."""
    return _first_set(cli_option, config_region, provider_region) or DEFAULT_REGION


def resolve_stack_name(service_name: str, stage: str) -> str:
    return f"{service_name}-{stage}"


def function_target(stack_name: str, function_name: str) -> FunctionTarget:
    """Build the target for a function deployed as ``<stack>-<function>``."""
    return FunctionTarget(
        function_name=function_name,
        remote_id=f"{stack_name}-{function_name}",
    )
