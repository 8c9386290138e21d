"""
Capture and inject flows between deployed functions and local files.

- Capture: after a deploy, fetch every function's resolved environment and
  persist it, one independent task per function.
- Inject: before a local invocation, load one function's file and apply it
  onto an environment sink (the process environment by default).
"""

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, MutableMapping, Optional, Protocol

from .address import (
    Address,
    FunctionTarget,
    function_target,
    resolve_directory,
    resolve_file_name,
    resolve_region,
    resolve_stack_name,
    resolve_stage,
)
from .config import ServiceConfig
from .remote import LambdaEnvironmentFetcher, RemoteFetchError
from .reporting import Log, log as default_log, error as default_error
from .store import EnvFileStore


class EnvironmentFetcher(Protocol):
    def fetch_resolved_environment(self, remote_id: str) -> Dict[str, str]:
        ...


class EnvironmentSink(Protocol):
    """A process-wide key/value table; last write wins."""

    def set(self, key: str, value: str) -> None:
        ...


class ProcessEnvironment:
    """Writes into ``os.environ`` of the running process."""

    def set(self, key: str, value: str) -> None:
        os.environ[key] = value


class MappingEnvironment:
    """Writes into a plain mapping, e.g. the env for a child process."""

    def __init__(self, target: Optional[MutableMapping[str, str]] = None):
        self.values = target if target is not None else {}

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


@dataclass
class CaptureResult:
    """Files written by a capture, keyed by function name."""
    written: Dict[str, Path] = field(default_factory=dict)


class CaptureError(Exception):
    """
    One or more functions failed to capture.

    Raised only after every function's task has finished. ``written`` holds
    the functions that did succeed.
    """

    def __init__(self, failures: Dict[str, BaseException], written: Optional[Dict[str, Path]] = None):
        self.failures = failures
        self.written = written or {}
        names = ", ".join(sorted(failures))
        super().__init__(f"Failed to capture environment for: {names}")


class SyncCoordinator:
    """
    Runs capture and inject for one service.

    Args:
        config: Service configuration
        fetcher: Remote lookup of resolved environments
        store: Environment file store
        stage: Stage given on the command line
        region: Region given on the command line
        log: Receives progress lines
        error: Receives per-function failure lines
    """

    def __init__(
        self,
        config: ServiceConfig,
        fetcher: Optional[EnvironmentFetcher] = None,
        store: Optional[EnvFileStore] = None,
        stage: Optional[str] = None,
        region: Optional[str] = None,
        log: Optional[Log] = None,
        error: Optional[Log] = None,
    ):
        self.config = config
        self.store = store or EnvFileStore()
        self.log = log or default_log
        self.error = error or default_error

        self.stage = resolve_stage(stage, config.config_stage, config.provider_stage)
        self.region = resolve_region(region, config.config_region, config.provider_region)
        self.stack_name = resolve_stack_name(config.service_name, self.stage)

        self._fetcher = fetcher

    @property
    def fetcher(self) -> EnvironmentFetcher:
        """Remote lookup, created on first use so inject never needs AWS credentials."""
        if self._fetcher is None:
            self._fetcher = LambdaEnvironmentFetcher(self.region)
        return self._fetcher

    @property
    def directory(self) -> Path:
        return resolve_directory(self.config.project_root, self.config.custom_directory)

    def address_for(self, function_name: str) -> Address:
        """
        Resolve where ``function_name``'s environment is stored.

        Functions not declared in the service get the default file name.
        """
        declared = self.config.functions.get(function_name)
        custom_file_name = declared.custom_file_name if declared else None
        return Address(
            directory=self.directory,
            file_name=resolve_file_name(self.region, self.stage, function_name, custom_file_name),
        )

    def target_for(self, function_name: str) -> FunctionTarget:
        return function_target(self.stack_name, function_name)

    def capture_function(self, function_name: str, fetcher: Optional[EnvironmentFetcher] = None) -> Path:
        """
        Fetch and persist one function's environment.

        Raises:
            RemoteFetchError: if the deployed function cannot be read
            OSError: if the file cannot be written
        """
        target = self.target_for(function_name)
        address = self.address_for(function_name)

        try:
            env = (fetcher or self.fetcher).fetch_resolved_environment(target.remote_id)
        except RemoteFetchError:
            self.error(
                f"Error looking up ENV vars for {target.remote_id}. "
                "Stack must have been deployed before running locally"
            )
            raise

        try:
            return self.store.write(address, env)
        except (OSError, ValueError) as err:
            self.error(f"Could not write environment for {function_name} to {address}: {err}")
            raise

    def capture(self, function_names: Optional[Iterable[str]] = None) -> CaptureResult:
        """
        Capture the environment of every declared function concurrently.

        Each function is fetched and written independently; one failure does
        not stop the others. The store directory is checked once up front
        since no function can be written without it.

        Args:
            function_names: Functions to capture; defaults to all declared

        Returns:
            CaptureResult listing the written files

        Raises:
            NotADirectoryError: if the store directory is a plain file
            CaptureError: if any function failed, after all have finished
        """
        names: List[str] = list(function_names if function_names is not None else self.config.function_names)
        result = CaptureResult()
        if not names:
            self.log(f"No functions declared in service '{self.config.service_name}'")
            return result

        # Resolve every address first; a bad stage or region fails the whole run
        for name in names:
            self.address_for(name)
        self.store.ensure_directory(self.directory)
        fetcher = self.fetcher

        failures: Dict[str, BaseException] = {}
        workers = min(self.config.max_workers, len(names))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self.capture_function, name, fetcher): name for name in names}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    result.written[name] = future.result()
                except Exception as err:
                    failures[name] = err

        if failures:
            raise CaptureError(failures, written=result.written)
        return result

    def inject(self, function_name: str, sink: Optional[EnvironmentSink] = None) -> Mapping[str, str]:
        """
        Apply ``function_name``'s stored environment onto ``sink``.

        Existing variables of the same name are overwritten. A function that
        was never captured injects nothing.

        Args:
            function_name: Function about to be invoked
            sink: Where to set variables; the process environment by default

        Returns:
            The variables that were applied
        """
        sink = sink or ProcessEnvironment()
        address = self.address_for(function_name)
        self.log(f"Pulling in env variables from {address}")

        env = self.store.read(address)
        for key, value in env.items():
            sink.set(key, value)
        return env

    def on_deployed(self, function_names: Optional[Iterable[str]] = None) -> CaptureResult:
        """Entry point for the deploy-completed event."""
        return self.capture(function_names)

    def on_before_invoke(self, function_name: str, sink: Optional[EnvironmentSink] = None) -> Mapping[str, str]:
        """Entry point for the invocation-starting event."""
        return self.inject(function_name, sink)
