"""
Lookup of deployed function configuration on AWS Lambda.
"""

from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError


class RemoteFetchError(Exception):
    """The deployed configuration for a function could not be read."""

    def __init__(self, remote_id: str, reason: str = ""):
        self.remote_id = remote_id
        self.reason = reason
        message = f"Could not fetch environment for {remote_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


def _describe(err: Exception) -> str:
    if isinstance(err, ClientError):
        code = err.response.get("Error", {}).get("Code", "")
        detail = err.response.get("Error", {}).get("Message", "")
        return f"{code} {detail}".strip() or str(err)
    return str(err)


class LambdaEnvironmentFetcher:
    """
    Reads the resolved environment of deployed Lambda functions.

    Args:
        region: AWS region the stack is deployed to
        client: Preconfigured ``lambda`` client; created with boto3 if omitted
    """

    def __init__(self, region: str, client: Optional[Any] = None):
        self.region = region
        self.client = client or boto3.client("lambda", region_name=region)

    def fetch_resolved_environment(self, remote_id: str) -> Dict[str, str]:
        """
        Return the environment variables Lambda resolved for ``remote_id``.

        Raises:
            RemoteFetchError: if the function does not exist or the call fails
        """
        try:
            config = self.client.get_function_configuration(FunctionName=remote_id)
        except (ClientError, BotoCoreError) as err:
            raise RemoteFetchError(remote_id, _describe(err)) from err

        variables = config.get("Environment", {}).get("Variables", {})
        return dict(variables or {})
