"""Bedrock runtime client construction."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config

from voicecare.config.settings import BedrockConfig, settings


def bedrock_runtime_client(config: BedrockConfig | None = None) -> Any:
    """Return a ``bedrock-runtime`` client for the analysis stages.

    Explicit keys are used only when both halves are configured; otherwise
    boto3 resolves credentials from the environment or instance role.
    Retries are left to the stage runner, so botocore's own retry loop is
    limited to a single attempt.
    """

    config = config or settings.bedrock
    kwargs: dict[str, Any] = {
        "region_name": config.region,
        "config": Config(retries={"max_attempts": 1, "mode": "standard"}),
    }
    if config.access_key and config.secret_key:
        kwargs["aws_access_key_id"] = config.access_key.get_secret_value()
        kwargs["aws_secret_access_key"] = config.secret_key.get_secret_value()
    return boto3.client("bedrock-runtime", **kwargs)


__all__ = ["bedrock_runtime_client"]
