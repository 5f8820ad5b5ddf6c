from __future__ import annotations

import os
from typing import Any

import boto3
from botocore.config import Config


def _session() -> boto3.Session:
    profile = os.getenv("AWS_PROFILE")
    if profile:
        return boto3.Session(profile_name=profile)
    return boto3.Session()


def build_clients(*, max_pool_connections: int) -> tuple[Any, Any]:
    """Return ``(sqs, s3)`` clients sharing one session.

    boto3 clients are thread-safe; the pool is sized so every worker can hold
    a connection at once.
    """
    session = _session()
    config = Config(
        max_pool_connections=max(10, max_pool_connections),
        retries={"max_attempts": 5, "mode": "standard"},
    )
    return session.client("sqs", config=config), session.client("s3", config=config)
