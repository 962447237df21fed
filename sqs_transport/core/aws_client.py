# core/aws_client.py
"""
Centralized AWS client factory for the SQS transport.
Credentials are taken from settings (which loads from .env) or the
environment; when neither is set boto3 falls back to its default chain.
"""
import os
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config

from sqs_transport.core.config import settings
from sqs_transport.core.logger import logger


def _credential_kwargs() -> Dict[str, Optional[str]]:
    return {
        "aws_access_key_id": settings.AWS_ACCESS_KEY_ID or os.getenv("AWS_ACCESS_KEY_ID"),
        "aws_secret_access_key": settings.AWS_SECRET_ACCESS_KEY or os.getenv("AWS_SECRET_ACCESS_KEY"),
        # Optional for temporary credentials
        "aws_session_token": settings.AWS_SESSION_TOKEN or os.getenv("AWS_SESSION_TOKEN"),
    }


def get_sqs_client(config: Optional[Config] = None) -> Any:
    """Get SQS client with proper credentials."""
    try:
        client = boto3.client(
            "sqs",
            region_name=settings.SQS_REGION,
            config=config,
            **_credential_kwargs(),
        )
        logger.info("SQS client initialized", extra={"region": settings.SQS_REGION})
        return client
    except Exception as e:
        logger.error(f"Failed to initialize SQS client: {str(e)}")
        raise


def get_s3_client(config: Optional[Config] = None) -> Any:
    """Get S3 client with proper credentials."""
    try:
        client = boto3.client(
            "s3",
            region_name=settings.AWS_REGION,
            config=config,
            **_credential_kwargs(),
        )
        logger.info("S3 client initialized", extra={"region": settings.AWS_REGION})
        return client
    except Exception as e:
        logger.error(f"Failed to initialize S3 client: {str(e)}")
        raise
