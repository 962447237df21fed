# integrations/s3_large_message.py
"""
Large payload offload to S3.

Bodies above the configured threshold are uploaded to S3 and replaced by
a small pointer; on receive the pointer is resolved back to the original
body. Uploaded objects are never deleted implicitly, use
`delete_s3_object` once a message is fully processed if cleanup is wanted.
"""

import asyncio
from typing import Optional
from uuid import uuid4

from sqs_transport.core.exceptions import S3ReadError
from sqs_transport.core.logger import logger
from sqs_transport.schemas.sqs_models import S3LargeMessageOptions, S3Location
from sqs_transport.services.pointer_codec import PointerCodec


class S3LargeMessageHandler:
    """Offload gateway between message bodies and S3. boto3 errors propagate unmodified."""

    def __init__(self, options: S3LargeMessageOptions):
        self.options = options
        self.s3 = options.s3_client
        self.bucket = options.bucket
        self.threshold = options.threshold
        self.key_prefix = options.key_prefix
        self.codec = PointerCodec(options.pointer_format, options.pointer_key)

    @staticmethod
    def byte_size(body: str) -> int:
        return len(body.encode("utf-8"))

    def needs_offload(self, body: str) -> bool:
        return self.byte_size(body) > self.threshold

    async def wrap_if_large(self, body: str) -> str:
        """Upload `body` to S3 and return a pointer if it exceeds the threshold."""
        size = self.byte_size(body)
        if size <= self.threshold:
            return body

        key = f"{self.key_prefix}{uuid4()}"
        await asyncio.to_thread(
            self.s3.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=body.encode("utf-8"),
            ContentType="application/json",
        )
        logger.debug(
            "Offloaded large message body to S3",
            extra={"bucket": self.bucket, "key": key, "size_bytes": size},
        )
        return self.codec.build_pointer(self.bucket, key)

    async def unwrap_if_pointer(self, body: str) -> str:
        """Resolve an S3 pointer to the stored body; other bodies pass through."""
        location = self.codec.parse_pointer(body)
        if location is None:
            return body

        response = await asyncio.to_thread(
            self.s3.get_object,
            Bucket=location.bucket,
            Key=location.key,
        )
        content = await asyncio.to_thread(self._read_body, response)
        if not content:
            raise S3ReadError(location.key)

        logger.debug(
            "Resolved S3 pointer",
            extra={"bucket": location.bucket, "key": location.key},
        )
        return content

    async def delete_s3_object(self, body: str) -> None:
        location = self.codec.parse_pointer(body)
        if location is None:
            return

        await asyncio.to_thread(
            self.s3.delete_object,
            Bucket=location.bucket,
            Key=location.key,
        )

    def is_s3_pointer(self, body: str) -> bool:
        return self.codec.is_pointer(body)

    def parse_s3_pointer(self, body: str) -> Optional[S3Location]:
        return self.codec.parse_pointer(body)

    @staticmethod
    def _read_body(response: dict) -> Optional[str]:
        stream = (response or {}).get("Body")
        if stream is None:
            return None
        raw = stream.read()
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return raw
