# services/pointer_codec.py
"""
Detection, construction and parsing of S3 offload pointers.

Two wire shapes are understood:

- extended (AWS extended client library):
  [{"@class": "software.amazon.payloadoffloading.PayloadS3Pointer",
    "s3BucketName": "...", "s3Key": "..."}]
  The bare object without the array wrapper is accepted on read.
- simple: {"__s3pointer": {"bucket": "...", "key": "..."}}
"""

import json
from typing import Any, Optional, Union

from sqs_transport.core.constants import S3_POINTER_CLASS, S3_POINTER_KEY
from sqs_transport.schemas.sqs_models import PointerFormat, S3Location
from sqs_transport.services.envelope_codec import dumps


class PointerCodec:
    def __init__(
        self,
        pointer_format: Union[PointerFormat, str] = PointerFormat.AUTO,
        pointer_key: str = S3_POINTER_KEY,
    ):
        self.pointer_format = PointerFormat(pointer_format)
        self.pointer_key = pointer_key

    def is_pointer(self, body: Optional[str]) -> bool:
        return self.parse_pointer(body) is not None

    def build_pointer(self, bucket: str, key: str) -> str:
        """AUTO writes the simple format."""
        if self.pointer_format == PointerFormat.EXTENDED:
            return dumps([{
                "@class": S3_POINTER_CLASS,
                "s3BucketName": bucket,
                "s3Key": key,
            }])
        return dumps({self.pointer_key: {"bucket": bucket, "key": key}})

    def parse_pointer(self, body: Optional[str]) -> Optional[S3Location]:
        if not body:
            return None
        try:
            parsed = json.loads(body)
        except ValueError:
            return None

        if self.pointer_format in (PointerFormat.EXTENDED, PointerFormat.AUTO):
            location = self._parse_extended(parsed)
            if location is not None:
                return location

        if self.pointer_format in (PointerFormat.SIMPLE, PointerFormat.AUTO):
            return self._parse_simple(parsed)

        return None

    @staticmethod
    def _parse_extended(parsed: Any) -> Optional[S3Location]:
        if isinstance(parsed, list):
            if len(parsed) != 1:
                return None
            parsed = parsed[0]

        if not isinstance(parsed, dict) or parsed.get("@class") != S3_POINTER_CLASS:
            return None

        bucket = parsed.get("s3BucketName")
        key = parsed.get("s3Key")
        if isinstance(bucket, str) and isinstance(key, str):
            return S3Location(bucket=bucket, key=key)
        return None

    def _parse_simple(self, parsed: Any) -> Optional[S3Location]:
        if not isinstance(parsed, dict):
            return None

        pointer = parsed.get(self.pointer_key)
        if not isinstance(pointer, dict):
            return None

        bucket = pointer.get("bucket")
        key = pointer.get("key")
        if isinstance(bucket, str) and isinstance(key, str):
            return S3Location(bucket=bucket, key=key)
        return None
