"""S3 backend for reading exported image layers."""

import threading
from typing import Any, BinaryIO, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import OperationCancelled
from ..models.storage import RemoteObject


STREAM_CHUNK_SIZE = 1024 * 1024


class S3ObjectPager:
    """Page-at-a-time listing of the objects under a prefix."""

    def __init__(self, client, bucket: str, prefix: str, page_size: Optional[int] = None):
        self.bucket = bucket
        self.prefix = prefix
        pagination = {'PageSize': page_size} if page_size else {}
        paginator = client.get_paginator('list_objects_v2')
        self._pages: Iterator[dict] = iter(paginator.paginate(
            Bucket=bucket,
            Prefix=prefix,
            PaginationConfig=pagination
        ))
        self._next: Optional[dict] = None
        self._exhausted = False

    def has_more_pages(self) -> bool:
        """Whether another page is available. May issue the listing call."""
        if self._next is None and not self._exhausted:
            try:
                self._next = next(self._pages)
            except StopIteration:
                self._exhausted = True
        return self._next is not None

    def next_page(self) -> List[RemoteObject]:
        """Return the objects of the next page."""
        if not self.has_more_pages():
            return []
        page, self._next = self._next, None
        return [
            RemoteObject(bucket=self.bucket, key=obj['Key'])
            for obj in page.get('Contents', [])
        ]


class S3Backend:
    """S3 storage backend holding exported images."""

    def __init__(self, client, cancel_event: Optional[threading.Event] = None):
        self.client = client
        self.cancel_event = cancel_event

    @classmethod
    def from_session(cls, session, cancel_event: Optional[threading.Event] = None) -> 'S3Backend':
        """Build the backend from a boto3 session."""
        return cls(session.client('s3'), cancel_event=cancel_event)

    def pager(self, bucket: str, prefix: str) -> S3ObjectPager:
        """Start a paginated listing of ``bucket`` under ``prefix``."""
        return S3ObjectPager(self.client, bucket, prefix)

    def download(self, bucket: str, key: str, fileobj: BinaryIO) -> int:
        """Stream an object into ``fileobj``, returning the bytes written."""
        response = self.client.get_object(Bucket=bucket, Key=key)
        body: Any = response['Body']
        written = 0
        try:
            for chunk in body.iter_chunks(chunk_size=STREAM_CHUNK_SIZE):
                if self.cancel_event is not None and self.cancel_event.is_set():
                    raise OperationCancelled(f"download of s3://{bucket}/{key} cancelled")
                fileobj.write(chunk)
                written += len(chunk)
        finally:
            body.close()
        return written


# Errors the S3 client raises for transport or service failures.
S3_ERRORS = (ClientError, BotoCoreError)
