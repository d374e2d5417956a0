"""
Module for talking to the remote archive service.
"""
import io
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from botocore.utils import calculate_tree_hash

from .errors import ArchiveError, CompletionError, InitiateError, PartError
from .models import ArchiveReceipt, PartRange

logger = logging.getLogger(__name__)

def describe_error(exception: Exception) -> str:
    """Build a short description of a botocore error.

    Args:
        exception: The exception raised by botocore

    Returns:
        "Code: message" for service errors, the exception text otherwise
    """
    if isinstance(exception, ClientError):
        error = exception.response.get('Error', {})
        return f"{error.get('Code', 'Unknown')}: {error.get('Message', str(exception))}"
    return str(exception)

class ArchiveClient(ABC):
    """Multipart upload protocol of an archival object store."""

    def compute_checksum(self, data: bytes) -> str:
        """Compute the SHA-256 tree hash of some content.

        Args:
            data: The full file content

        Returns:
            Hex digest of the tree hash over 1 MiB blocks
        """
        return calculate_tree_hash(io.BytesIO(data))

    @abstractmethod
    def initiate(self, vault_name: str, part_size: int) -> str:
        """Open a multipart session and return its upload id.

        Raises:
            InitiateError: If the session could not be opened
        """

    @abstractmethod
    def upload_part(self, vault_name: str, upload_id: str,
                    part: PartRange, data: bytes) -> None:
        """Upload one part of an open session.

        Raises:
            PartError: If the part was rejected
        """

    @abstractmethod
    def complete(self, vault_name: str, upload_id: str,
                 archive_size: int, checksum: str) -> ArchiveReceipt:
        """Close a session, asserting the total size and tree hash.

        Raises:
            CompletionError: If the service refused the archive or confirmed
                a different checksum
        """

    @abstractmethod
    def abort(self, vault_name: str, upload_id: str) -> None:
        """Abandon a session. Never raises."""

    @abstractmethod
    def vault_exists(self, vault_name: str) -> bool:
        """Check that a vault exists.

        Raises:
            ArchiveError: If the service could not be asked
        """

class GlacierArchiveClient(ArchiveClient):
    """ArchiveClient backed by the Amazon Glacier multipart API."""

    def __init__(self, glacier_client: Any = None, region_name: Optional[str] = None):
        """Initialize the Glacier client.

        Args:
            glacier_client: A boto3 Glacier client. One is created from the
                default credential chain when omitted.
            region_name: AWS region used when creating the client
        """
        self.glacier_client = glacier_client or boto3.client('glacier', region_name=region_name)

    @classmethod
    def from_credentials(cls, access_key_id: str, secret_access_key: str,
                         region_name: str) -> "GlacierArchiveClient":
        session = boto3.Session(
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region_name
        )
        return cls(session.client('glacier'))

    def initiate(self, vault_name: str, part_size: int) -> str:
        try:
            response = self.glacier_client.initiate_multipart_upload(
                vaultName=vault_name,
                partSize=str(part_size)
            )
        except (ClientError, BotoCoreError) as e:
            raise InitiateError(
                f"Cannot initiate upload to vault {vault_name}: {describe_error(e)}"
            ) from e
        upload_id = response.get('uploadId')
        if not upload_id:
            raise InitiateError(f"No upload id returned by vault {vault_name}")
        return upload_id

    def upload_part(self, vault_name: str, upload_id: str,
                    part: PartRange, data: bytes) -> None:
        try:
            self.glacier_client.upload_multipart_part(
                vaultName=vault_name,
                uploadId=upload_id,
                range=part.content_range,
                body=data
            )
        except (ClientError, BotoCoreError) as e:
            raise PartError(
                f"Part {part.index} ({part.content_range}) rejected: {describe_error(e)}",
                part_index=part.index
            ) from e

    def complete(self, vault_name: str, upload_id: str,
                 archive_size: int, checksum: str) -> ArchiveReceipt:
        try:
            response = self.glacier_client.complete_multipart_upload(
                vaultName=vault_name,
                uploadId=upload_id,
                archiveSize=str(archive_size),
                checksum=checksum
            )
        except (ClientError, BotoCoreError) as e:
            raise CompletionError(
                f"Cannot complete upload {upload_id}: {describe_error(e)}"
            ) from e

        confirmed = response.get('checksum')
        if confirmed != checksum:
            raise CompletionError(
                f"Checksum mismatch for upload {upload_id}: "
                f"sent {checksum}, service confirmed {confirmed}"
            )
        archive_id = response.get('archiveId')
        if not archive_id:
            raise CompletionError(f"No archive id returned for upload {upload_id}")
        return ArchiveReceipt(archive_id=archive_id, checksum=confirmed)

    def abort(self, vault_name: str, upload_id: str) -> None:
        try:
            self.glacier_client.abort_multipart_upload(
                vaultName=vault_name,
                uploadId=upload_id
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error aborting multipart upload {upload_id}: {describe_error(e)}")

    def vault_exists(self, vault_name: str) -> bool:
        try:
            self.glacier_client.describe_vault(vaultName=vault_name)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ResourceNotFoundException':
                return False
            raise ArchiveError(f"Cannot describe vault {vault_name}: {describe_error(e)}") from e
        except BotoCoreError as e:
            raise ArchiveError(f"Cannot describe vault {vault_name}: {describe_error(e)}") from e
        return True
