"""Direct-to-blob-store upload using a pre-signed POST credential.

The blob store authorizes the upload purely through the signed form
fields, and it requires them to precede the file: the ``file`` part must
be the last field of the multipart body.  Some blob-store backends answer
HTTP 200 with an XML error document, so the response body is inspected
as well as the status code.

The upload is attempted exactly once.  The credential is single-use, so a
store-side rejection cannot be retried without a new credential.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from assetlib import constants
from assetlib.models import UploadCredential, UploadRequest
from assetlib.upload.exceptions import BlobUploadError, BlobUploadTimeoutError

logger = logging.getLogger(__name__)

# (form field name, UploadCredential attribute), in the order the signed
# policy expects them.
PRESIGNED_POST_FIELDS: tuple[tuple[str, str], ...] = (
    ("X-Amz-Date", "date"),
    ("key", "key"),
    ("X-Amz-Signature", "signature"),
    ("X-Amz-Algorithm", "algorithm"),
    ("policy", "policy"),
    ("X-Amz-Credential", "credential"),
    ("X-Amz-Security-Token", "security_token"),
)

FILE_FIELD = "file"


def build_form_fields(credential: UploadCredential) -> list[tuple[str, str]]:
    """Return the signed form fields in pre-signed POST order.

    Fields the credential does not carry (``None`` or empty) are omitted
    entirely rather than sent empty.
    """
    fields: list[tuple[str, str]] = []
    for form_name, attr in PRESIGNED_POST_FIELDS:
        value = getattr(credential, attr)
        if value:
            fields.append((form_name, value))
        else:
            logger.debug("Skipping empty form field: %s", form_name)
    return fields


def find_error_marker(body: str) -> str | None:
    """Return the first known blob-store error marker present in *body*."""
    for marker in constants.BLOB_ERROR_MARKERS:
        if marker in body:
            return marker
    return None


class BlobUploader:
    """Streams one payload to the blob-store target named by a credential.

    Args:
        http_client: Shared async HTTP client.
        timeout: Seconds allowed for the whole upload; independent of the
            control-plane per-attempt timeout and the pipeline deadline.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        timeout: float = constants.BLOB_UPLOAD_TIMEOUT_SECONDS,
    ) -> None:
        self._http = http_client
        self._timeout = timeout

    def build_request(
        self, credential: UploadCredential, request: UploadRequest
    ) -> httpx.Request:
        """Build the multipart POST: signed fields first, ``file`` last."""
        # httpx encodes ``data`` fields in insertion order, then ``files``.
        data = dict(build_form_fields(credential))
        files = {
            FILE_FIELD: (request.display_name, request.payload, request.content_type)
        }
        return self._http.build_request(
            "POST", credential.url, data=data, files=files
        )

    async def upload(
        self, credential: UploadCredential, request: UploadRequest
    ) -> None:
        """Upload *request* using *credential*.

        Raises:
            BlobUploadTimeoutError: No response within ``timeout`` seconds.
            BlobUploadError: Non-2xx status, transport failure, or an error
                marker in the response body.
        """
        if not credential.url.startswith("https://"):
            logger.warning(
                "Blob upload URL is not HTTPS: %s", credential.url.split("?")[0]
            )

        http_request = self.build_request(credential, request)
        logger.debug(
            "Uploading %s (%d bytes, %s) to %s",
            request.display_name,
            request.size,
            request.content_type,
            credential.url.split("?")[0],
        )

        try:
            response = await asyncio.wait_for(
                self._http.send(http_request), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            raise BlobUploadTimeoutError(
                f"Blob upload timed out after {self._timeout:g}s"
            ) from None
        except httpx.HTTPError as exc:
            raise BlobUploadError(f"Blob upload failed: {exc}") from exc

        body = response.text
        if not response.is_success:
            logger.error(
                "Blob upload failed: %d %s", response.status_code, body[:200]
            )
            raise BlobUploadError(
                f"Failed to upload file to blob store: {response.status_code} "
                f"{response.reason_phrase}. Response: {body[:200]}",
                status_code=response.status_code,
            )

        marker = find_error_marker(body)
        if marker is not None:
            logger.error("Blob upload returned embedded error: %s", body[:500])
            raise BlobUploadError(
                f"Blob upload failed: {body[:200]}",
                status_code=response.status_code,
            )

        logger.info(
            "Uploaded %s (%d bytes) to blob store", request.display_name, request.size
        )
