import base64
import binascii
from typing import Any, Dict, Optional, Tuple, Type
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from errors import NotFoundError, RemoteServiceError
from models import (
    Criteria,
    KeyMetadata,
    KeyRecord,
    LookupRequest,
    NoteRequest,
    RetrieveRequest,
    SendKeyRequest
)
from portal_session import PortalSession
from result import (
    LookupResult,
    MetadataResult,
    RenewResult,
    Result,
    RetrieveResult,
    UsageResult
)

logger = structlog.get_logger()


def _key_path(key_number: str, action: str) -> str:
    return f"/keys/{quote(str(key_number), safe='')}/{action}"


class PortalClient:
    """
    Remote license key operations against an authenticated portal session.

    Every operation returns a Result. Transport and portal-side failures are
    folded into an unsuccessful Result; only an unauthenticated session raises.
    """

    def __init__(self, session: PortalSession):
        self.session = session

    def _request(self, method: str, path: str, body: Optional[BaseModel] = None) -> Dict[str, Any]:
        """
        Perform one round trip and return the decoded response envelope.
        """
        try:
            response = self.session.client.request(
                method,
                path,
                json=body.model_dump() if body is not None else None
            )
            if response.status_code == 404:
                raise NotFoundError(*self._error_details(response, f"Nothing found at {path}"))

            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            raise RemoteServiceError(
                *self._error_details(e.response, f"HTTP error during {method} {path}: {str(e)}")
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RemoteServiceError(f"HTTP error during {method} {path}: {str(e)}")
        except ValueError as e:
            raise RemoteServiceError(f"Malformed response from portal: {str(e)}")

        if not isinstance(data, dict):
            raise RemoteServiceError("Malformed response from portal: expected a JSON object")
        return data

    @staticmethod
    def _error_details(response: httpx.Response, fallback: str) -> Tuple[str, Optional[str]]:
        """Message and code from an error response body, when the portal sent them."""
        try:
            data = response.json()
        except ValueError:
            return fallback, None
        if not isinstance(data, dict):
            return fallback, None

        error = data.get("error")
        if not isinstance(error, dict):
            error = {}
        message = error.get("message") or data.get("message") or fallback
        code = error.get("code")
        if code is None:
            code = data.get("code")
        return message, None if code is None else str(code)

    def _execute(
        self,
        result_cls: Type[Result],
        method: str,
        path: str,
        body: Optional[BaseModel] = None,
        **context
    ):
        self.session.require_authenticated()
        try:
            envelope = self._request(method, path, body)
        except (RemoteServiceError, NotFoundError) as e:
            logger.warning("Portal command failed", path=path, code=e.code, error=e.message, **context)
            return result_cls.from_error(e)

        result = result_cls.from_envelope(envelope)
        if not result.successful:
            logger.info("Portal reported failure", path=path, code=result.code, message=result.message, **context)
        return result

    def lookup(self, criteria: Criteria, active_only: bool = False) -> LookupResult:
        """
        Find the keys reported from the given IP and MAC addresses.

        With ``active_only`` terminated keys are removed from the response;
        the portal itself is always asked for every key.
        """
        result = self._execute(
            LookupResult,
            "POST",
            "/keys/lookup",
            LookupRequest(ips=list(criteria.ips), macs=list(criteria.macs)),
            ips=list(criteria.ips),
            macs=list(criteria.macs)
        )
        if not result.successful:
            return result

        raw_keys = result.get("keys", default=[])
        if not isinstance(raw_keys, list):
            return LookupResult.failure("Malformed lookup response from portal", code=RemoteServiceError.code)
        try:
            keys = [KeyRecord.model_validate(record) for record in raw_keys]
        except PydanticValidationError as e:
            return LookupResult.failure(f"Malformed key record from portal: {e}", code=RemoteServiceError.code)

        if active_only:
            keys = [key for key in keys if not key.terminated]

        if not keys:
            return LookupResult.failure(
                "No keys found for the given criteria",
                code=NotFoundError.code,
                payload=result.payload
            )
        return result.model_copy(update={"keys": keys})

    def send_by_email(self, key_number: str, recipient: str, compress: bool = False) -> Result:
        return self._execute(
            Result,
            "POST",
            _key_path(key_number, "send"),
            SendKeyRequest(email=recipient, compress=compress),
            key_number=key_number
        )

    def annotate(self, key_number: str, message: str) -> Result:
        return self._execute(
            Result,
            "POST",
            _key_path(key_number, "notes"),
            NoteRequest(message=message),
            key_number=key_number
        )

    def metadata(self, key_number: str) -> MetadataResult:
        result = self._execute(MetadataResult, "GET", _key_path(key_number, "info"), key_number=key_number)
        if not result.successful:
            return result

        if not isinstance(result.payload, dict) or not result.payload:
            return MetadataResult.failure(f"No data for key {key_number}", code=NotFoundError.code)
        try:
            metadata = KeyMetadata.model_validate({"keyNumber": key_number, **result.payload})
        except PydanticValidationError as e:
            return MetadataResult.failure(f"Malformed key metadata from portal: {e}", code=RemoteServiceError.code)
        return result.model_copy(update={"metadata": metadata})

    def retrieve(self, key_number: str, compatible: bool = False) -> RetrieveResult:
        """
        Download a key.

        ``compatible`` asks for a key usable with the previous minor product
        version. The key travels base64-encoded and is returned as raw bytes.
        """
        result = self._execute(
            RetrieveResult,
            "POST",
            _key_path(key_number, "retrieve"),
            RetrieveRequest(compatible=compatible),
            key_number=key_number
        )
        if not result.successful:
            return result

        encoded = result.get("keyData")
        if not isinstance(encoded, str):
            return RetrieveResult.failure(f"Portal returned no key data for {key_number}", code=NotFoundError.code)
        try:
            key_data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            return RetrieveResult.failure(f"Undecodable key data from portal: {e}", code=RemoteServiceError.code)

        logger.info("Retrieved key", key_number=key_number, compatible=compatible, size=len(key_data))
        return result.model_copy(update={
            "key_number": str(result.get("keyNumber", default=key_number)),
            "key_data": key_data
        })

    def renew(self, key_number: str) -> RenewResult:
        """
        Extend the key's validity by the period its type allows.

        Not idempotent: every call is forwarded to the portal.
        """
        result = self._execute(RenewResult, "POST", _key_path(key_number, "renew"), key_number=key_number)
        message = result.message or result.get("message")
        code = result.code if result.code is not None else result.get("code")
        return result.model_copy(update={
            "message": message,
            "code": None if code is None else str(code)
        })

    def usage(self, key_number: str) -> UsageResult:
        """
        Usage report for a key, with the portal's success flag kept verbatim.

        See UsageResult for how to read it.
        """
        return self._execute(UsageResult, "GET", _key_path(key_number, "usage"), key_number=key_number)
