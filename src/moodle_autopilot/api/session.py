"""Authenticated session against a Moodle web service."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from ..core.errors import CapabilityError, DomainError, TransportError
from .catalogue import OperationCatalogue, OperationDescriptor
from .encoding import encode_parameters

logger = logging.getLogger(__name__)

SERVICE_PATH = "/webservice/rest/server.php"
SITE_INFO_FUNCTION = "core_webservice_get_site_info"
DEFAULT_TIMEOUT = 30.0

_TOKEN_IN_QUERY = re.compile(r"(wstoken|token)=[^&]*")


@dataclass(frozen=True)
class ActiveUser:
    """Identity the token authenticates as."""
    username: str | None
    id: int | None


class BoundOperation:
    """A remote operation bound to a session; calling it dispatches the request."""

    def __init__(self, session: "MoodleSession", descriptor: OperationDescriptor):
        self._session = session
        self.descriptor = descriptor

    def __call__(self, params: dict[str, Any] | None = None, **kwargs: Any):
        merged = dict(params or {})
        merged.update(kwargs)
        return self._session.dispatch(self.descriptor, merged)

    def __repr__(self) -> str:
        return f"<BoundOperation {self.descriptor.method} {self.descriptor.name}>"


class _VerbNamespace:
    def __init__(self, session: "MoodleSession", module: str, verb: str):
        self._session = session
        self._module = module
        self._verb = verb

    def __getattr__(self, resource: str) -> BoundOperation:
        if resource.startswith("_"):
            raise AttributeError(resource)
        catalogue = self._session.catalogue
        descriptor = catalogue.resolve(self._module, self._verb, resource)
        if descriptor is None:
            name = f"{self._module}_{self._verb}_{resource}"
            raise CapabilityError(
                f"Remote operation '{name}' is not enabled for this token",
                operation=name,
            )
        if catalogue.is_abbreviation(self._module, self._verb, resource):
            logger.debug(f"{self._module}.{self._verb}.{resource} -> {descriptor.name}")
        return BoundOperation(self._session, descriptor)

    def __dir__(self) -> list[str]:
        return self._session.catalogue.resources(self._module, self._verb)


class _ModuleNamespace:
    def __init__(self, session: "MoodleSession", module: str):
        self._session = session
        self._module = module

    def __getattr__(self, verb: str) -> _VerbNamespace:
        if verb.startswith("_"):
            raise AttributeError(verb)
        if verb not in self._session.catalogue.verbs(self._module):
            raise CapabilityError(
                f"No '{verb}' operations of '{self._module}' are enabled for this token",
                operation=f"{self._module}_{verb}",
            )
        return _VerbNamespace(self._session, self._module, verb)

    def __dir__(self) -> list[str]:
        return self._session.catalogue.verbs(self._module)


class ApiNamespace:
    """
    Attribute access to the discovered operations.

        await session.api.core_course.get.contents(courseid=7)
        await session.api.mod_assign.save.grade({"assignmentid": 3, ...})
    """

    def __init__(self, session: "MoodleSession"):
        self._session = session

    def __getattr__(self, module: str) -> _ModuleNamespace:
        if module.startswith("_"):
            raise AttributeError(module)
        if module not in self._session.catalogue.modules():
            raise CapabilityError(
                f"No operations of '{module}' are enabled for this token",
                operation=module,
            )
        return _ModuleNamespace(self._session, module)

    def __dir__(self) -> list[str]:
        return self._session.catalogue.modules()


class MoodleSession:
    """
    Manages the connection to a Moodle instance.

    connect() performs the one discovery call (site info): it yields the
    user identity, the private key for file downloads and the list of
    functions the token may call. Everything else goes through the
    catalogue built from that list.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._base_parameter: dict[str, str] = {}
        self._user: dict[str, Any] = {}
        self._catalogue = OperationCatalogue()
        self.api = ApiNamespace(self)

    @property
    def service_url(self) -> str:
        return f"{self.url}{SERVICE_PATH}"

    @property
    def catalogue(self) -> OperationCatalogue:
        return self._catalogue

    @property
    def connected(self) -> bool:
        return bool(self._user)

    @property
    def active_user(self) -> ActiveUser:
        return ActiveUser(username=self._user.get("name"), id=self._user.get("id"))

    def has_operation(self, name: str) -> bool:
        return name in self._catalogue

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "MoodleSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def connect(self, token: str) -> ActiveUser:
        """Authenticate and discover the enabled operations."""
        if not token:
            raise TransportError("No access token provided", operation=SITE_INFO_FUNCTION)

        self._base_parameter = {
            "wstoken": token,
            "moodlewsrestformat": "json",
        }
        self._user = {}
        self._catalogue = OperationCatalogue()

        result = await self.get(SITE_INFO_FUNCTION)
        if not isinstance(result, dict):
            raise TransportError(
                "Unexpected site info response",
                operation=SITE_INFO_FUNCTION,
                url=self.service_url,
            )

        self._user = {
            "name": result.get("username"),
            "id": result.get("userid"),
            "private_key": result.get("userprivateaccesskey"),
        }
        self._catalogue = OperationCatalogue(
            function["name"] for function in result.get("functions", [])
            if isinstance(function, dict) and function.get("name")
        )

        logger.info(
            f"Connected to {self.url} as {self._user['name']} "
            f"({len(self._catalogue)} operations enabled)"
        )
        return self.active_user

    # === Dispatch ===

    def _query(self, operation: str, params: dict[str, Any] | None = None) -> str:
        query = encode_parameters({**self._base_parameter, "wsfunction": operation})
        parameter_string = encode_parameters(params)
        if parameter_string:
            return f"{query}&{parameter_string}"
        return query

    def _require_token(self, operation: str) -> None:
        if not self._base_parameter:
            raise TransportError(
                "Session is not connected; call connect() first",
                operation=operation,
            )

    async def dispatch(self, descriptor: OperationDescriptor, params: dict[str, Any] | None = None) -> Any:
        """Send an operation with the HTTP method its verb calls for."""
        if descriptor.is_write:
            return await self.post(descriptor.name, params)
        return await self.get(descriptor.name, params)

    async def call(self, operation: str, params: dict[str, Any] | None = None) -> Any:
        """Call an enabled operation by its full name."""
        if operation not in self._catalogue:
            raise CapabilityError(
                f"Remote operation '{operation}' is not enabled for this token",
                operation=operation,
            )
        if self._catalogue.method_for(operation) == "POST":
            return await self.post(operation, params)
        return await self.get(operation, params)

    async def get(self, operation: str, params: dict[str, Any] | None = None) -> Any:
        """Read request: everything goes into the query string."""
        self._require_token(operation)
        url = f"{self.service_url}?{self._query(operation, params)}"
        logger.debug(f"GET {operation}")

        try:
            response = await self._get_client().get(url)
        except httpx.HTTPError as e:
            raise TransportError(
                f"Request failed: {type(e).__name__}: {e}",
                operation=operation,
                url=self.service_url,
            ) from e

        return self._handle_response(operation, response)

    async def post(self, operation: str, params: dict[str, Any] | None = None) -> Any:
        """Write request: the parameters go into a form-encoded body."""
        self._require_token(operation)
        post_data = encode_parameters(params)

        if not post_data:
            raise TransportError(
                "Cannot post empty data",
                operation=operation,
                url=self.service_url,
            )

        url = f"{self.service_url}?{self._query(operation)}"
        logger.debug(f"POST {operation}")

        try:
            response = await self._get_client().post(
                url,
                content=post_data.encode("utf-8"),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"Request failed: {type(e).__name__}: {e}",
                operation=operation,
                url=self.service_url,
            ) from e

        return self._handle_response(operation, response, post_data)

    def _handle_response(
        self,
        operation: str,
        response: httpx.Response,
        post_data: str | None = None,
    ) -> Any:
        if response.status_code >= 400:
            raise TransportError(
                f"HTTP {response.status_code} from web service",
                operation=operation,
                url=self.service_url,
                status_code=response.status_code,
            )

        if not response.text.strip():
            return None

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                "Web service returned a non-JSON response",
                operation=operation,
                url=self.service_url,
                status_code=response.status_code,
            ) from e

        if isinstance(body, dict) and "exception" in body:
            raise DomainError(
                "Bad request",
                operation=operation,
                path=_redact(response.request.url.raw_path.decode("ascii", "replace")),
                code=body.get("errorcode"),
                info=body.get("message"),
                data=post_data,
            )

        return body

    # === Files ===

    async def download_file(self, file_url: str, to_path: str | Path) -> Path:
        """
        Download a file exposed by the web service.

        File URLs are authenticated with the user's private access key from
        connect(), never with the session token.
        """
        private_key = self._user.get("private_key")
        if not private_key:
            raise CapabilityError(
                "File downloads are not enabled for this token",
                operation="download_file",
            )

        separator = "&" if "?" in file_url else "?"
        url = f"{file_url}{separator}{encode_parameters({'token': private_key})}"

        try:
            response = await self._get_client().get(url)
        except httpx.HTTPError as e:
            raise TransportError(
                f"Download failed: {type(e).__name__}: {e}",
                operation="download_file",
                url=file_url,
            ) from e

        if response.status_code >= 400:
            raise TransportError(
                f"HTTP {response.status_code} while downloading",
                operation="download_file",
                url=file_url,
                status_code=response.status_code,
            )

        if response.headers.get("content-type", "").startswith("application/json"):
            try:
                body = response.json()
            except ValueError as e:
                raise TransportError(
                    "Download returned a malformed JSON response",
                    operation="download_file",
                    url=file_url,
                    status_code=response.status_code,
                ) from e
            if isinstance(body, dict) and ("exception" in body or "errorcode" in body):
                raise DomainError(
                    "Download refused",
                    operation="download_file",
                    path=_redact(response.request.url.raw_path.decode("ascii", "replace")),
                    code=body.get("errorcode"),
                    info=body.get("message") or body.get("error"),
                )

        target = Path(to_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(response.content)
        logger.debug(f"Downloaded {file_url} -> {target}")
        return target


def _redact(path: str) -> str:
    """Hide access tokens in request paths shown to operators."""
    return _TOKEN_IN_QUERY.sub(r"\1=***", path)
