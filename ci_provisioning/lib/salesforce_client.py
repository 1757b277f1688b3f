"""Salesforce client for REST and Metadata API operations."""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Callable
from typing import Any

import requests

from .config import SalesforceConfig
from .exceptions import RemoteOperationError
from .models import Identity, MetadataError, QueryResult, SaveResult

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
METADATA_NS = "http://soap.sforce.com/2006/04/metadata"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

ET.register_namespace("soapenv", SOAP_ENV_NS)
ET.register_namespace("met", METADATA_NS)
ET.register_namespace("xsi", XSI_NS)


def _qname(namespace: str, tag: str) -> str:
    return f"{{{namespace}}}{tag}"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str:
    """Text of the first child with the given local name, ignoring namespaces."""
    for child in element:
        if _local(child.tag) == name:
            return child.text or ""
    return ""


def _append_value(parent: ET.Element, tag: str, value: Any) -> None:
    """Append value under parent as <tag>; lists become repeated elements."""
    if isinstance(value, list):
        for item in value:
            _append_value(parent, tag, item)
        return

    child = ET.SubElement(parent, _qname(METADATA_NS, tag))
    if isinstance(value, dict):
        for key, nested in value.items():
            _append_value(child, key, nested)
    elif isinstance(value, bool):
        child.text = "true" if value else "false"
    elif value is not None:
        child.text = str(value)


def _parse_element(element: ET.Element) -> Any:
    """Convert an XML element to a dict, scalar or None."""
    if element.get(_qname(XSI_NS, "nil")) == "true":
        return None

    children = list(element)
    if not children:
        text = element.text or ""
        if text == "true":
            return True
        if text == "false":
            return False
        return text

    parsed: dict[str, Any] = {}
    for child in children:
        key = _local(child.tag)
        value = _parse_element(child)
        if key in parsed:
            existing = parsed[key]
            if not isinstance(existing, list):
                parsed[key] = [existing]
            parsed[key].append(value)
        else:
            parsed[key] = value
    return parsed


def _rest_errors(body: Any) -> list[MetadataError]:
    """Convert REST API error bodies to structured errors."""
    if not isinstance(body, list):
        body = [body] if isinstance(body, dict) else []
    return [
        MetadataError(
            fields=item.get("fields") or [],
            message=str(item.get("message", "")),
            statusCode=str(item.get("errorCode", "")),
        )
        for item in body
    ]


class SalesforceClient:
    """Salesforce client implementing RemoteResourceGateway over REST and SOAP."""

    def __init__(self, config: SalesforceConfig) -> None:
        """Initialize Salesforce client.

        Args:
            config: Instance URL, access token and API version
        """
        self.config = config
        self.instance_url = config.instance_url.rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.config.access_token}"}

    @property
    def _rest_base(self) -> str:
        return f"{self.instance_url}/services/data/v{self.config.api_version}"

    def _request(self, method: str, url: str, operation: str, **kwargs: Any) -> requests.Response:
        """Send an HTTP request, converting transport failures to RemoteOperationError."""
        try:
            return requests.request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise RemoteOperationError(
                operation,
                MetadataError(fields=[], message=str(e), statusCode="TRANSPORT_ERROR"),
            ) from e

    def _get_json(self, url: str, operation: str, params: dict | None = None) -> Any:
        resp = self._request("GET", url, operation, params=params, headers=self._headers)
        if resp.status_code >= 400:
            raise RemoteOperationError(operation, self._http_errors(resp))
        return self._json(resp, operation)

    @staticmethod
    def _json(resp: requests.Response, operation: str) -> Any:
        """Decode a JSON body, converting malformed bodies to RemoteOperationError."""
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteOperationError(
                operation,
                MetadataError(fields=[], message=resp.text, statusCode=f"HTTP_{resp.status_code}"),
            ) from e

    @staticmethod
    def _http_errors(resp: requests.Response) -> list[MetadataError]:
        try:
            errors = _rest_errors(resp.json())
        except ValueError:
            errors = []
        if errors:
            return errors
        return [
            MetadataError(
                fields=[],
                message=resp.text or resp.reason or "",
                statusCode=f"HTTP_{resp.status_code}",
            )
        ]

    def query(self, soql: str) -> QueryResult:
        """Run a SOQL query, following nextRecordsUrl pagination.

        Returns:
            QueryResult with totalSize and all records
        """
        body = self._get_json(f"{self._rest_base}/query", f"query {soql}", params={"q": soql})
        records = list(body.get("records", []))

        # Handle pagination
        while not body.get("done", True) and body.get("nextRecordsUrl"):
            body = self._get_json(f"{self.instance_url}{body['nextRecordsUrl']}", f"query {soql}")
            records.extend(body.get("records", []))

        return QueryResult(totalSize=int(body.get("totalSize", len(records))), records=records)

    def identity(self) -> Identity:
        """Return user id and username of the authenticated user."""
        body = self._get_json(f"{self.instance_url}/services/oauth2/userinfo", "identity")
        return Identity(user_id=body["user_id"], username=body["preferred_username"])

    def record_create(self, kind: str, fields: dict[str, Any]) -> SaveResult:
        """Create an sObject record.

        Returns:
            SaveResult; validation failures are returned, not raised

        Raises:
            RemoteOperationError: On authentication or server errors
        """
        resp = self._request(
            "POST",
            f"{self._rest_base}/sobjects/{kind}/",
            f"create {kind}",
            json=fields,
            headers=self._headers,
        )
        if resp.status_code == 400:
            return SaveResult(success=False, errors=self._http_errors(resp))
        if resp.status_code >= 400:
            raise RemoteOperationError(f"create {kind}", self._http_errors(resp))

        body = self._json(resp, f"create {kind}")
        result = SaveResult(success=bool(body.get("success", True)), id=body.get("id", ""))
        if body.get("errors"):
            result["errors"] = _rest_errors(body["errors"])
        return result

    def _soap_call(
        self, operation: str, build_body: Callable[[ET.Element], None]
    ) -> ET.Element:
        """Send a Metadata API SOAP request and return the response <result> element.

        Raises:
            RemoteOperationError: On SOAP fault or HTTP error
        """
        envelope = ET.Element(_qname(SOAP_ENV_NS, "Envelope"))
        header = ET.SubElement(envelope, _qname(SOAP_ENV_NS, "Header"))
        session = ET.SubElement(header, _qname(METADATA_NS, "SessionHeader"))
        ET.SubElement(session, _qname(METADATA_NS, "sessionId")).text = self.config.access_token
        body = ET.SubElement(envelope, _qname(SOAP_ENV_NS, "Body"))
        build_body(ET.SubElement(body, _qname(METADATA_NS, operation)))

        resp = self._request(
            "POST",
            f"{self.instance_url}/services/Soap/m/{self.config.api_version}",
            operation,
            data=ET.tostring(envelope, encoding="utf-8", xml_declaration=True),
            headers={"Content-Type": "text/xml; charset=UTF-8", "SOAPAction": '""'},
        )

        try:
            root = ET.fromstring(resp.content)
        except ET.ParseError as e:
            raise RemoteOperationError(
                operation,
                MetadataError(fields=[], message=resp.text, statusCode=f"HTTP_{resp.status_code}"),
            ) from e

        fault = root.find(f".//{_qname(SOAP_ENV_NS, 'Fault')}")
        if fault is not None:
            raise RemoteOperationError(
                operation,
                MetadataError(
                    fields=[],
                    message=_child_text(fault, "faultstring"),
                    statusCode=_child_text(fault, "faultcode").split(":")[-1],
                ),
            )

        result = root.find(f".//{_qname(METADATA_NS, 'result')}")
        if result is None:
            raise RemoteOperationError(
                operation,
                MetadataError(fields=[], message="missing result", statusCode=f"HTTP_{resp.status_code}"),
            )
        return result

    def metadata_read(self, kind: str, full_name: str) -> dict[str, Any]:
        """Read a metadata component, returning {} if it does not exist."""

        def build(request: ET.Element) -> None:
            ET.SubElement(request, _qname(METADATA_NS, "type")).text = kind
            ET.SubElement(request, _qname(METADATA_NS, "fullNames")).text = full_name

        result = self._soap_call("readMetadata", build)
        records = result.find(_qname(METADATA_NS, "records"))
        if records is None:
            return {}
        parsed = _parse_element(records)
        return parsed if isinstance(parsed, dict) else {}

    def metadata_create(self, kind: str, record: dict[str, Any]) -> SaveResult:
        """Create a metadata component."""

        def build(request: ET.Element) -> None:
            metadata = ET.SubElement(request, _qname(METADATA_NS, "metadata"))
            metadata.set(_qname(XSI_NS, "type"), f"met:{kind}")
            for key, value in record.items():
                _append_value(metadata, key, value)

        logger.debug("createMetadata %s %s", kind, record.get("fullName"))
        return self._save_result(self._soap_call("createMetadata", build))

    def metadata_delete(self, kind: str, full_name: str) -> SaveResult:
        """Delete a metadata component."""

        def build(request: ET.Element) -> None:
            ET.SubElement(request, _qname(METADATA_NS, "type")).text = kind
            ET.SubElement(request, _qname(METADATA_NS, "fullNames")).text = full_name

        logger.debug("deleteMetadata %s %s", kind, full_name)
        return self._save_result(self._soap_call("deleteMetadata", build))

    @staticmethod
    def _save_result(element: ET.Element) -> SaveResult:
        parsed = _parse_element(element)
        if not isinstance(parsed, dict):
            parsed = {}
        result = SaveResult(success=parsed.get("success") is True)
        if parsed.get("fullName"):
            result["fullName"] = parsed["fullName"]
        if parsed.get("errors"):
            result["errors"] = parsed["errors"]
        return result
