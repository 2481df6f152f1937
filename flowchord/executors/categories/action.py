"""Action and tool node execution.

Each handler validates its settings before any network call and raises
NodeConfigurationError with a user-facing message when something is missing.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Callable

import httpx

from flowchord.core.types import ExecutionContext, NodeExecutionResult, NodeType, WorkflowNode
from flowchord.errors.exceptions import (
    IntegrationError,
    NodeConfigurationError,
    UnsupportedNodeTypeError,
)
from flowchord.executors.base import CategoryExecutor, ExecutorServices, now_iso
from flowchord.expression.resolver import resolve_template
from flowchord.integrations.base import SheetsClient
from flowchord.integrations.gmail import build_rfc2822_message, to_base64url
from flowchord.runtime.ui import ToastKind

logger = logging.getLogger(__name__)

EMAILJS_MAX_PAYLOAD_BYTES = 50_000

_SPREADSHEET_URL = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")


def extract_spreadsheet_id(url: str) -> str:
    """Spreadsheet id from a Google Sheets URL, or "" if there is none."""
    match = _SPREADSHEET_URL.search(url or "")
    return match.group(1) if match else ""


class ActionNodeExecutor(CategoryExecutor):
    """Stateless request/response integrations plus the Do Nothing stop node."""

    NODE_TYPES = (
        NodeType.DO_NOTHING,
        NodeType.EMAILJS,
        NodeType.EMAILJS_TOOL,
        NodeType.GMAIL,
        NodeType.GMAIL_TOOL,
        NodeType.GOOGLE_SHEETS,
        NodeType.GOOGLE_SHEETS_TOOL,
        NodeType.HTTP_REQUEST,
        NodeType.HTTP_REQUEST_TOOL,
    )

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        node_type = node.node_type
        if node_type == NodeType.DO_NOTHING:
            return NodeExecutionResult.ok({"stopped": True, "stoppedAt": now_iso()})
        if node_type in (NodeType.EMAILJS, NodeType.EMAILJS_TOOL):
            return await self._execute_emailjs(node, context)
        if node_type in (NodeType.GMAIL, NodeType.GMAIL_TOOL):
            return await self._execute_gmail(node, context)
        if node_type in (NodeType.GOOGLE_SHEETS, NodeType.GOOGLE_SHEETS_TOOL):
            return await GoogleSheetsAction(self.services).execute(node, context)
        if node_type in (NodeType.HTTP_REQUEST, NodeType.HTTP_REQUEST_TOOL):
            return await self._execute_http_request(node, context)
        raise UnsupportedNodeTypeError(node_type, "action")

    # EmailJS

    async def _execute_emailjs(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        auth = node.settings.authentication
        public_key = str(auth.get("publicKey") or "").strip()
        service_id = str(auth.get("serviceId") or "").strip()
        template_id = str(auth.get("templateId") or "").strip()

        missing = [
            label
            for label, value in (
                ("Public Key", public_key),
                ("Service ID", service_id),
                ("Template ID", template_id),
            )
            if not value
        ]
        if missing:
            raise NodeConfigurationError(
                NodeType.EMAILJS,
                f"Please provide: {', '.join(missing)}.",
                title="EmailJS: Missing required fields",
            )

        rows = node.settings.general.get("emailjsVars") or []
        cleaned = [r for r in rows if str((r or {}).get("key") or "").strip()]
        dropped = len(rows) - len(cleaned)
        if dropped:
            self.services.toast(
                ToastKind.WARNING,
                "EmailJS: Ignoring empty variable names",
                f"Ignored {dropped} variable row(s) with empty key.",
            )

        template_params = {
            str(row["key"]).strip(): resolve_template(str(row.get("value") or ""), context)
            for row in cleaned
        }

        size = len(json.dumps(template_params, ensure_ascii=False).encode("utf-8"))
        if size > EMAILJS_MAX_PAYLOAD_BYTES:
            raise NodeConfigurationError(
                NodeType.EMAILJS,
                f"Template variables exceed 50 KB (current ~{size} bytes). Reduce payload size.",
                title="EmailJS: Payload too large",
            )

        sender = self.services.integrations.emailjs
        if sender is None:
            raise IntegrationError("EmailJS: integration is not configured.", provider="emailjs")

        response = await sender.send(service_id, template_id, template_params, public_key)
        logger.debug(f"EmailJS sent {len(template_params)} template params via {service_id}")
        return NodeExecutionResult.ok({
            "status": response.get("status"),
            "text": response.get("text"),
            "templateParams": template_params,
        })

    # Gmail

    async def _execute_gmail(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        gmail = self.services.integrations.gmail
        if gmail is None:
            raise IntegrationError("Gmail: integration is not configured.", provider="gmail")

        account = gmail.connected_account()
        if not account:
            raise NodeConfigurationError(
                NodeType.GMAIL,
                "Gmail: Connect your Google account in the Authentication tab.",
                title="Gmail Authentication Missing",
            )
        token = gmail.cached_token()
        if not token:
            raise NodeConfigurationError(
                NodeType.GMAIL,
                "Gmail token expired/missing. Please re-connect in Authentication tab.",
                title="Gmail Token Required",
            )

        general = node.settings.general
        to = resolve_template(str(general.get("to") or ""), context).strip()
        subject = resolve_template(str(general.get("subject") or ""), context).strip()
        body = resolve_template(str(general.get("message") or ""), context)
        if not to or not subject:
            raise NodeConfigurationError(
                NodeType.GMAIL,
                'Gmail: "To" and "Subject" are required.',
                title="Gmail Missing Fields",
            )

        raw = to_base64url(build_rfc2822_message(account, to, subject, body))
        sent = await gmail.send_raw(raw, token)
        return NodeExecutionResult.ok({
            "id": sent.get("id"),
            "threadId": sent.get("threadId"),
            "labelIds": list(sent.get("labelIds") or []),
            "to": to,
            "subject": subject,
            "sentAt": now_iso(),
            "provider": "gmail",
        })

    # HTTP Request

    async def _execute_http_request(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        general = node.settings.general
        url = resolve_template(str(general.get("url") or ""), context).strip()
        if not url:
            raise NodeConfigurationError(
                NodeType.HTTP_REQUEST,
                "HTTP Request: Please provide a URL.",
                title="HTTP Request Missing URL",
            )

        query_params = []
        for row in general.get("queryParams") or []:
            key = resolve_template(str((row or {}).get("key") or ""), context).strip()
            if key:
                query_params.append((key, resolve_template(str(row.get("value") or ""), context)))

        headers: dict[str, str] = {}
        raw_headers = general.get("headers")
        if raw_headers and str(raw_headers).strip():
            try:
                parsed = json.loads(resolve_template(str(raw_headers), context) or "{}")
                if not isinstance(parsed, dict):
                    raise ValueError("headers must be an object")
            except ValueError as e:
                raise NodeConfigurationError(
                    NodeType.HTTP_REQUEST,
                    "HTTP Request: Headers must be valid JSON.",
                    title="HTTP Request Invalid Headers",
                ) from e
            headers = {k: "" if v is None else str(v) for k, v in parsed.items()}

        started = time.monotonic()
        try:
            async with self.services.http_client() as client:
                response = await client.get(url, params=query_params, headers=headers)
        except httpx.HTTPError as e:
            raise IntegrationError(f"HTTP Request failed: {e}", provider="http") from e
        elapsed_ms = int((time.monotonic() - started) * 1000)

        content_type = response.headers.get("content-type", "")
        body: Any
        if "json" in content_type.lower():
            try:
                body = response.json()
            except ValueError:
                body = response.text
        else:
            body = response.text

        payload = {
            "url": str(response.request.url),
            "method": "GET",
            "ok": response.is_success,
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "elapsedMs": elapsed_ms,
            "request": {
                "queryParams": [{"key": k, "value": v} for k, v in query_params],
                "headers": headers,
            },
            "response": {"headers": dict(response.headers), "contentType": content_type},
            "body": body,
        }
        if not response.is_success:
            return NodeExecutionResult.fail(
                f"HTTP {response.status_code} {response.reason_phrase}", data=payload
            )
        return NodeExecutionResult.ok(payload)


class GoogleSheetsAction:
    """The six Google Sheets operations, selected by `general.operation`."""

    def __init__(self, services: ExecutorServices) -> None:
        self.services = services

    def _missing(self, message: str, title: str = "Sheets Missing Fields") -> NodeConfigurationError:
        return NodeConfigurationError(NodeType.GOOGLE_SHEETS, message, title=title)

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> NodeExecutionResult:
        general = node.settings.general

        def rt(value: Any) -> str:
            return resolve_template(str(value if value is not None else ""), context).strip()

        operation = str(general.get("operation") or "").strip()
        document_id = extract_spreadsheet_id(rt(general.get("documentUrl"))) or rt(general.get("documentId"))
        sheet = rt(general.get("sheetName") or general.get("sheet"))

        sheets = self.services.integrations.sheets
        if sheets is None:
            raise IntegrationError("Google Sheets: integration is not configured.", provider="sheets")
        token = sheets.cached_token()
        if not token:
            raise self._missing(
                "Google Sheets: Please connect your Google account in the Authentication tab.",
                title="Sheets Authentication Missing",
            )

        if operation == "Create Sheet":
            return await self._create_sheet(sheets, token, document_id, rt(general.get("title")), general)
        if operation == "Delete Sheet":
            return await self._delete_sheet(sheets, token, document_id, sheet)
        if operation == "Append Row":
            return await self._append_row(sheets, token, document_id, sheet, general, rt)
        if operation == "Update Row":
            return await self._update_row(sheets, token, document_id, sheet, general, rt)
        if operation == "Delete Row/Column":
            return await self._delete_dimension(sheets, token, document_id, sheet, general)
        if operation == "Get Row(s)":
            return await self._get_rows(sheets, token, document_id, sheet, general, context)
        raise self._missing(
            "Google Sheets: Unsupported or missing operation.", title="Sheets Operation Error"
        )

    async def _create_sheet(
        self,
        sheets: SheetsClient,
        token: str,
        document_id: str,
        title: str,
        general: dict[str, Any],
    ) -> NodeExecutionResult:
        if not document_id or not title:
            raise self._missing("Create Sheet: Please provide both Document ID and Sheet Title.")
        headers = (general.get("create") or {}).get("headers")
        headers = headers if isinstance(headers, list) else None

        try:
            created = await sheets.create_sheet(document_id, title, token, headers)
        except IntegrationError as e:
            if not re.search(r"already\s+exists", str(e), re.IGNORECASE):
                raise
            headers_applied = False
            if headers:
                headers_applied = await sheets.write_headers_if_missing(document_id, title, headers, token)
            note = "added headers to row 1." if headers_applied else "skipped creation."
            self.services.toast(ToastKind.INFO, "Google Sheets", f'Sheet "{title}" already exists, {note}')
            return NodeExecutionResult.ok({
                "createdNew": False,
                "reason": "already-exists",
                "documentId": document_id,
                "title": title,
                "headersApplied": headers_applied,
            })
        return NodeExecutionResult.ok({
            "created": created,
            "documentId": document_id,
            "title": title,
            "createdNew": True,
            "headersApplied": bool(headers),
        })

    async def _delete_sheet(
        self, sheets: SheetsClient, token: str, document_id: str, sheet: str
    ) -> NodeExecutionResult:
        if not document_id or not sheet:
            raise self._missing("Delete Sheet: Please provide Document ID and Sheet Name.")
        try:
            removed = await sheets.delete_sheet(document_id, sheet, token)
        except IntegrationError as e:
            if not re.search(r"not\s+found", str(e), re.IGNORECASE):
                raise
            self.services.toast(
                ToastKind.INFO, "Google Sheets", f'Sheet "{sheet}" not found, nothing to delete.'
            )
            return NodeExecutionResult.ok({
                "deleted": False,
                "reason": "not-found",
                "documentId": document_id,
                "sheetName": sheet,
            })
        return NodeExecutionResult.ok({
            "deleted": True,
            "detail": removed,
            "documentId": document_id,
            "sheetName": sheet,
        })

    async def _append_row(
        self,
        sheets: SheetsClient,
        token: str,
        document_id: str,
        sheet: str,
        general: dict[str, Any],
        rt: Callable[[Any], str],
    ) -> NodeExecutionResult:
        if not document_id or not sheet:
            raise self._missing("Append Row: Please provide Document URL (or ID) and Sheet Name.")
        values = {key: rt(value) for key, value in (general.get("appendValues") or {}).items()}

        headers = await sheets.get_header_row(document_id, sheet, token)
        if not headers:
            raise self._missing(
                "Append Row: No column headers found. Create headers in row 1 and try again.",
                title="Sheets Headers Missing",
            )
        result = await sheets.append_row(document_id, sheet, headers, values, token)
        updated_range = ((result or {}).get("updates") or {}).get("updatedRange")
        return NodeExecutionResult.ok({"appended": True, "updatedRange": updated_range})

    async def _update_row(
        self,
        sheets: SheetsClient,
        token: str,
        document_id: str,
        sheet: str,
        general: dict[str, Any],
        rt: Callable[[Any], str],
    ) -> NodeExecutionResult:
        update = general.get("update") or {}
        match_column = rt(update.get("matchColumn"))
        if not document_id or not sheet or not match_column:
            raise self._missing(
                "Update Row: Provide Document URL/ID, Sheet Name, and the Column to Match."
            )

        raw_values: dict[str, Any] = update.get("values") or {}
        match_value = rt(raw_values.get(match_column)) if match_column in raw_values else ""
        if not match_value:
            raise self._missing(
                f'Update Row: Provide a value under "{match_column}" in "Values to update" to locate the row.',
                title="Sheets Missing Match Value",
            )

        values = {key: rt(value) for key, value in raw_values.items() if key != match_column}
        if not values:
            raise self._missing(
                "Update Row: No columns to update. Add at least one value other than the match column.",
                title="Sheets Nothing To Update",
            )

        updated = await sheets.update_row_by_match(
            document_id, sheet, match_column, match_value, values, token
        )
        if not (updated or {}).get("found"):
            raise self._missing(
                f'Update Row: No row matched where "{match_column}" equals "{match_value}".',
                title="Sheets No Match",
            )
        return NodeExecutionResult.ok({
            "updated": True,
            "rowIndex": updated.get("rowIndex"),
            "updatedRange": updated.get("updatedRange"),
            "matchedOn": {"column": match_column, "value": match_value},
        })

    async def _delete_dimension(
        self,
        sheets: SheetsClient,
        token: str,
        document_id: str,
        sheet: str,
        general: dict[str, Any],
    ) -> NodeExecutionResult:
        options = general.get("delete") or {}
        dimension = "Column" if str(options.get("target") or "Row") == "Column" else "Row"
        start_index = max(1, int(options.get("startIndex") or 1))
        count = max(1, int(options.get("count") or 1))
        column_letter = None
        if dimension == "Column":
            column_letter = re.sub(r"[^A-Z]", "", str(options.get("startColumnLetter") or "").upper()) or None

        if not document_id or not sheet:
            raise self._missing("Delete Row/Column: Provide Document URL/ID and Sheet Name.")

        detail = await sheets.delete_dimension(
            document_id, sheet, dimension, start_index, count, token, column_letter
        )
        return NodeExecutionResult.ok({"deleted": True, "detail": detail})

    async def _get_rows(
        self,
        sheets: SheetsClient,
        token: str,
        document_id: str,
        sheet: str,
        general: dict[str, Any],
        context: ExecutionContext,
    ) -> NodeExecutionResult:
        options = general.get("getRows") or {}
        logic = "OR" if str(options.get("combineWith") or "AND").upper() == "OR" else "AND"
        if not document_id or not sheet:
            raise self._missing("Get Row(s): Provide Document URL/ID and Sheet Name.")

        filters = [
            {
                "column": str((f or {}).get("column") or "").strip(),
                "value": resolve_template(str((f or {}).get("value") or ""), context),
            }
            for f in options.get("filters") or []
        ]
        filters = [f for f in filters if f["column"]]

        if filters:
            result = await sheets.get_rows_with_filters(document_id, sheet, filters, logic, token)
        else:
            result = await sheets.get_all_rows(document_id, sheet, token)

        if not (result or {}).get("headers"):
            raise self._missing(
                "Get Row(s): No columns found. Create headers in row 1 and try again.",
                title="Sheets Headers Missing",
            )
        return NodeExecutionResult.ok({
            "count": len(result["rows"]),
            "headers": result["headers"],
            "rows": result["rows"],
        })
