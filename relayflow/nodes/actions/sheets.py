"""Google Sheets read/write node."""

from typing import Any, List, Optional
from urllib.parse import quote

import httpx
from pydantic import Field, field_validator, model_validator

from relayflow.config import settings
from relayflow.executor.context import ExecutionContext
from relayflow.nodes.base import NodeConfig, NodeResult
from .base import CredentialedHandler


class SheetsConfig(NodeConfig):
    spreadsheet_id: str = Field(..., alias="spreadsheetId")
    range: str
    operation: str
    values: Optional[List[List[Any]]] = None

    @model_validator(mode="before")
    @classmethod
    def accept_sheet_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("spreadsheetId") and data.get("sheetId"):
            data = {**data, "spreadsheetId": data["sheetId"]}
        return data

    @field_validator("spreadsheet_id", "range")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must be a non-empty string")
        return value.strip()

    @field_validator("operation")
    @classmethod
    def known_operation(cls, value: str) -> str:
        operation = value.strip().lower()
        if operation not in ("read", "write"):
            raise ValueError('operation must be either "read" or "write"')
        return operation

    @model_validator(mode="after")
    def values_for_write(self) -> "SheetsConfig":
        if self.operation == "write" and self.values is None:
            raise ValueError('"values" must be provided as a 2D array for write operations')
        return self


class SheetsHandler(CredentialedHandler):
    """Read or append rows through the Google Sheets v4 API."""

    node_type = "sheets"
    service = "google"
    config_model = SheetsConfig

    async def run(self, config: SheetsConfig, context: ExecutionContext) -> NodeResult:
        token = await self.access_token(context)
        base_url = (
            f"{settings.sheets_api_url}/spreadsheets/{quote(config.spreadsheet_id, safe='')}"
            f"/values/{quote(config.range, safe='')}"
        )
        headers = {"Authorization": f"Bearer {token}"}

        try:
            async with self.client() as client:
                if config.operation == "read":
                    response = await client.get(base_url, headers=headers)
                else:
                    response = await client.post(
                        f"{base_url}:append",
                        headers=headers,
                        params={"valueInputOption": "RAW"},
                        json={"values": config.values},
                    )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self.logger.error(
                "Google Sheets operation failed", operation=config.operation, error=str(e)
            )
            return NodeResult.fail(f"Google Sheets operation failed: {e}")

        if config.operation == "read":
            return NodeResult.ok({"data": data.get("values", [])})

        return NodeResult.ok({
            "updated": True,
            "range": (data.get("updates") or {}).get("updatedRange"),
        })
