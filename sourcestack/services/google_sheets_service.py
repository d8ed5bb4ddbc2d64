"""
Google Sheets result sink.

Creates result spreadsheets and appends candidate rows with gspread. Rows
always go to the first worksheet.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, List, Optional, Sequence

import gspread
import requests
from gspread.exceptions import APIError

from sourcestack.common.error_handling import RemoteApiError
from sourcestack.services.base import SpreadsheetSink
from sourcestack.services.google_auth import GoogleCredentialsProvider

logger = logging.getLogger(__name__)

WORKSHEET_TITLE = "Resume Data"
HEADER_PROBE_RANGE = "A1:Z1"
VALUE_INPUT_OPTION = "USER_ENTERED"
INSERT_DATA_OPTION = "INSERT_ROWS"


def _is_blank_row(row: Sequence[str]) -> bool:
    return all(not str(cell).strip() for cell in row)


def _api_error_to_remote(e: APIError, operation: str) -> RemoteApiError:
    response = getattr(e, "response", None)
    status = getattr(response, "status_code", None)
    body = getattr(response, "text", None)
    return RemoteApiError(f"Sheets {operation} failed: {e}", status_code=status, body=body)


class GoogleSheetsService(SpreadsheetSink):
    """SpreadsheetSink backed by gspread."""

    def __init__(
        self,
        credentials_provider: Optional[GoogleCredentialsProvider] = None,
        client_factory: Optional[Callable[[], Any]] = None,
    ):
        """
        Args:
            credentials_provider: Supplies credentials for gspread.authorize
            client_factory: Returns a gspread client; overrides the default
        """
        if client_factory is None and credentials_provider is None:
            raise ValueError("Either credentials_provider or client_factory is required")
        self._credentials_provider = credentials_provider
        self._client_factory = client_factory or self._authorize
        self._client = None
        self._lock = threading.Lock()

    def _authorize(self) -> gspread.Client:
        return gspread.authorize(self._credentials_provider.get_credentials())

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def create_spreadsheet(self, title: str) -> str:
        return await asyncio.to_thread(self._create_sync, title)

    async def append_rows(
        self,
        spreadsheet_id: str,
        rows: Sequence[Sequence[str]],
        skip_headers: bool = True,
    ) -> None:
        if not rows:
            return
        await asyncio.to_thread(self._append_sync, spreadsheet_id, [list(row) for row in rows], skip_headers)

    def _create_sync(self, title: str) -> str:
        with self._lock:
            try:
                spreadsheet = self._get_client().create(title)
                spreadsheet.sheet1.update_title(WORKSHEET_TITLE)
            except APIError as e:
                raise _api_error_to_remote(e, "create") from e
            except requests.exceptions.RequestException as e:
                raise RemoteApiError(f"Sheets create failed: {e}") from e

        logger.info(f"Created spreadsheet '{title}' ({spreadsheet.id})")
        return spreadsheet.id

    def _append_sync(self, spreadsheet_id: str, rows: List[List[str]], skip_headers: bool) -> None:
        with self._lock:
            try:
                worksheet = self._get_client().open_by_key(spreadsheet_id).sheet1
                existing = worksheet.get(HEADER_PROBE_RANGE)
                has_data = any(not _is_blank_row(row) for row in existing or [])

                if not has_data:
                    worksheet.update(
                        range_name="A1",
                        values=rows,
                        value_input_option=VALUE_INPUT_OPTION,
                    )
                    logger.debug(f"Wrote {len(rows)} rows at A1 of {spreadsheet_id}")
                    return

                to_append = rows if skip_headers else rows[1:]
                to_append = [row for row in to_append if not _is_blank_row(row)]
                if not to_append:
                    return

                worksheet.append_rows(
                    to_append,
                    value_input_option=VALUE_INPUT_OPTION,
                    insert_data_option=INSERT_DATA_OPTION,
                )
                logger.debug(f"Appended {len(to_append)} rows to {spreadsheet_id}")
            except APIError as e:
                raise _api_error_to_remote(e, "append") from e
            except requests.exceptions.RequestException as e:
                raise RemoteApiError(f"Sheets append failed: {e}") from e
