"""
Unit tests for the Google Sheets client helpers.
"""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import json
import unittest
from unittest import mock

import httplib2
from googleapiclient.errors import HttpError

from sheets_api import (
    SheetNotFoundError,
    SheetsCredentialsError,
    SheetsPermissionError,
    SheetsTransportError,
    create_sheets_client,
    quote_title,
    service_account_email,
    translate_error,
    update_worksheet,
)


def make_http_error(status, message):
    resp = httplib2.Response({"status": status, "reason": "error"})
    content = json.dumps({"error": {"code": status, "message": message}}).encode("utf-8")
    return HttpError(resp, content)


def make_service(titles):
    service = mock.MagicMock()
    spreadsheets = service.spreadsheets.return_value
    spreadsheets.get.return_value.execute.return_value = {
        "sheets": [{"properties": {"title": title, "sheetId": i}} for i, title in enumerate(titles)]
    }
    spreadsheets.values.return_value.update.return_value.execute.return_value = {"updatedRows": 2}
    return service


class TestUpdateWorksheet(unittest.TestCase):
    def test_creates_missing_worksheet(self):
        service = make_service(["Sheet1"])
        update_worksheet(service, "sid", "Volunteers", ["ID", "Name"], [[1, "Ada"]])

        spreadsheets = service.spreadsheets.return_value
        spreadsheets.batchUpdate.assert_called_once_with(
            spreadsheetId="sid",
            body={"requests": [{"addSheet": {"properties": {"title": "Volunteers"}}}]},
        )

    def test_reuses_existing_worksheet(self):
        service = make_service(["Volunteers"])
        update_worksheet(service, "sid", "Volunteers", ["ID"], [])
        service.spreadsheets.return_value.batchUpdate.assert_not_called()

    def test_clears_then_writes_raw_values_from_a1(self):
        service = make_service(["Volunteer - O Brien"])
        result = update_worksheet(
            service, "sid", "Volunteer - O Brien", ["ID", "Event"], [[1, "=SUM(A1)"], [2, "Gala"]]
        )

        values = service.spreadsheets.return_value.values.return_value
        values.clear.assert_called_once_with(spreadsheetId="sid", range="'Volunteer - O Brien'", body={})
        values.update.assert_called_once_with(
            spreadsheetId="sid",
            range="'Volunteer - O Brien'!A1",
            valueInputOption="RAW",
            body={"values": [["ID", "Event"], [1, "=SUM(A1)"], [2, "Gala"]]},
        )
        self.assertEqual(result, {"updatedRows": 2})

    def test_permission_error_is_tagged(self):
        service = make_service([])
        service.spreadsheets.return_value.get.return_value.execute.side_effect = make_http_error(
            403, "The caller does not have permission"
        )
        with self.assertRaises(SheetsPermissionError) as ctx:
            update_worksheet(service, "sid", "Volunteers", ["ID"], [])
        self.assertEqual(ctx.exception.status, 403)
        self.assertIn("permission", str(ctx.exception))
        service.spreadsheets.return_value.values.return_value.clear.assert_not_called()

    def test_write_failure_propagates(self):
        service = make_service(["Volunteers"])
        values = service.spreadsheets.return_value.values.return_value
        values.update.return_value.execute.side_effect = make_http_error(500, "Internal error")
        with self.assertRaises(SheetsTransportError):
            update_worksheet(service, "sid", "Volunteers", ["ID"], [])


class TestHelpers(unittest.TestCase):
    def test_translate_error_by_status(self):
        self.assertIsInstance(translate_error(make_http_error(404, "Requested entity was not found.")), SheetNotFoundError)
        self.assertIsInstance(translate_error(make_http_error(400, "Unable to parse range")), SheetsTransportError)
        self.assertIsInstance(translate_error(RuntimeError("no permission to write")), SheetsPermissionError)

    def test_auth_and_disabled_api_errors_are_not_permission_errors(self):
        """Only messages that mention permission get the permission tag."""
        unauthenticated = translate_error(make_http_error(401, "Request had invalid authentication credentials."))
        disabled = translate_error(make_http_error(
            403, "Google Sheets API has not been used in project 123 before or it is disabled."
        ))
        self.assertIsInstance(unauthenticated, SheetsTransportError)
        self.assertEqual(unauthenticated.status, 401)
        self.assertIsInstance(disabled, SheetsTransportError)
        self.assertIn("disabled", str(disabled))
        self.assertIsInstance(
            translate_error(make_http_error(403, "The caller does not have permission")), SheetsPermissionError
        )

    def test_quote_title(self):
        self.assertEqual(quote_title("Volunteers"), "Volunteers")
        self.assertEqual(quote_title("Volunteer - Ann"), "'Volunteer - Ann'")
        self.assertEqual(quote_title("It's"), "'It''s'")

    def test_service_account_email(self):
        self.assertEqual(service_account_email({"client_email": "bot@x.iam"}), "bot@x.iam")
        self.assertEqual(service_account_email({}), "the service account email")
        self.assertEqual(service_account_email(None), "the service account email")

    def test_invalid_credentials(self):
        with self.assertRaises(SheetsCredentialsError):
            create_sheets_client({"type": "service_account"})

    def test_client_built_with_spreadsheets_scope(self):
        with mock.patch("sheets_api.service_account.Credentials.from_service_account_info") as from_info, \
                mock.patch("sheets_api.build") as build:
            create_sheets_client({"client_email": "bot@x.iam"})
        from_info.assert_called_once_with(
            {"client_email": "bot@x.iam"}, scopes=["https://www.googleapis.com/auth/spreadsheets"]
        )
        build.assert_called_once_with("sheets", "v4", credentials=from_info.return_value, cache_discovery=False)


if __name__ == "__main__":
    unittest.main()
