"""Tests for remote error mapping."""
import unittest

from remotezero.core.exceptions import (ErrorDetail, NotFound, PermissionDenied,
                                        RemoteInvocationError, ValidationError,
                                        error_from_payload)


class TestErrorFromPayload(unittest.TestCase):
    def test_not_found_code(self):
        exc = error_from_payload(
            {"message": "Unknown \"Author\" id \"9\".", "code": "MODEL_NOT_FOUND", "statusCode": 404}
        )
        self.assertIsInstance(exc, NotFound)
        self.assertEqual(exc.code, "MODEL_NOT_FOUND")
        self.assertEqual(exc.status_code, 404)
        self.assertEqual(str(exc), "Unknown \"Author\" id \"9\".")

    def test_jsonrpc_error_data(self):
        exc = error_from_payload(
            {"code": -32000, "message": "Authorization Required",
             "data": {"code": "AUTHORIZATION_REQUIRED", "statusCode": 401}}
        )
        self.assertIsInstance(exc, PermissionDenied)
        self.assertEqual(exc.status_code, 401)

    def test_error_by_name(self):
        exc = error_from_payload(
            {"name": "ValidationError", "statusCode": 422,
             "details": {"name": "can't be blank"}}
        )
        self.assertIsInstance(exc, ValidationError)
        self.assertIsInstance(exc.detail["name"], ErrorDetail)

    def test_unknown_error_keeps_code(self):
        exc = error_from_payload({"message": "boom", "code": "DB_DOWN", "statusCode": 503})
        self.assertIs(type(exc), RemoteInvocationError)
        self.assertEqual(exc.code, "DB_DOWN")
        self.assertEqual(exc.status_code, 503)

    def test_numeric_code_without_data(self):
        exc = error_from_payload({"code": -32601, "message": "Method not found"})
        self.assertIs(type(exc), RemoteInvocationError)
        self.assertEqual(exc.code, "REMOTE_ERROR")

    def test_default_detail(self):
        self.assertEqual(str(NotFound()), "Not found.")
