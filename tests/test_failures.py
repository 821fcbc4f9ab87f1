"""Tests for SDK failure classification."""
import pytest

from calling.device import SDKError
from calling.failures import (
    FailureDisposition, classify, error_code, error_message, to_call_error,
)
from models.errors import ErrorKind


class TestClassify:
    @pytest.mark.parametrize("code", [31005, 31480, 31486, 31603])
    def test_hangup_codes_are_benign(self, code, calling_config):
        error = SDKError("whatever", code=code)
        assert classify(error, calling_config) == FailureDisposition.BENIGN_HANGUP

    @pytest.mark.parametrize("message", ["User hung up", "Call ended", "BUSY here", "Call declined"])
    def test_hangup_messages_are_benign(self, message, calling_config):
        assert classify({"message": message}, calling_config) == FailureDisposition.BENIGN_HANGUP

    def test_other_errors_unrecoverable(self, calling_config):
        error = SDKError("Media connection failed", code=53405)
        assert classify(error, calling_config) == FailureDisposition.UNRECOVERABLE

    def test_codes_come_from_config(self, calling_config):
        calling_config.hangup_error_codes = [53405]
        assert classify(SDKError("x", code=53405), calling_config) == FailureDisposition.BENIGN_HANGUP


class TestErrorExtraction:
    def test_error_code_from_dict_and_attr(self):
        assert error_code({"code": "31486"}) == 31486
        assert error_code(SDKError("x", code=31000)) == 31000
        assert error_code(ValueError("x")) is None
        assert error_code({"code": "n/a"}) is None

    def test_error_message(self):
        assert error_message({"description": "Gone"}) == "Gone"
        assert error_message(RuntimeError()) == "RuntimeError"
        assert error_message(None) == "Unknown error"

    def test_to_call_error_keeps_details(self):
        err = to_call_error({"code": 31000, "message": "boom", "twilioError": "x"},
                            ErrorKind.DEVICE_ERROR)
        assert err.kind == ErrorKind.DEVICE_ERROR
        assert err.code == 31000
        assert err.message == "boom"
        assert err.details == {"twilioError": "x"}
