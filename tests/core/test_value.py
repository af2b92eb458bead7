"""Tests for Value — single configuration expressions."""

import pytest

from cfgate.core.config import Config
from cfgate.core.value import Value


class TestValue:
    def test_resolve_simple_key(self):
        config = Config({"app": {"security": {"error": {"message": "denied"}}}})
        assert Value("${app.security.error.message}").resolve(config) == "denied"

    def test_resolve_with_default(self):
        assert Value("${app.missing.key:fallback}").resolve(Config({})) == "fallback"

    def test_resolve_missing_no_default_raises(self):
        with pytest.raises(KeyError, match="app.missing.key"):
            Value("${app.missing.key}").resolve(Config({}))

    def test_resolve_literal_string(self):
        assert Value("literal-value").resolve(Config({})) == "literal-value"

    def test_resolve_empty_default(self):
        assert Value("${app.key:}").resolve(Config({})) == ""

    def test_resolve_int_value(self):
        config = Config({"cfgate": {"server": {"port": 8888}}})
        assert Value("${cfgate.server.port}").resolve(config) == 8888

    def test_default_may_contain_colons(self):
        value = Value("${app.security.localhost.ipv6:0:0:0:0:0:0:0:1}")
        assert value.resolve(Config({})) == "0:0:0:0:0:0:0:1"
        assert value.key == "app.security.localhost.ipv6"

    def test_key_and_expression(self):
        val = Value("${app.allowed.origins}")
        assert val.expression == "${app.allowed.origins}"
        assert val.key == "app.allowed.origins"
        assert Value("literal").key is None
