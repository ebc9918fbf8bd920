"""Shared pytest configuration."""

pytest_plugins = ["pytest_http_fixture"]
