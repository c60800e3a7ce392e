"""Shared constants for tests."""

TEST_MASTER_KEY = "0f" * 32
TEST_TOKEN = "secret_" + "a" * 43
TEST_APP = "admintool"
TEST_WORKSPACE = "ws-123"
