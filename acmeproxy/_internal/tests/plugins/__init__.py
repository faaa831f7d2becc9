"""acmeproxy provider tests."""
