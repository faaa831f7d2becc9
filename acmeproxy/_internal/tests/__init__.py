"""acmeproxy tests."""
