"""acmeproxy built-in providers."""
