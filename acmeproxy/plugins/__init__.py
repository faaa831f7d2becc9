"""acmeproxy provider plugins."""
