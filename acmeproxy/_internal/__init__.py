"""Modules internal to acmeproxy.

This package contains modules that are not considered part of
acmeproxy's public API. They may be changed without updating
acmeproxy's major version.

"""
