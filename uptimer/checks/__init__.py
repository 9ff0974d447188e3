"""Bundled checks: HTTP status, TLS certificate expiry, domain expiry."""

from .domain import DomainCheck, domain_check
from .expiry import classify_expiry
from .http import HttpCheck, http_check
from .ssl import SslCheck, ssl_check
