"""
core/email_validator.py -- Email address checks run before any passcode is issued.

Two checks, in order:
  1. Shape: local@domain with a dot in the domain -> invalid_email_format
  2. Domain: at least one MX record              -> invalid_email_domain

The MX lookup goes through a resolver collaborator so tests can inject a
fake. DnsMxResolver is the production implementation (dnspython). Every DNS
failure -- NXDOMAIN, no answer, timeout, no nameservers, no resolv.conf -- is
treated as "no MX records". The validator fails closed and never raises.

Layer rule: no imports from api/, auth/, or tracking/.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

import dns.exception
import dns.resolver

from core.errors import CheckResult

logger = logging.getLogger("tracker.email")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class MxResolver(Protocol):
    def resolve_mx(self, domain: str) -> list[str]: ...


class DnsMxResolver:
    """Resolve MX hosts with dnspython, bounded by a total lifetime in seconds."""

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout

    def resolve_mx(self, domain: str) -> list[str]:
        try:
            resolver = dns.resolver.Resolver()
            answer = resolver.resolve(domain, "MX", lifetime=self.timeout)
        except dns.exception.DNSException as e:
            logger.warning("MX lookup failed for %s: %s", domain, e.__class__.__name__)
            return []
        return [str(rdata.exchange).rstrip(".") for rdata in answer]


def is_valid_email_format(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


class EmailValidator:
    """Composes the shape check and the MX check into one validate() call."""

    def __init__(self, resolver: MxResolver) -> None:
        self.resolver = resolver

    def domain_has_mx(self, email: str) -> bool:
        domain = email.rsplit("@", 1)[-1]
        if not domain:
            return False
        try:
            return len(self.resolver.resolve_mx(domain)) > 0
        except Exception:
            # Injected resolvers may raise anything; an unknown domain state
            # must still reject the address.
            logger.exception("MX resolver raised for domain %s", domain)
            return False

    def validate(self, email: str) -> CheckResult:
        if not is_valid_email_format(email):
            return CheckResult.failed("invalid_email_format")
        if not self.domain_has_mx(email):
            return CheckResult.failed("invalid_email_domain")
        return CheckResult.passed()
