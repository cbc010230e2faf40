"""Static security scanner."""
from deployguard.engine.scanner.build_check import BuildChecker, BuildCheckReport
from deployguard.engine.scanner.security_scanner import SecurityScanner

__all__ = ["BuildChecker", "BuildCheckReport", "SecurityScanner"]
