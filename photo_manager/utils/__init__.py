"""
Utility package: logging, metrics, retry, circuit breaker, locks, security.
"""
