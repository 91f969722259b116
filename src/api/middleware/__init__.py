"""HTTP middleware and exception handlers.

- **RequestContextMiddleware**: Correlation IDs and one access log line per request
- **error_handler**: Uniform ``ErrorResponse`` bodies for raised exceptions
"""
