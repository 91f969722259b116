"""HTTP adapter around the DTE pipeline.

- **main**: application factory and lifecycle
- **routes**: document processing and monthly summary endpoints
- **dependencies**: wiring of the pipeline to the SQL stores and HTTP clients
- **middleware**: correlation ids and error handlers
- **schemas**: request bodies and the error response format
"""
