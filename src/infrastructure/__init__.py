"""Concrete collaborators for the pipeline.

- **database**: SQLAlchemy models, session management and repositories
- **stores**: SQL implementations of the credential, document and
  accumulator stores
- **clients**: httpx clients for the signing service and the tax authority
"""
