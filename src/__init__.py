"""DTEFlow - electronic tax document (DTE) processing service.

Architecture Overview:
- **API Layer**: FastAPI adapter exposing the pipeline and monthly tax summaries
- **Core Layer**: Configuration, logging, tracing, exceptions and redaction
- **Pipeline Layer**: The validate, sign, transmit, contingency and tax stages
  driven by an explicit state machine
- **Infrastructure Layer**: PostgreSQL stores and HTTP clients for the
  signing service and the tax authority

The pipeline only talks to its collaborators through protocols, so it runs
unchanged against the SQL/HTTP implementations or in-memory ones.
"""
