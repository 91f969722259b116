"""DTE processing pipeline: validate, sign, transmit, contingency, tax."""
