"""Certification cache synchronisation and PEP compliance evaluation."""
