"""FastAPI surface for the CAPM Studio workspace."""
