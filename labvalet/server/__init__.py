"""LabValet HTTP server (FastAPI). Start with ``labvalet-server``."""
