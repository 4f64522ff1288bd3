"""Use-cases and upstream clients; FastAPI-free so they can be tested directly."""
