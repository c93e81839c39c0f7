"""HTTP API - FastAPI app exposing the chat endpoint and its event stream."""
