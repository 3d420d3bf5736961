"""
Hugging Face Spaces entry point for the Legal Assistant API.
Spaces launches this file; locally prefer `python cli.py serve`.
"""
import os

# Model cache baked into the container image by preload_model.py
hf_cache = os.environ.get("HF_HOME", "/app/.hf_cache")
os.environ["HF_HOME"] = hf_cache

# Spaces routes traffic to port 7860
PORT = int(os.environ.get("PORT", "7860"))

from legal_assistant.server.main import app

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
