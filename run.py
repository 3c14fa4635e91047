"""
RUN SCRIPT - Start the LifeEase reference backend
=================================================

PURPOSE:
  Starts the echo backend (lifeease.devserver) so the client, the console and
  the history verification harness have something to talk to locally.

WHAT IT DOES:
  - Runs lifeease.devserver:app with uvicorn on DEVSERVER_HOST:DEVSERVER_PORT
    (default 0.0.0.0:8000, matching the client's default API_BASE_URL).
  - reload=True means any change to Python files will restart the server.

USAGE:
  python run.py

  Then run the console client in another terminal: python console.py
  API docs: http://localhost:8000/docs
"""

import uvicorn

from config import DEVSERVER_HOST, DEVSERVER_PORT

# ------------------------------------------------------------------------------
# ENTRY POINT
# ------------------------------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run(
        "lifeease.devserver:app",
        host=DEVSERVER_HOST,
        port=DEVSERVER_PORT,
        reload=True
    )
