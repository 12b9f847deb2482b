"""
Startup script for the fixloop backend.

Run this instead of 'uvicorn main:app' so the event loop policy and logging
are set up before anything imports Playwright.
"""

import sys
import os
import asyncio
import logging

# Force unbuffered output
os.environ['PYTHONUNBUFFERED'] = '1'

# Playwright and dev-server subprocesses need the Proactor loop on Windows
if sys.platform == 'win32':
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    host = os.getenv("FIXLOOP_HOST", "127.0.0.1")
    port = int(os.getenv("FIXLOOP_PORT", "8000"))

    print(f"\n Starting fixloop backend on http://{host}:{port}", flush=True)
    print(f" API Docs available at: http://{host}:{port}/docs", flush=True)
    print("\n" + "="*50, flush=True)

    # Shutdown (Ctrl+C / SIGTERM) runs the app lifespan, which closes the
    # browser and stops the dev server.
    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=False,
        log_level="info",
        access_log=True
    )
