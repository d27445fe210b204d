# run.py
import uvicorn
import os
import logging

logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s [%(levelname)s] Runner: %(message)s')

if __name__ == "__main__":
    app_module_str = "site_sentinel.main:app"
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    reload_flag = os.getenv("DEV_MODE", "false").lower() == "true"
    reload_dirs = [os.path.dirname(
        os.path.abspath(__file__))] if reload_flag else None

    print("=" * 60)
    print("   Starting Site Sentinel Dashboard")
    print("=" * 60)
    logging.info(f"Loading ASGI app from: {app_module_str}")
    logging.info(f"Server will run on: http://{host}:{port}")
    logging.info(f"Auto-reload enabled: {reload_flag}")
    if not os.getenv("API_KEY"):
        logging.warning("API_KEY not set; AI vulnerability scans are unavailable.")
    print("=" * 60)

    try:
        uvicorn.run(
            app_module_str,
            host=host,
            port=port,
            reload=reload_flag,
            reload_dirs=reload_dirs,
            log_level="info",
        )
    except ImportError as e:
        logging.error(
            f"ImportError: Could not import ASGI app '{app_module_str}'. Check file structure and imports.")
        logging.error(f"Details: {e}")
