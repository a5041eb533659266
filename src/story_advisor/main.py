# src/story_advisor/main.py
from dotenv import load_dotenv
load_dotenv()
import asyncio
import logging
import argparse

from quart import Quart
from quart_cors import cors
import hypercorn.asyncio
from hypercorn.config import Config

from story_advisor.core.config import APP_CONFIG

# --- Logging Setup ---
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

root_logger = logging.getLogger()
root_logger.handlers.clear()
root_logger.addHandler(handler)
root_logger.setLevel(logging.INFO)

app_logger = logging.getLogger("quart.app")
app_logger.setLevel(getattr(logging, APP_CONFIG.LOG_LEVEL, logging.INFO))
app_logger.addHandler(handler)
app_logger.propagate = False # Prevent duplicate messages in the root logger

logging.getLogger("hypercorn.access").propagate = False
logging.getLogger("hypercorn.error").propagate = False
# --- End Logging Setup ---


def create_app():
    from story_advisor.api.routes import story_advisor_bp
    from story_advisor.context_window.budget import load_model_context_windows
    from story_advisor.context_window.context_builder import StructureCache

    app = Quart(__name__)
    app = cors(app, allow_origin="*")

    # Per-app state; the context builder itself holds none
    app.extensions["story_advisor"] = {
        "context_windows": load_model_context_windows(APP_CONFIG.MODEL_CONTEXT_WINDOWS_FILE),
        "structure_cache": StructureCache(APP_CONFIG.STRUCTURE_CACHE_MAX_ENTRIES),
    }

    app.register_blueprint(story_advisor_bp, url_prefix="/api")

    @app.route('/health')
    async def health():
        cache = app.extensions["story_advisor"]["structure_cache"]
        return {"status": "ok", "structure_cache": cache.get_status()}

    return app


async def main(args):
    app = create_app()
    config = Config()
    config.bind = [f"{args.host}:{args.port}"]
    config.accesslog = None
    config.errorlog = None
    app_logger.info(f"Story advisor service starting on http://{args.host}:{args.port}")
    await hypercorn.asyncio.serve(app, config)


def run():
    parser = argparse.ArgumentParser(description="Run the Story Advisor context service.")
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host address to bind the server to. Use '0.0.0.0' for Docker."
    )
    parser.add_argument(
        "--port",
        type=int,
        default=5050,
        help="Port to bind the server to."
    )
    args = parser.parse_args()

    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        print("\nServer shut down.")


if __name__ == "__main__":
    run()
