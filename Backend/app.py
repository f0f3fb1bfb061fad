from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
import logging
import time

from config.settings import load_settings
from ledger_services.crypto import to_iso
from ledger_services.errors import InvalidInput, LedgerServiceError, NotFound
from ledger_services.ledger_reader import LedgerReader
from ledger_services.pipeline import DEFAULT_HISTORY_LIMIT, DEFAULT_STATS_LIMIT, ReadingPipeline

logger = logging.getLogger(__name__)


def parse_int_param(name, default, message=None):
    """Reads an integer query parameter, falling back to ``default`` when absent."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidInput(message or f"Invalid {name} parameter") from None


def failure(e, error):
    """Maps a pipeline error to its JSON body and status code."""
    if isinstance(e, InvalidInput):
        return jsonify({"error": str(e)}), 400
    if isinstance(e, NotFound):
        return jsonify({"error": e.error, "message": str(e)}), 404
    return jsonify({"error": error, "message": str(e)}), e.status_code


def create_app(settings=None, reader=None):
    """
    Builds the Flask app. The settings, key and ledger reader are created
    once here and shared read-only by every request.
    """
    if settings is None:
        settings = load_settings()
    if reader is None:
        reader = LedgerReader.from_settings(settings)

    pipeline = ReadingPipeline(reader, settings.encryption_key)
    started_at = time.monotonic()

    app = Flask(__name__)

    # CORS configuration
    CORS(app,
         origins=list(settings.allowed_origins),
         supports_credentials=True,
         methods=["GET", "POST", "OPTIONS"],
         allow_headers=["Content-Type", "Authorization"])

    # --- Flask Routes ---

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({
            "status": "ok",
            "timestamp": to_iso(time.time()),
            "uptime": time.monotonic() - started_at,
        })

    @app.route('/api/test', methods=['GET'])
    def ledger_test():
        """Checks the ledger connection and echoes the active configuration."""
        try:
            blockchain = reader.describe()
        except LedgerServiceError as e:
            logger.error("[API] Ledger test failed: %s", e)
            return jsonify({
                "status": "error",
                "message": "Blockchain connection failed",
                "error": str(e),
            }), 500

        return jsonify({
            "status": "ok",
            "message": "API is working correctly",
            "blockchain": blockchain,
            "cors": {"allowedOrigins": list(settings.allowed_origins)},
            "timestamp": to_iso(time.time()),
        })

    @app.route('/api/readings/latest/decrypt', methods=['GET'])
    def latest_reading():
        logger.info("[API] Fetching latest reading...")
        try:
            reading = pipeline.get_latest()
        except LedgerServiceError as e:
            logger.error("[API] Error in /api/readings/latest/decrypt: %s", e)
            return failure(e, "Failed to fetch and decrypt latest reading")

        logger.info("[API] Latest reading decrypted (block %s)", reading.block_number)
        return jsonify(reading.to_json())

    @app.route('/api/readings/<index>/decrypt', methods=['GET'])
    def reading_at(index):
        try:
            if not (index.isascii() and index.isdigit()):
                raise InvalidInput("Invalid index parameter")
            reading_index = int(index)

            logger.info("[API] Fetching reading at index %s...", reading_index)
            reading = pipeline.get_reading(reading_index)
        except LedgerServiceError as e:
            logger.error("[API] Error in /api/readings/%s/decrypt: %s", index, e)
            return failure(e, "Failed to fetch and decrypt reading")

        return jsonify(reading.to_json())

    @app.route('/api/readings/history', methods=['GET'])
    def reading_history():
        try:
            limit = parse_int_param('limit', DEFAULT_HISTORY_LIMIT, "Limit must be between 1 and 100")
            offset = parse_int_param('offset', 0)

            logger.info("[API] Fetching history: limit=%s, offset=%s", limit, offset)
            page = pipeline.history(limit=limit, offset=offset)
        except LedgerServiceError as e:
            logger.error("[API] Error in /api/readings/history: %s", e)
            return failure(e, "Failed to fetch history")

        logger.info("[API] Successfully fetched %s of %s readings", page.returned, page.total)
        return jsonify(page.to_json())

    @app.route('/api/readings/count', methods=['GET'])
    def reading_count():
        try:
            total = pipeline.count()
        except LedgerServiceError as e:
            logger.error("[API] Error in /api/readings/count: %s", e)
            return failure(e, "Failed to get reading count")

        return jsonify({"total": total})

    @app.route('/api/readings/stats', methods=['GET'])
    def reading_stats():
        try:
            limit = parse_int_param('limit', DEFAULT_STATS_LIMIT)

            logger.info("[API] Calculating stats for last %s readings...", limit)
            stats = pipeline.stats(limit=limit)
        except LedgerServiceError as e:
            logger.error("[API] Error in /api/readings/stats: %s", e)
            return failure(e, "Failed to calculate stats")

        return jsonify(stats.to_json())

    # --- Fallback handlers ---

    @app.errorhandler(404)
    @app.errorhandler(405)
    def endpoint_not_found(e):
        return jsonify({"error": "Endpoint not found"}), 404

    @app.errorhandler(Exception)
    def unhandled_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("[API] Unhandled error")
        return jsonify({"error": "Internal server error", "message": str(e)}), 500

    return app


def main():
    settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    app = create_app(settings)

    print("🚀 Starting Ledger Read API...")
    print(f"📡 Server: http://{settings.host}:{settings.port}")
    print(f"🔗 RPC: {settings.rpc_url}")
    print(f"📝 Contract: {settings.contract_address}")
    print(f"🌐 CORS Origins: {', '.join(settings.allowed_origins)}")

    app.run(host=settings.host, port=settings.port, debug=settings.debug)


if __name__ == '__main__':
    main()
