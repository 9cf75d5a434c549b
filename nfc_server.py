"""
HTTP bridge for reading and writing JSON to NFC tags
Routes keep the original service's paths: POST /nfcWrite, GET /nfcRead
"""

import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from nfc_errors import NFCTagError
from session_registry import SessionRegistry
from tag_operations import read_payload, write_payload

logger = logging.getLogger(__name__)


def create_app(registry: SessionRegistry, strict_reads: bool = False) -> Flask:
    app = Flask(__name__)
    app.config["NFC_REGISTRY"] = registry
    app.config["NFC_STRICT_READS"] = strict_reads
    CORS(app, resources={r"/*": {"origins": "*"}})

    @app.errorhandler(NFCTagError)
    def handle_tag_error(error: NFCTagError):
        logger.error(f"{request.method} {request.path} failed: {error.kind}: {error}")
        return jsonify(error.to_dict()), error.status

    @app.route("/nfcWrite", methods=["POST"])
    def nfc_write():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({
                "error": "BadRequest",
                "message": "Request body must be a JSON object.",
            }), 400

        blocks = write_payload(registry, data)
        return jsonify({
            "message": "Data successfully written to NFC tag",
            "blocks": blocks,
        }), 200

    @app.route("/nfcRead", methods=["GET"])
    def nfc_read():
        data = read_payload(registry, strict=app.config["NFC_STRICT_READS"])
        return jsonify({"data": data}), 200

    @app.route("/status", methods=["GET"])
    def status():
        return jsonify(registry.snapshot()), 200

    return app
