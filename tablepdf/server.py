"""
Table PDF Export Server - Flask API around the export service
=============================================================

Endpoints:
  - GET  /
  - GET  /health
  - POST /api/export/table   {tableHtml, filename?, options?}

``options`` may be an object or a JSON-encoded string. Error bodies are
``{"error": ..., "details": ...}``; ``details`` is omitted in production.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from tablepdf.config import configure_logging, get_settings
from tablepdf.errors import ParseError, TableExportError
from tablepdf.service import TableExportService, get_export_service

logger = logging.getLogger(__name__)

EXPORT_FAILED = 'Failed to generate PDF'


def _parse_options(raw: Any) -> Any:
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        return json.loads(text)
    return raw


def create_app(service: TableExportService | None = None) -> Flask:
    app = Flask(__name__)
    CORS(app)

    def export_service() -> TableExportService:
        return service or get_export_service()

    def error_response(message: str, exc: Exception, status: int):
        payload: dict[str, Any] = {'error': message}
        if not export_service().settings.is_production:
            payload['details'] = str(exc)
        return jsonify(payload), status

    @app.route('/', methods=['GET'])
    def index():
        return jsonify(
            {
                'service': export_service().settings.app_name,
                'endpoints': {
                    'export': 'POST /api/export/table',
                    'health': 'GET /health',
                },
            }
        )

    @app.route('/health', methods=['GET'])
    def health():
        current = export_service()
        backends = current.backend_status()
        healthy = any(item['enabled'] and item['available'] for item in backends.values())
        payload = {
            'status': 'ok' if healthy else 'degraded',
            'backends': backends,
            'fonts': current.fonts.describe(),
        }
        return jsonify(payload), (200 if healthy else 503)

    @app.route('/api/export/table', methods=['POST'])
    def export_table_endpoint():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({'error': 'Invalid JSON request'}), 400

        table_html = data.get('tableHtml')
        if not isinstance(table_html, str) or not table_html.strip():
            return jsonify({'error': 'Table HTML is required'}), 400

        try:
            options = _parse_options(data.get('options'))
        except json.JSONDecodeError as exc:
            return error_response(EXPORT_FAILED, exc, 400)

        try:
            result = export_service().export(table_html, data.get('filename'), options)
        except ParseError as exc:
            logger.info('Rejected table export: %s', exc)
            return error_response(EXPORT_FAILED, exc, 400)
        except TableExportError as exc:
            logger.error('Table export failed: %s', exc)
            return error_response(EXPORT_FAILED, exc, 500)
        except Exception as exc:
            logger.exception('Unexpected error during table export')
            return error_response(EXPORT_FAILED, exc, 500)

        response = Response(result.pdf_bytes, mimetype='application/pdf')
        response.headers['Content-Disposition'] = result.content_disposition
        response.headers['Content-Length'] = str(len(result.pdf_bytes))
        response.headers['X-Render-Backend'] = result.backend
        return response

    return app


def run_server(host: str | None = None, port: int | None = None) -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    app = create_app()
    bind_host = host or settings.server_host
    bind_port = port or settings.server_port
    logger.info('Starting %s on http://%s:%s', settings.app_name, bind_host, bind_port)
    app.run(host=bind_host, port=bind_port, debug=False, threaded=True)


if __name__ == '__main__':
    run_server()
