"""
Flask application exposing the report sync as an HTTP-triggered function.

    OPTIONS /sync-sales-data   → 200, empty body (CORS preflight)
    any other method           → runs the sync
        200 {"success": true, "message": ...}
        500 {"success": false, "error": ...}

The request body is ignored: what gets synced is fixed by configuration.
"""

import logging
import os
from typing import Callable, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from salesync.common import SyncConfig, setup_logging
from salesync.datalayer import SyncResult, run_sync


logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = ['authorization', 'x-client-info', 'apikey', 'content-type']
SYNC_ROUTES = (('/', 'sync_root'), ('/sync-sales-data', 'sync_sales_data'))
# Every method but OPTIONS triggers a sync; HEAD comes with GET
SYNC_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']


def create_app(
    config: Optional[SyncConfig] = None,
    runner: Optional[Callable[[SyncConfig], SyncResult]] = None
) -> Flask:
    """
    Create Flask application.

    Args:
        config: SyncConfig; loaded from the environment per request when None
        runner: Callable performing the sync (defaults to run_sync)

    Returns:
        Flask application
    """
    app = Flask(__name__)
    CORS(app, origins='*', send_wildcard=True, allow_headers=CORS_ALLOW_HEADERS)

    app.sync_config = config
    app.sync_runner = runner or run_sync

    def sync_sales_data():
        """Run the full sync; any failure becomes a 500 response."""
        if request.method == 'OPTIONS':
            return '', 200

        try:
            config = app.sync_config or SyncConfig.from_env()
            result = app.sync_runner(config)
        except Exception as e:
            logger.exception(f"Sync failed: {e}")
            return jsonify({'success': False, 'error': str(e)}), 500

        return jsonify({
            'success': True,
            'message': 'Data synchronized successfully',
            'header_id': result.header_id,
            'rows_inserted': result.rows_inserted,
        }), 200

    for rule, endpoint in SYNC_ROUTES:
        app.add_url_rule(
            rule,
            endpoint=endpoint,
            view_func=sync_sales_data,
            methods=SYNC_METHODS,
            provide_automatic_options=False,
        )

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    return app


def run_app(host='0.0.0.0', port=5000, debug=False):
    """Run the Flask application."""
    from dotenv import load_dotenv
    load_dotenv()

    setup_logging(os.getenv('LOG_LEVEL', 'INFO'))

    app = create_app()

    host = os.getenv('FLASK_HOST', host)
    port = int(os.getenv('FLASK_PORT', port))
    debug = os.getenv('FLASK_DEBUG', str(debug)).lower() == 'true'

    app.run(host=host, port=port, debug=debug)


if __name__ == '__main__':
    run_app(debug=True)
