"""
Flask application factory and server entry-point.
"""

import os
import sys
import traceback

from flask import Flask
from flask_cors import CORS

from clinicapi.config import API_PREFIX, TOKEN_EXPIRY_HOURS
from clinicapi.database import create_schema, init_engine
from clinicapi.api.routes import register_routes


def create_app(engine=None):
    """
    Build and return a fully configured Flask application.

    When *engine* is omitted one is created from DB_URI.
    """
    app = Flask(__name__)
    app.json.sort_keys = False
    CORS(app)

    # ── Initialise shared resources ──────────────────────────────────
    try:
        if engine is None:
            print("[init] Initializing database connection...")
            engine = init_engine()

        print("[init] Ensuring tables exist...")
        create_schema(engine)

        print("[init] ✓ API server ready")
    except Exception as e:
        print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, engine)

    return app


def main():
    """Run the development server."""
    print("=" * 60)
    print("Clinic Management – REST API Server")
    print("=" * 60)

    app = create_app()

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    debug = os.getenv("FLASK_ENV") == "development"

    base = f"http://{host}:{port}{API_PREFIX}"
    print(f"\n[server] Starting Flask API on {host}:{port}")
    print(f"[server] Debug mode: {debug}")
    print(f"[server] CORS enabled: True")
    print(f"[server] Token expiry: {TOKEN_EXPIRY_HOURS} hours")
    print("\nAPI Endpoints:")
    print(f"  - GET/POST        {base}/treatments")
    print(f"  - GET/PUT/DELETE  {base}/treatments/<id>")
    print(f"  - POST            {base}/treatments/<id>/calculate-fees")
    print(f"  - GET             {base}/treatments/stats/clinic[/<clinicId>]")
    print(f"  - GET             {base}/treatments/clinic[/<clinicId>]/with-calculations")
    print(f"  - GET/POST        {base}/diagnoses")
    print(f"  - GET/PUT/DELETE  {base}/diagnoses/<id>")
    print(f"  - GET/POST        {base}/assistants")
    print(f"  - GET             {base}/assistants/option")
    print(f"  - GET             {base}/assistants/employment/<type>")
    print(f"  - GET/PUT/DELETE  {base}/assistants/<id>")
    print(f"  - PATCH           {base}/assistants/<id>/status")
    print(f"  - GET             http://{host}:{port}/health")
    print("\n" + "=" * 60)

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
