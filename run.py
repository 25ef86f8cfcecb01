#!/usr/bin/env python3
"""
Banking Demo Entry Point

Starts the FastAPI server with settings from BANKING_* environment variables.
"""

import sys

from banking_demo.api.server import run_server
from banking_demo.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("🏦 Starting Banking Demo...")
    print("🔒 Audit trail active" if config.enable_audit_logging else "⚠️  Audit trail disabled")
    print("💰 All monetary values use Decimal precision")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug="--reload" in sys.argv)
    except KeyboardInterrupt:
        print("\n👋 Shutting down Banking Demo...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
