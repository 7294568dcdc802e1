#!/usr/bin/env python3
"""
Loan Management System Entry Point

Starts the FastAPI server on the configured host and port (3000 by default).
"""

import sys

import uvicorn

from loan_management.config import get_config


def run_server(host: str, port: int, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "loan_management.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )


if __name__ == "__main__":
    config = get_config()

    print("🏦 Starting Loan Management System...")
    print(f"💾 Storage: {config.database_url}")
    print("🔒 Audit trail active")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        print("\n👋 Shutting down Loan Management System...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
