#!/usr/bin/env python3
"""
Development server runner for the TrustVault API
Includes auto-reload, logging, and environment checking
"""

import os
import sys
import uvicorn
from pathlib import Path

# Add the parent directory to Python path
sys.path.append(str(Path(__file__).parent.parent))

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

# The dev server reloads unless DEBUG is set explicitly
os.environ.setdefault("DEBUG", "true")


def check_environment():
    """Show the configuration the server will start with."""
    optional_vars = [
        "API_HOST",
        "API_PORT",
        "DEBUG",
        "SIMILARITY_THRESHOLD",
        "SHORT_TEXT_LENGTH",
        "EMBEDDING_MODEL_NAME",
        "EMBEDDING_DEVICES",
        "VECTOR_STORE_DIR",
        "REQUIRE_PLAGIARISM_CHECK",
    ]

    print("📋 Configuration:")
    for var in optional_vars:
        print(f"  {var}: {os.getenv(var, 'Not set (default)')}")

    try:
        threshold = float(os.getenv("SIMILARITY_THRESHOLD", 0.75))
    except ValueError:
        print("❌ SIMILARITY_THRESHOLD must be a number")
        return False
    if not 0.0 <= threshold <= 1.0:
        print("❌ SIMILARITY_THRESHOLD must be between 0.0 and 1.0")
        return False

    return True


def check_dependencies():
    """Check if all required dependencies are available."""
    required_modules = [
        "fastapi",
        "uvicorn",
        "multipart",
        "torch",
        "transformers",
        "numpy",
        "pydantic",
        "structlog"
    ]

    missing_modules = []
    for module in required_modules:
        try:
            __import__(module)
        except ImportError:
            missing_modules.append(module)

    if missing_modules:
        print(f"❌ Missing required Python modules: {', '.join(missing_modules)}")
        print("Please run: pip install -e .")
        return False

    print("✅ All required dependencies found")
    return True


def main():
    """Main entry point for development server."""
    print("🔐 TrustVault - Development Server")
    print("=" * 50)

    if not check_environment():
        sys.exit(1)

    if not check_dependencies():
        sys.exit(1)

    from trustvault import config

    host = config.API_HOST
    port = config.API_PORT
    debug = config.DEBUG

    print(f"\n🚀 Starting development server...")
    print(f"   Host: {host}")
    print(f"   Port: {port}")
    print(f"   Debug: {debug}")
    print(f"   Docs: http://{host}:{port}/docs")
    print("\n⏹️  Press Ctrl+C to stop the server")
    print("=" * 50)

    try:
        uvicorn.run(
            "trustvault.main:app",
            host=host,
            port=port,
            reload=debug,
            log_level="debug" if debug else "info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\n🛑 Server stopped by user")
    except Exception as e:
        print(f"\n❌ Server error: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
