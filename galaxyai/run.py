"""GalaxyAI: standalone entry point.

Usage:
    python -m galaxyai.run
"""

import sys


def main():
    from galaxyai.backend.config import HOST, PORT
    from galaxyai.backend.main import configure_logging

    configure_logging()

    url = f"http://{HOST}:{PORT}"
    print("=" * 56)
    print("  GalaxyAI command server")
    print(f"  Server: {url}")
    print(f"  Docs:   {url}/docs")
    print("=" * 56)
    print()

    import uvicorn
    uvicorn.run(
        "galaxyai.backend.main:app",
        host=HOST,
        port=PORT,
        log_level="info",
    )


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:
        print()
        print(f"[ERROR] {exc}")
        print()
        sys.exit(1)
