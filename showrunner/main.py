"""
Showrunner - Main Entry Point
Serves the generation API with uvicorn.
"""

import os

import uvicorn
from dotenv import load_dotenv


# Load environment variables
load_dotenv()


def main():
    """Main entry point."""
    host = os.getenv("SHOWRUNNER_HOST", "0.0.0.0")
    port = int(os.getenv("SHOWRUNNER_PORT", "8000"))
    print(f"Starting Showrunner API on {host}:{port}")
    uvicorn.run("showrunner.app:app_from_env", host=host, port=port, factory=True)


if __name__ == "__main__":
    main()
