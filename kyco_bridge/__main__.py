import os

from dotenv import load_dotenv

from kyco_bridge.cli.commands import app

# Load .env file from ~/.kyco/ if it exists
# Precedence: existing env vars > .env file (override=False)
load_dotenv(os.path.expanduser("~/.kyco/.env"), override=False)

if __name__ == "__main__":
    app()
