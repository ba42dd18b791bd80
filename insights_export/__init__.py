"""
Insights export package.
Exports Facebook ad insights into Google Sheets, on demand or on a schedule.
"""

from dotenv import load_dotenv

# Load .env file if it exists (local development)
load_dotenv()

__version__ = "1.0.0"
