import os
from dotenv import load_dotenv
load_dotenv()
# ---- Bitquery ----
BITQUERY_OAUTH_TOKEN = os.environ.get("BITQUERY_OAUTH_TOKEN")
BITQUERY_ENDPOINT = os.environ.get("BITQUERY_ENDPOINT", "https://asia.graphql.bitquery.io")

BITQUERY_TIMEOUT_SEC = float(os.environ.get("BITQUERY_TIMEOUT_SEC", "60"))
BITQUERY_MAX_RETRIES = int(os.environ.get("BITQUERY_MAX_RETRIES", "5"))
BITQUERY_BACKOFF_SEC = float(os.environ.get("BITQUERY_BACKOFF_SEC", "0.8"))   # linear: base * attempt
BITQUERY_PAGE_SIZE = int(os.environ.get("BITQUERY_PAGE_SIZE", "100"))         # reduce if queries are heavy

# ---- Paging ----
INTER_PAGE_SLEEP_SEC = float(os.environ.get("INTER_PAGE_SLEEP_SEC", "0.2"))
MAX_PAGES = int(os.environ.get("MAX_PAGES", "4"))     # 0 = unlimited

# ---- Graph limits ----
NODE_CAP = int(os.environ.get("BUBBLEMAP_NODE_CAP", "300"))
EDGE_CAP = int(os.environ.get("BUBBLEMAP_EDGE_CAP", "1000"))

UNKNOWN_SENDER = "UNKNOWN_SENDER"
UNKNOWN_RECEIVER = "UNKNOWN_RECEIVER"

# ----- Inputs / outputs -----
DEFAULT_SINCE = os.environ.get("BUBBLEMAP_DEFAULT_SINCE", "2025-09-24")
OUTPUT_DIR = os.environ.get("BUBBLEMAP_OUTPUT_DIR", "out")

# Line in the visualization template that loads the graph; replaced with inline data.
TEMPLATE_DATA_PLACEHOLDER = "const data = await fetch('./bubblemap.json').then(r => r.json());"
