"""
statesize Example - Find out which keys make your responses heavy

Key Features Demonstrated:
- One-line setup with start_logging()
- Per-key breakdown of every response body, logged through stdlib logging
- Ad-hoc breakdown of any dict with breakdown_report()

Run:
    uvicorn example:app --reload

Then:
    curl http://localhost:8000/dashboard
"""

import logging

from fastapi import FastAPI

from statesize import StateSizeSettings, breakdown_report
from statesize.lifecycle import start_logging

logging.basicConfig(level=logging.INFO)

app = FastAPI(title="statesize example")

# Must run before routes are declared
start_logging(app, StateSizeSettings(tag="example.state", priority=logging.INFO, depth=2))


@app.get("/dashboard")
async def dashboard() -> dict:
    return {
        "user": {"id": 42, "name": "Ada", "preferences": {"theme": "dark", "lang": "en"}},
        "notifications": [f"notification {i}" for i in range(200)],
        "cursor": None,
    }


if __name__ == "__main__":
    state = {"title": "report", "rows": [list(range(20)) for _ in range(50)]}
    print(breakdown_report(state))
