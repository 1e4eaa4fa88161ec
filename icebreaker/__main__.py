"""Serve the API with uvicorn: `python -m icebreaker` or `icebreaker-api`"""

import uvicorn

from .config import HOST, PORT, WEB_CONCURRENCY


def main():
    uvicorn.run("icebreaker.main:app", host=HOST, port=PORT, workers=WEB_CONCURRENCY, proxy_headers=True)


if __name__ == "__main__":
    main()
