import logging
import requests
import time
import os

logging.basicConfig(level=logging.INFO)

ES_HOST = os.getenv("ES_HOST", "http://elasticsearch:9200")
POLL_SECONDS = 5


def wait_for_elasticsearch(timeout_s: float | None = None):
    url = f"{ES_HOST}/_cluster/health"
    logging.info(f"Waiting for Elasticsearch at {url}...")
    deadline = time.monotonic() + timeout_s if timeout_s else None
    while True:
        try:
            response = requests.get(url, timeout=1)
            if response.status_code == 200 and response.json().get("status") in [
                "green",
                "yellow",
            ]:
                logging.info("Elasticsearch is healthy!")
                return
        except requests.exceptions.RequestException:
            pass
        if deadline is not None and time.monotonic() >= deadline:
            raise TimeoutError(f"Elasticsearch at {ES_HOST} not healthy after {timeout_s}s")
        logging.info("Waiting for Elasticsearch...")
        time.sleep(POLL_SECONDS)


if __name__ == "__main__":
    limit = os.getenv("ES_WAIT_TIMEOUT_S")
    wait_for_elasticsearch(float(limit) if limit else None)
