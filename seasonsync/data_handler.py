import json
import logging
from pathlib import Path
from typing import Any, Optional
import pandas as pd
import requests

from . import settings
from . import utils
from .schemas import ImportSummary, Record

logger = logging.getLogger(__name__)


def save_outputs(records: list[Record], base_name: str, output_dir: Optional[Path] = None) -> dict[str, Path]:
    """Saves records to CSV and JSON, with dated filenames. Columns use the store's names."""
    output_dir = Path(output_dir or settings.OUTPUT_DIR)
    output_dir.mkdir(parents=True, exist_ok=True)
    date_suffix = utils.get_date_suffix_for_filename()

    csv_path = output_dir / f"{base_name}_{date_suffix}.csv"
    json_path = output_dir / f"{base_name}_{date_suffix}.json"

    rows = [item.to_row() for item in records]
    pd.DataFrame(rows).to_csv(csv_path, index=False)
    logger.info(f"✅ CSV saved to: {csv_path}")

    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(rows, f, indent=2, default=str)
    logger.info(f"✅ JSON saved to: {json_path}")

    return {"csv": csv_path, "json": json_path}


def post_to_webhook(summary: ImportSummary, metadata: Optional[dict[str, Any]] = None) -> bool:
    """
    Posts the import summary to the webhook. A failed post is logged and
    never fails the import.
    """
    if not settings.WEBHOOK_URL:
        logger.info("⚠️ WEBHOOK_URL not set. Skipping webhook post.")
        return False

    logger.info(f"🚀 Posting {summary.import_type} summary to webhook")

    payload = {
        "importSummary": summary.model_dump(mode="json"),
        "metadata": metadata or {},
    }

    try:
        response = requests.post(settings.WEBHOOK_URL, json=payload, timeout=15)
        response.raise_for_status()
        logger.info("✅ Summary successfully posted to webhook.")
        return True
    except requests.exceptions.RequestException as e:
        logger.error(f"❌ Error posting to webhook: {e}")
        return False
