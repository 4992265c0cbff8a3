import json
import logging

from deprivare.common.errors import MalformedValue, StoreNotFound, UnknownDataset
from deprivare.common.ids import generate_run_id
from deprivare.common.logging import JsonLineFormatter, build_logger
from deprivare.common.time_utils import utc_timestamp_iso


def test_generate_run_id_prefix():
    assert generate_run_id().startswith("run-")


def test_utc_timestamp_iso_has_offset():
    assert utc_timestamp_iso().endswith("+00:00")


def test_error_codes_are_stable():
    assert UnknownDataset("x").error_code == "UNKNOWN_DATASET"
    assert MalformedValue("x").error_code == "MALFORMED_VALUE"
    assert StoreNotFound("x").error_code == "STORE_NOT_FOUND"


def test_json_line_formatter_emits_fixed_fields():
    record = logging.LogRecord("deprivare", logging.INFO, __file__, 1, "import complete", None, None)
    record.dataset = "wales-imd-2019-ranks"
    record.rows_out = 3
    payload = json.loads(JsonLineFormatter().format(record))
    assert payload["dataset"] == "wales-imd-2019-ranks"
    assert payload["rows_out"] == 3
    assert payload["error_code"] is None
    assert payload["message"] == "import complete"


def test_build_logger_writes_json_lines_file(tmp_path):
    log_path = tmp_path / "logs" / "run.log.jsonl"
    logger = build_logger("run-test", log_path=log_path)
    logger.info("hello", extra={"event": "TEST"})
    for handler in logger.handlers:
        handler.flush()
    line = log_path.read_text(encoding="utf-8").splitlines()[0]
    assert json.loads(line)["event"] == "TEST"
