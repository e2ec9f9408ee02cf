import logging
import unittest

from utils import logging_utils
from utils.logging_utils import (
    EnsureTagFilter,
    MaxLevelFilter,
    build_logging_config,
    get_tagged_logger,
    normalize_level,
)


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        self.records.append(record)


def _record(name="skyrisk.wind", level=logging.INFO):
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


class TestLoggingUtils(unittest.TestCase):
    def test_build_logging_config_has_expected_handlers_and_filters(self):
        cfg = build_logging_config(job_name="jobtest", level="debug")
        self.assertIn("stdout", cfg["handlers"])
        self.assertIn("stderr", cfg["handlers"])
        self.assertEqual(cfg["filters"]["job_name"]["job_name"], "jobtest")
        self.assertEqual(cfg["root"]["level"], "DEBUG")

    def test_default_job_name(self):
        cfg = build_logging_config()
        self.assertEqual(cfg["filters"]["job_name"]["job_name"], "skyrisk")

    def test_normalize_level(self):
        self.assertEqual(normalize_level(" warning"), "WARNING")
        self.assertEqual(normalize_level(""), "INFO")
        self.assertEqual(normalize_level(logging.DEBUG), logging.DEBUG)

    def test_get_tagged_logger_injects_tag_and_merges_extra(self):
        handler = _ListHandler()
        logger = get_tagged_logger("skyrisk.test_tag", tag="custom_tag")
        base_logger = logger.logger
        base_logger.setLevel(logging.DEBUG)
        base_logger.addHandler(handler)
        base_logger.propagate = False

        try:
            logger.info("hello world", extra={"hours": 24})
        finally:
            base_logger.removeHandler(handler)

        record = handler.records[-1]
        self.assertEqual(record.tag, "custom_tag")
        self.assertEqual(record.hours, 24)

    def test_tag_defaults_to_last_name_segment(self):
        logger = get_tagged_logger("skyrisk.visibility")
        self.assertEqual(logger.extra["tag"], "visibility")

    def test_filters(self):
        record = _record()
        EnsureTagFilter().filter(record)
        self.assertEqual(record.tag, "wind")

        stdout_filter = MaxLevelFilter(logging.INFO)
        self.assertTrue(stdout_filter.filter(_record(level=logging.INFO)))
        self.assertFalse(stdout_filter.filter(_record(level=logging.WARNING)))

    def test_setup_logging_override_applies_filters(self):
        root = logging.getLogger()
        orig_handlers = root.handlers[:]
        orig_level = root.level
        try:
            logging_utils.setup_logging(level="INFO", job_name="jobtest", override_existing=True)
            self.assertTrue(root.handlers)
            self.assertTrue(
                any(
                    any(f.__class__.__name__ == "JobNameFilter" for f in h.filters)
                    for h in root.handlers
                )
            )
        finally:
            root.handlers = orig_handlers
            root.setLevel(orig_level)
            root.propagate = True
            logging_utils._CONFIGURED = False  # reset for other tests


if __name__ == "__main__":
    unittest.main()
