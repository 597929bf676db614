import logging

from bjfit.log import LOGGER_NAME, get_logger


def test_single_stream_handler_on_package_logger():
    get_logger("bjfit.a")
    get_logger("bjfit.b")

    handlers = logging.getLogger(LOGGER_NAME).handlers
    assert len(handlers) == 1
    assert type(handlers[0]) is logging.StreamHandler
    assert handlers[0].formatter._fmt == "[bjfit] %(levelname)s: %(message)s"


def test_child_records_reach_caplog(caplog):
    log = get_logger("bjfit.dataset.structure")
    with caplog.at_level(logging.WARNING):
        log.warning("atom count mismatch for %s", "x.xyz")

    assert caplog.records[-1].name == "bjfit.dataset.structure"
    assert "x.xyz" in caplog.text
