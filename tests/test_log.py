import logging

from chatshared.log import ColoredFormatter, GenericFormatter

FMT = '[%(levelname)-8s][%(name)-5s]: %(message)s'


def _record(level=logging.WARNING, **extra):
    record = logging.LogRecord("chatclient.ws_client", level, __file__, 1, "Dropping frame", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_generic_formatter_prefixes_session_context():
    line = GenericFormatter(fmt=FMT).format(_record(username="bob", msg_type="message"))
    assert line.startswith("[user=bob msg=message] ")
    assert line.endswith("Dropping frame")


def test_colored_formatter_keeps_session_context():
    record = _record(username="bob", msg_type="message", conn_state="authenticated")
    line = ColoredFormatter(fmt=FMT).format(record)

    assert "[user=bob msg=message state=authenticated]" in line
    assert ColoredFormatter.COLORS["WARNING"] in line
    # The record is left untouched for the other handlers
    assert record.levelname == "WARNING"


def test_formatters_without_context_leave_message_alone():
    assert GenericFormatter(fmt="%(message)s").format(_record()) == "Dropping frame"
