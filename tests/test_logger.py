import logging

from liverecorder.logger import (
    FILE_DATEFMT,
    FILE_FORMAT,
    ROOT_LOGGER_NAME,
    ConsoleFormatter,
    RoomLabelFilter,
    format_room,
    get_logger,
    get_room_logger,
    setup_logging,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        ROOT_LOGGER_NAME, logging.INFO, __file__, 1, "Recording started", None, None
    )
    record.__dict__.update(extra)
    return record


def test_format_room() -> None:
    assert format_room(21452505, "Streamer") == "21452505 Streamer"
    assert format_room(21452505) == "21452505"


def test_file_format_shows_room_label() -> None:
    record = make_record(room_label="21452505 Streamer")
    line = logging.Formatter(FILE_FORMAT, datefmt=FILE_DATEFMT).format(record)

    assert "| INFO     | 21452505 Streamer    | Recording started" in line


def test_label_filter_fills_placeholder() -> None:
    record = make_record()

    assert RoomLabelFilter().filter(record)
    assert record.room_label == "-"


def test_console_formatter_plain() -> None:
    formatter = ConsoleFormatter(use_color=False)

    with_room = formatter.format(make_record(room_label="5440 Streamer"))
    without_room = formatter.format(make_record(room_label="-"))

    assert with_room.endswith("INFO     [5440 Streamer] Recording started")
    assert without_room.endswith("INFO     Recording started")
    assert "\033[" not in with_room


def test_console_formatter_colors() -> None:
    line = ConsoleFormatter(use_color=True).format(make_record(room_label="5440"))

    assert "\033[92m" in line
    assert "[5440]" in line


def test_room_logger_tags_records(caplog) -> None:
    logger = get_room_logger(5440, "Streamer")

    with caplog.at_level(logging.INFO, logger=f"{ROOT_LOGGER_NAME}.room"):
        logger.info("hello")
        logger.set_room(21452505, "Renamed")
        logger.info("again")

    first, second = caplog.records[-2:]
    assert (first.room, first.room_label) == (5440, "5440 Streamer")
    assert (second.room, second.room_label) == (21452505, "21452505 Renamed")


def test_get_logger_names() -> None:
    assert get_logger().name == ROOT_LOGGER_NAME
    assert get_logger('app').name == f"{ROOT_LOGGER_NAME}.app"


def test_setup_logging_with_file(tmp_path) -> None:
    log_file = tmp_path / "logs" / "recorder.log"

    logger = setup_logging(level="debug", log_file=str(log_file), max_size_mb=1, backup_count=2)
    try:
        get_room_logger(1, "Streamer").warning("disk almost full")
        get_logger('app').info("no room here")
        for handler in logger.handlers:
            handler.flush()

        text = log_file.read_text(encoding="utf-8")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        assert "| WARNING  | 1 Streamer" in text
        assert "| INFO     | -" in text
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
