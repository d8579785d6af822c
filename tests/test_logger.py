import io
import re
import sys

from services.logger import TeeWriter, TerminalLogger


def test_tee_writer_stamps_each_line_once():
    original, log_file = io.StringIO(), io.StringIO()
    writer = TeeWriter(original, log_file)

    writer.write("first ")
    writer.write("line\nsecond\n")

    lines = log_file.getvalue().splitlines()
    assert re.fullmatch(r"\[\d\d:\d\d:\d\d\] first line", lines[0])
    assert re.fullmatch(r"\[\d\d:\d\d:\d\d\] second", lines[1])
    assert original.getvalue() == log_file.getvalue()


def test_terminal_logger_captures_and_restores(tmp_path):
    logger = TerminalLogger(log_dir=tmp_path)
    stdout = sys.stdout

    path = logger.start()
    print("captured")
    logger.stop()

    assert sys.stdout is stdout
    assert path.name.startswith("signal_trader_")
    assert "captured" in path.read_text(encoding="utf-8")
