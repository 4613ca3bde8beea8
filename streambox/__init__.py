"""Stream Box: stream status, chat fanout and viewer presence."""
