import json

from motionclip.utils.log import get_logger, set_level


def test_dict_messages_are_json(capsys):
    log = get_logger("motionclip.test_log")
    log.info({"event": "export", "frames": 3})
    log.info("texto %s", "simples")
    log.debug({"event": "oculto"})
    lines = capsys.readouterr().out.strip().splitlines()
    assert json.loads(lines[0]) == {"event": "export", "frames": 3}
    assert lines[1] == "texto simples"
    assert len(lines) == 2


def test_level_and_single_handler():
    log = get_logger("motionclip.test_level", level="debug")
    again = get_logger("motionclip.test_level")
    assert again is log
    assert len(log.handlers) == 1
    assert log.level == 10


def test_package_level_reaches_every_module_logger(capsys):
    a = get_logger("motionclip.test_a")
    b = get_logger("motionclip.test_b")
    try:
        set_level("debug")
        assert a.isEnabledFor(10) and b.isEnabledFor(10)
        b.debug({"event": "visivel"})
        assert json.loads(capsys.readouterr().out) == {"event": "visivel"}

        set_level("WARNING")
        a.info("oculto")
        assert capsys.readouterr().out == ""
    finally:
        set_level("INFO")
