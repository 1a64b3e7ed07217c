import logging, json, sys
from typing import Optional, Union

ROOT = "motionclip"


class _DictFormatter(logging.Formatter):
    """Serializa mensagens `dict` como JSON; strings passam direto."""

    def format(self, record):
        if isinstance(record.msg, dict):
            record = logging.makeLogRecord(record.__dict__)
            record.msg = json.dumps(record.msg, ensure_ascii=False, default=str)
            record.args = None
        return super().format(record)


def _level(level: Union[int, str]) -> Union[int, str]:
    return level.upper() if isinstance(level, str) else level


def set_level(level: Union[int, str]) -> None:
    """Nível de todos os loggers `motionclip.*` que não fixaram o próprio."""
    logging.getLogger(ROOT).setLevel(_level(level))


def get_logger(name: str, level: Optional[Union[int, str]] = None) -> logging.Logger:
    l = logging.getLogger(name)
    if level is not None:
        l.setLevel(_level(level))
    elif name != ROOT and name.startswith(ROOT + "."):
        # filhos herdam o nível do logger raiz do pacote
        root = logging.getLogger(ROOT)
        if root.level == logging.NOTSET:
            root.setLevel(logging.INFO)
    elif l.level == logging.NOTSET:
        l.setLevel(logging.INFO)
    if not l.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(_DictFormatter('%(message)s'))
        l.addHandler(h)
    return l
