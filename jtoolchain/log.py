import glob
import logging
import os
import sys
import time
import traceback
from datetime import datetime

import tqdm

from jtoolchain import colors
from jtoolchain import config
from jtoolchain import filesystem as fs
from jtoolchain.error import ToolchainError


EXCEPTION = 5
DEBUG = 10
VERBOSE = 15
STDOUT = 18
STDERR = 19
INFO = 20
WARNING = 30
ERROR = 40
SILENCE = 50

logging.addLevelName(EXCEPTION, "EXCEPT")
logging.addLevelName(VERBOSE, "VERBOSE")
logging.addLevelName(STDOUT, "STDOUT")
logging.addLevelName(STDERR, "STDERR")

logging.raiseExceptions = False

logpath = config.get_logpath()
logcount = config.getint("jtoolchain", "logcount", os.environ.get("JTOOLCHAIN_LOGCOUNT", 100))
logfile = fs.path.join(logpath, datetime.now().strftime("%Y-%m-%dT%H%M%S.%f") + ".log")
logfiles = sorted(glob.glob(fs.path.join(logpath, "*T*.log")))


def _message(record):
    try:
        return record.msg.format(*record.args)
    except Exception:
        return record.msg


class FileFormatter(logging.Formatter):
    def format(self, record):
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")
        return "{} [{:>7}] {}".format(timestamp, record.levelname, _message(record))


class ConsoleFormatter(logging.Formatter):
    """ Prefixes messages with their level, except relayed command output. """

    def format(self, record):
        msg = _message(record)
        if record.levelno >= ERROR:
            msg = colors.red(msg)
        elif record.levelno >= WARNING:
            msg = colors.yellow(msg)
        if record.levelno in [STDOUT, STDERR]:
            return msg
        return "[{:>7}] {}".format(record.levelname, msg)


class Filter(logging.Filter):
    def __init__(self, filterfn):
        self.filterfn = filterfn

    def filter(self, record):
        return self.filterfn(record)


class TqdmStream(object):
    """ Writes around active progress bars instead of through them. """

    def __init__(self, stream):
        self.stream = stream

    def write(self, msg):
        with tqdm.tqdm.external_write_mode(file=self.stream, nolock=False):
            self.stream.write(msg)

    def flush(self):
        getattr(self.stream, 'flush', lambda: None)()


def _console_handler(stream, filterfn):
    if sys.stdout.isatty() and sys.stderr.isatty():
        stream = TqdmStream(sys.stdout)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ConsoleFormatter())
    handler.addFilter(Filter(filterfn))
    return handler


# silence root logger
logging.getLogger().setLevel(logging.CRITICAL)

_logger = logging.getLogger('jtoolchain')
_logger.setLevel(EXCEPTION)
_logger.propagate = False

_stdout = _console_handler(sys.stdout, lambda r: r.levelno < ERROR and r.levelno != EXCEPTION)
_stderr = _console_handler(sys.stderr, lambda r: r.levelno >= ERROR or r.levelno == EXCEPTION)
_logger.addHandler(_stdout)
_logger.addHandler(_stderr)


def start_file_log():
    """ Starts logging to a new file in logpath.

    The oldest log files are removed so that no more than logcount
    files exist, including the new one.
    """
    global logfiles

    fs.makedirs(logpath)

    if len(logfiles) >= logcount:
        outdated = logfiles[:len(logfiles) - logcount + 1]
        logfiles = logfiles[len(outdated):]
        for file in outdated:
            fs.unlink(file, ignore_errors=True)

    handler = logging.FileHandler(logfile)
    handler.setLevel(EXCEPTION)
    handler.setFormatter(FileFormatter())
    _logger.addHandler(handler)
    logfiles.append(logfile)


def info(fmt, *args, **kwargs):
    _logger.log(INFO, fmt, *args, **kwargs)


def warning(fmt, *args, **kwargs):
    _logger.log(WARNING, fmt, *args, **kwargs)


def verbose(fmt, *args, **kwargs):
    _logger.log(VERBOSE, fmt, *args, **kwargs)


def debug(fmt, *args, **kwargs):
    _logger.log(DEBUG, fmt, *args, **kwargs)


def error(fmt, *args, **kwargs):
    _logger.log(ERROR, fmt, *args, **kwargs)


def stdout(line, **kwargs):
    line = line.replace("{", "{{")
    line = line.replace("}", "}}")
    _logger.log(STDOUT, line, extra=kwargs)


def stderr(line, **kwargs):
    line = line.replace("{", "{{")
    line = line.replace("}", "}}")
    _logger.log(STDERR, line, extra=kwargs)


def format_exception_msg(exc):
    te = traceback.TracebackException.from_exception(exc)

    if isinstance(exc, ToolchainError):
        return str(exc)

    elif not te.stack:
        return "{}: {}".format(type(exc).__name__, str(exc))

    else:
        filename = fs.path.relpath(
            te.stack[-1].filename,
            fs.path.commonprefix([os.getcwd(), te.stack[-1].filename]))
        return "{}: {} ({}, line {}, in {})".format(
            type(exc).__name__,
            str(exc) or te.stack[-1].line,
            filename,
            te.stack[-1].lineno,
            te.stack[-1].name)


def exception(exc=None, error=True):
    if exc:
        if error:
            _logger.log(ERROR, format_exception_msg(exc))
        tb = traceback.format_exception(type(exc), value=exc, tb=exc.__traceback__)
        backtrace = "".join(tb).splitlines()
    else:
        backtrace = traceback.format_exc().splitlines()

    for line in backtrace:
        line = line.replace("{", "{{")
        line = line.replace("}", "}}")
        line = line.strip()
        _logger.log(EXCEPTION, line)


class _Progress(object):
    def __init__(self, msg):
        verbose(msg)

    def __enter__(self):
        return self

    def __exit__(self, type, value, tb):
        pass

    def update(self, *args, **kwargs):
        pass


def progress(desc, count, unit):
    if is_interactive() and not is_verbose():
        bar_format = None if count else '{desc}{n_fmt}{unit} [{elapsed}]'
        p = tqdm.tqdm(total=count or None, unit=unit, unit_scale=True, bar_format=bar_format, dynamic_ncols=True)
        p.set_description("[   INFO] " + desc)
        return p
    return _Progress(desc)


_level = STDOUT


def set_level(level):
    """ Set the log level for terminal output. """

    if level not in [
        DEBUG,
        ERROR,
        EXCEPTION,
        INFO,
        SILENCE,
        STDERR,
        STDOUT,
        VERBOSE,
        WARNING,
    ]:
        raise ValueError("invalid log level")

    global _level
    _level = level
    _stdout.setLevel(level)
    _stderr.setLevel(level)


def is_verbose():
    return _stdout.level <= VERBOSE


def is_interactive():
    return sys.stdout.isatty() and sys.stderr.isatty()


class Elapsed(object):
    def __init__(self):
        self._time = time.time()

    def __str__(self):
        elapsed = time.time() - self._time
        if elapsed >= 60:
            return time.strftime("%Mmin %Ss", time.gmtime(elapsed))
        return time.strftime("%Ss", time.gmtime(elapsed))


set_level(STDOUT)
