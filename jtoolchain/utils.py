import json
import os
import re
from string import Formatter

from fasteners import process_lock


def call_and_catch(f, *args, **kwargs):
    try:
        return f(*args, **kwargs)
    except KeyboardInterrupt as e:
        raise e
    except Exception:
        return None


def parse_requirement(string):
    """ Split 'type:key=value,key=value' into its type and parameters.

    Values may contain commas, as in version ranges: 'jdk:version=[17,21)'.
    A comma only separates parameters when followed by 'key='.
    """
    match = re.match(r"^(?P<type>[^:,=]+)(:(?P<params>.*))?$", string.strip())
    if not match:
        return None, {}
    match = match.groupdict()
    params = match["params"] or ""

    def _param(param):
        if "=" in param:
            key, value = param.split("=", 1)
        else:
            key, value = param, ""
        return key.strip(), value.strip()

    params = [_param(param) for param in re.split(r",(?=\s*[\w.\-]*=)", params) if param.strip()]
    return match["type"].strip(), dict(params)


def format_requirement(type, params):
    if not params:
        return type
    params = sorted([(key, value) for key, value in params.items()], key=lambda x: x[0])
    return "{0}:{1}".format(type, ",".join(["{0}={1}".format(key, value) for key, value in params]))


class _SafeDict(object):
    def __init__(self, values, ignore_errors=False):
        self.values = values
        self.errors = not ignore_errors

    def _envget(self, key):
        if key.startswith("ENV|"):
            return os.environ.get(key[4:])
        if key == "environ":
            return os.environ
        return None

    def __getitem__(self, key):
        value = self.values.get(key)
        if value is None:
            value = self._envget(key)
        if value is not None:
            return value
        if self.errors:
            raise KeyError(key)
        return "{" + key + "}"


def expand(string, *args, **kwargs):
    ignore_errors = kwargs.pop("ignore_errors", False)
    return Formatter().vformat(str(string), args, _SafeDict(kwargs, ignore_errors))


def shorten(string, count=30):
    if len(string) > count:
        keep = int(count / 2 - 1)
        if keep <= 0:
            keep = 1
        return string[:keep] + "..." + string[-keep + 1:]
    return string


def tojson(filepath, data, ignore_errors=False, indent=2):
    try:
        with open(filepath, "w") as f:
            f.write(json.dumps(data, indent=indent))
    except Exception as e:
        if ignore_errors:
            return
        raise e


class LockFile(object):
    """ Inter-process lock held while a shared file is being rewritten. """

    def __init__(self, path, logfunc=None, *args, **kwargs):
        self._file = process_lock.InterProcessLock(path)
        if not self._file.acquire(blocking=False):
            if logfunc is not None:
                logfunc(*args, **kwargs)
            self._file.acquire()

    def close(self):
        self._file.release()

    def __enter__(self, *args, **kwargs):
        return self

    def __exit__(self, *args, **kwargs):
        self.close()
