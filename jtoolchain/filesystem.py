import os
import errno
import shutil
import stat
import tempfile
from contextlib import contextmanager


path = os.path


def userhome():
    return os.path.expanduser("~")


def makedirs(path):
    try:
        os.makedirs(path)
    except OSError as e:
        if e.errno != errno.EEXIST:
            raise


mkdtemp = tempfile.mkdtemp


def isdir(path):
    return os.path.isdir(path)


def rmtree(path, ignore_errors=False, onerror=None):
    def _onerror(func, path, exc_info):
        if os.path.isdir(path):
            try:
                os.rmdir(path)
            except Exception:
                pass
            else:
                return
        if not ignore_errors:
            _, exc, _ = exc_info
            raise exc

    shutil.rmtree(path, onerror=onerror or _onerror)


def unlink(path, ignore_errors=False, tree=False):
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            if tree:
                rmtree(path, ignore_errors=ignore_errors)
            else:
                os.rmdir(path)
        else:
            os.unlink(path)
    except Exception as e:
        if not ignore_errors:
            raise e


def _file_mode(path):
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


@contextmanager
def atomic_open(path, mode="wb"):
    """ Open a temporary file that replaces path when the block completes.

    The temporary file lives in the same directory as path so that the
    final rename never crosses a filesystem boundary. The permissions of
    an existing path are kept, a new file gets the default permissions
    for the current umask. If the block raises, the temporary file is
    removed and path is left untouched.
    """
    dirname = os.path.dirname(os.path.abspath(path))
    makedirs(dirname)
    fd, tmppath = tempfile.mkstemp(prefix="." + os.path.basename(path) + "-", dir=dirname)
    try:
        with os.fdopen(fd, mode) as f:
            yield f
        os.chmod(tmppath, _file_mode(path))
        os.replace(tmppath, path)
    except BaseException:
        unlink(tmppath, ignore_errors=True)
        raise
