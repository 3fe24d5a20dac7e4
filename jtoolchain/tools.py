import copy
import os
import subprocess
import tarfile
import threading
import zipfile
from contextlib import contextmanager

from psutil import NoSuchProcess, Process
from requests.exceptions import RequestException

from jtoolchain import config
from jtoolchain import filesystem as fs
from jtoolchain import http
from jtoolchain import log
from jtoolchain import utils
from jtoolchain.error import SubprocessError, ToolchainError, TransportError
from jtoolchain.error import raise_error, raise_transport_error_if


TAR_GZIP_SUFFIXES = (".tar.gz", ".tgz")


class Reader(threading.Thread):
    def __init__(self, stream, output=None, logbuf=None):
        super(Reader, self).__init__()
        self.output = output
        self.stream = stream
        self.logbuf = logbuf if logbuf is not None else []
        self.start()

    def run(self):
        line = ""
        try:
            for line in iter(self.stream.readline, b''):
                line = line.rstrip().decode(errors='ignore')
                if self.output:
                    self.output(line)
                self.logbuf.append((self, line))
        except Exception as e:
            if self.output:
                self.output(str(e))
            self.logbuf.append((self, line))


def _terminate(pid, kill=False):
    try:
        process = Process(pid)
        for chld in process.children(recursive=True):
            chld.kill() if kill else chld.terminate()
        process.kill() if kill else process.terminate()
    except NoSuchProcess:
        pass


def _run(cmd, cwd, env, output=True, timeout=None):
    log.debug("Running: '{0}' (CWD: {1})", " ".join(cmd), cwd)
    timedout = False
    try:
        p = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=env,
        )
    except OSError as e:
        raise SubprocessError("Command failed to start: {0}: {1}".format(" ".join(cmd), e)) from e

    logbuf = []
    stdout = Reader(p.stdout, output=log.stdout if output else None, logbuf=logbuf)
    stderr = Reader(p.stderr, output=log.stderr if output else None, logbuf=logbuf)

    try:
        p.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timedout = True
        try:
            _terminate(p.pid)
            p.wait(10)
        except subprocess.TimeoutExpired:
            _terminate(p.pid, kill=True)
            p.wait()
    finally:
        stdout.join()
        stderr.join()
        p.stdout.close()
        p.stderr.close()

    stdoutbuf = [line for reader, line in logbuf if reader is stdout]
    stderrbuf = [line for reader, line in logbuf if reader is stderr]

    if timedout:
        raise SubprocessError(
            "Command timeout: {0}".format(" ".join(cmd)), stdoutbuf, stderrbuf, p.returncode)
    if p.returncode != 0:
        raise SubprocessError(
            "Command failed: {0}".format(" ".join(cmd)), stdoutbuf, stderrbuf, p.returncode)
    return "\n".join(stdoutbuf)


class ZipFile(zipfile.ZipFile):
    """ ZipFile customization that preserves file permissions. """

    def extract(self, member, path=None, pwd=None):
        out_path = super().extract(member, path, pwd)

        # Restore permissions, if UNIX permissions are available
        info = self.getinfo(member) if isinstance(member, str) else member
        attr = info.external_attr >> 16
        if attr != 0:
            os.chmod(out_path, attr & 0o7777)

        return out_path

    def extractall(self, path=None, members=None, pwd=None):
        if members is None:
            members = self.namelist()

        for member in members:
            self.extract(member, path, pwd)


class _Tarfile(tarfile.TarFile):
    """ Tarfile customization that can extract without uid/gids """

    def __init__(self, *args, ignore_owner=True, **kwargs):
        super().__init__(*args, **kwargs)
        self.__ignore_owner = ignore_owner

    def chown(self, *args, **kwargs):
        if self.__ignore_owner:
            return
        return super().chown(*args, **kwargs)

    def extractall(self, path=".", members=None, **kwargs):
        # JDK archives carry relative symlinks and executable bits
        if hasattr(tarfile, "tar_filter"):
            kwargs.setdefault("filter", "tar")
        return super().extractall(path, members, **kwargs)


def is_tar_gzip(filename):
    return filename.endswith(TAR_GZIP_SUFFIXES)


def _content_length(response):
    """ Returns the announced size of a response body, or 0 if unknown. """
    try:
        return max(int(response.headers.get("content-length", 0)), 0)
    except (TypeError, ValueError):
        return 0


class Tools(object):
    """ File transfer, archive and process helpers.

    Relative paths are made absolute by prepending the current
    working directory. HTTP transfers use the session passed to the
    constructor, or a session created from the proxy configuration.
    """

    def __init__(self, session=None, cwd=None, env=None):
        self._session = session
        self._cwd = fs.path.normpath(fs.path.join(os.getcwd(), cwd or os.getcwd()))
        self._env = copy.deepcopy(env or dict(os.environ))

    @property
    def session(self):
        if self._session is None:
            self._session = http.create_session()
        return self._session

    def getcwd(self):
        return self._cwd

    def expand_path(self, pathname):
        return fs.path.normpath(fs.path.join(self.getcwd(), pathname))

    def file_size(self, pathname):
        return os.stat(self.expand_path(pathname)).st_size

    def ensure_downloaded(self, url, filename, destdir):
        """ Downloads url to destdir/filename unless that file already exists.

        Presence of the file is the only cache criteria; its size or
        contents are not verified.

        Returns:
            str: Path to the local file.
        """
        destdir = self.expand_path(destdir)
        pathname = fs.path.join(destdir, filename)
        if fs.path.exists(pathname):
            log.verbose("Already downloaded: {}", pathname)
            return pathname
        fs.makedirs(destdir)
        log.info("Download {} from {}", filename, http.redact(url))
        self.download(url, pathname)
        return pathname

    def download(self, url, pathname, **kwargs):
        """
        Downloads a file using HTTP.

        The content is streamed to a temporary file next to the
        destination which is renamed once the transfer is complete.
        An interrupted or truncated transfer therefore never leaves a
        file under the destination name.

        Throws a TransportError exception on failure.

        Args:
           url (str): URL to the file to be downloaded.
           pathname (str): Name/path of destination file.
           kwargs (optional): Additional keyword arguments passed on
               directly to ``requests.Session.get()``.

        """
        pathname = self.expand_path(pathname)
        partname = pathname + ".part"
        url_cleaned = http.redact(url)

        try:
            with self.session.get(url, stream=True, **kwargs) as response:
                raise_transport_error_if(
                    response.status_code != 200,
                    "Download from '{}' failed with status '{}'", url_cleaned, response.status_code)

                name = fs.path.basename(pathname)
                size = _content_length(response)
                with log.progress("Downloading {0}".format(utils.shorten(name)), size, "B") as pbar:
                    log.verbose("{} -> {}", url_cleaned, pathname)
                    with open(partname, 'wb') as out_file:
                        for data in response.iter_content(chunk_size=0x10000):
                            out_file.write(data)
                            pbar.update(len(data))
                actual_size = self.file_size(partname)
                raise_transport_error_if(
                    size != 0 and size != actual_size,
                    "Downloaded file was truncated to {}/{} bytes: {}", actual_size, size, name)
            os.replace(partname, pathname)
        except RequestException as e:
            utils.call_and_catch(fs.unlink, partname)
            raise TransportError("Download from '{}' failed: {}".format(url_cleaned, e)) from e
        except Exception as e:
            utils.call_and_catch(fs.unlink, partname)
            raise e
        return pathname

    def archive_root(self, filename):
        """ Determines the top-level directory of an archive without extracting it.

        Entries are read in archive order. Short entries starting with a
        dot, such as ``.`` and ``..``, are skipped. A leading ``./`` is
        removed and the name is truncated at the first ``/``.

        Args:
            filename (str): Path to a .tar.gz, .tgz or .zip archive.

        Returns:
            str: Name of the directory the archive extracts into.
        """
        filename = self.expand_path(filename)
        for name in self._entry_names(filename):
            if name.startswith(".") and len(name) < 4:
                continue
            if name.startswith("./"):
                name = name[2:]
            if "/" in name:
                name = name[:name.index("/")]
            if name:
                return name
        raise_error("Archive has no entries: '{}'", fs.path.basename(filename))

    def _entry_names(self, filename):
        try:
            if is_tar_gzip(filename):
                with tarfile.open(filename, "r|gz") as tar:
                    for member in tar:
                        yield member.name
            else:
                with zipfile.ZipFile(filename, "r") as zip:
                    for info in zip.infolist():
                        yield info.filename
        except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
            raise ToolchainError("Failed to read archive '{}': {}".format(filename, e)) from e

    def extract(self, filename, pathname, remove=True):
        """ Extracts an archive, overwriting existing files.

        Archives ending with .tar.gz or .tgz are treated as gzip
        compressed tarballs, all other archives as zip files.

        Args:
            filename (str): Name/path of archive file to be extracted.
            pathname (str): Destination path for extracted files.
            remove (boolean, optional): Delete the archive after a
                successful extraction. Default: True.
        """
        filename = self.expand_path(filename)
        filepath = self.expand_path(pathname)
        try:
            fs.makedirs(filepath)
            if is_tar_gzip(filename):
                with _Tarfile.open(filename, 'r:gz') as tar:
                    tar.extractall(filepath)
            else:
                with ZipFile(filename, 'r') as zip:
                    zip.extractall(filepath)
        except Exception as e:
            log.exception(error=False)
            raise ToolchainError("Failed to extract archive '{}': {}".format(filename, e)) from e
        if remove:
            fs.unlink(filename)

    @contextmanager
    def environ(self, **kwargs):
        """ Set environment variables for child processes within a context. """
        restore = {key: value for key, value in self._env.items()}

        for key, value in kwargs.items():
            if value is not None:
                self._env[key] = value
            else:
                self._env.pop(key, None)

        try:
            yield self._env
        finally:
            self._env = restore

    def run(self, cmd, output=True, timeout=None):
        """ Runs a command and waits for it to complete.

        A SubprocessError exception is raised on failure.

        Args:
            cmd (list): Command and arguments.
            output (boolean, optional): Write the command's output to the log.
            timeout (int, optional): Timeout in seconds. Defaults to the
                ``jtoolchain.command_timeout`` configuration, or no timeout.

        Returns:
            str: The command's standard output.
        """
        if timeout is None:
            timeout = config.getint("jtoolchain", "command_timeout", 0)
        timeout = timeout if timeout and timeout > 0 else None
        return _run([str(c) for c in cmd], self._cwd, self._env, output=output, timeout=timeout)

    def spawn(self, cmd):
        """ Starts a command in the background without waiting for it.

        Returns:
            subprocess.Popen: The started process.
        """
        cmd = [str(c) for c in cmd]
        log.debug("Starting: '{0}' (CWD: {1})", " ".join(cmd), self._cwd)
        try:
            return subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                cwd=self._cwd,
                env=self._env,
                start_new_session=os.name != "nt",
            )
        except OSError as e:
            raise SubprocessError("Command failed to start: {0}: {1}".format(" ".join(cmd), e)) from e

