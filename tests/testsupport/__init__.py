#!/usr/bin/env python

import io
import os
import tarfile
import tempfile
import unittest
import zipfile

# Keep the user's configuration out of the tests
os.environ.setdefault("JTOOLCHAIN_CONFIG_PATH", tempfile.mkdtemp(prefix="jtoolchain-config-"))

from jtoolchain import filesystem as fs  # noqa: E402
from jtoolchain import log  # noqa: E402


log.set_level(log.SILENCE)


TOOLCHAINS_NS = "http://maven.apache.org/TOOLCHAINS/1.1.0"


class FakeResponse(object):
    """ Stand-in for a streamed requests.Response. """

    def __init__(self, status_code=200, json=None, content=b"", headers=None):
        self.status_code = status_code
        self._json = json
        self.content = content
        self.headers = headers if headers is not None else {"content-length": str(len(content))}

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False


class FakeSession(object):
    """ Stand-in for requests.Session serving canned responses by URL. """

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []

    def get(self, url, params=None, **kwargs):
        self.requests.append((url, params, kwargs))
        response = self.routes.get(url)
        if isinstance(response, Exception):
            raise response
        if response is None:
            return FakeResponse(404)
        return response


def make_tar_gz(path, files):
    """ Writes a gzip compressed tarball with the given {name: bytes} entries. """
    with tarfile.open(path, "w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(data))
    return path


def make_zip(path, files):
    with zipfile.ZipFile(path, "w") as zip:
        for name, data in files.items():
            info = zipfile.ZipInfo(name)
            info.external_attr = 0o755 << 16
            zip.writestr(info, data)
    return path


def toolchain_xml(type, provides=None, jdk_home=None):
    provides = "".join("<{0}>{1}</{0}>".format(key, value) for key, value in (provides or {}).items())
    configuration = "<configuration><jdkHome>{}</jdkHome></configuration>".format(jdk_home) \
        if jdk_home is not None else ""
    return "<toolchain><type>{}</type><provides>{}</provides>{}</toolchain>".format(
        type, provides, configuration)


def write_registry(path, toolchains, namespace=None):
    xmlns = ' xmlns="{}"'.format(namespace) if namespace else ""
    with open(path, "w") as f:
        f.write('<?xml version="1.0" encoding="UTF-8"?>\n')
        f.write("<toolchains{}>{}</toolchains>\n".format(xmlns, "".join(toolchains)))
    return path


class ToolchainTest(unittest.TestCase):
    """ Test case with a private, temporary workspace directory. """

    def setUp(self):
        self.ws = fs.mkdtemp(prefix="jtoolchain-test-")

    def tearDown(self):
        fs.rmtree(self.ws, ignore_errors=True)

    def path(self, *names):
        return fs.path.join(self.ws, *names)

    def makedirs(self, *names):
        path = self.path(*names)
        fs.makedirs(path)
        return path

    def read_file(self, *names):
        with open(self.path(*names)) as f:
            return f.read()
