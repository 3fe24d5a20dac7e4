import platform

from requests.exceptions import RequestException

from jtoolchain import config
from jtoolchain import http
from jtoolchain import log
from jtoolchain.error import TransportError
from jtoolchain.model import PackageMatch, PackageQuery


# Fixed filters narrowing the search to a single, directly
# downloadable, general availability JDK package.
FIXED_FILTERS = [
    ("latest", "overall"),
    ("package_type", "jdk"),
    ("discovery_scope_id", "directly_downloadable"),
    ("match", "any"),
    ("javafx_bundled", "false"),
    ("directly_downloadable", "true"),
    ("release_status", "ga"),
]

_LIBC_TYPES = {
    "linux": "glibc",
    "macos": "libc",
    "windows": "c_std_lib",
}


def detect_os(system=None):
    """ Returns the catalog's name for the host operating system family.

    Unrecognized systems are treated as linux.
    """
    system = (system if system is not None else platform.system()).lower()
    if "mac" in system or "darwin" in system:
        return "macos"
    if "windows" in system:
        return "windows"
    return "linux"


def detect_arch(machine=None):
    """ Returns the catalog's name for the host CPU architecture.

    Anything that is not recognized as 32-bit x86 or 64-bit ARM
    is treated as 64-bit x86.
    """
    machine = (machine if machine is not None else platform.machine()).lower()
    if any(arch in machine for arch in ["x86_32", "amd32", "i386", "i686"]):
        return "x32"
    if "aarch64" in machine or "arm64" in machine:
        return "aarch64"
    return "x64"


def build_query(version, vendor, system=None, machine=None):
    os_name = detect_os(system)
    arch = detect_arch(machine)
    return PackageQuery(
        vendor=vendor,
        version=version,
        os=os_name,
        architecture=arch,
        bitness="32" if arch == "x32" else "64",
        libc_type=_LIBC_TYPES.get(os_name, ""),
        archive_type="zip" if os_name == "windows" else "tar.gz")


def _first_result(response):
    try:
        document = response.json()
    except ValueError as e:
        raise TransportError("Invalid response from JDK catalog: {}".format(e)) from e
    result = document.get("result") if isinstance(document, dict) else None
    if not isinstance(result, list) or not result or not isinstance(result[0], dict):
        return None
    return result[0]


class Catalog(object):
    """ Client for the foojay disco API package catalog. """

    def __init__(self, session=None, uri=None, system=None, machine=None):
        self._session = session
        self.uri = (uri or config.get_catalog_uri()).rstrip("/")
        self.system = system
        self.machine = machine

    @property
    def session(self):
        if self._session is None:
            self._session = http.create_session()
        return self._session

    def _get(self, url, params=None):
        try:
            response = self.session.get(url, params=params)
        except RequestException as e:
            raise TransportError("JDK catalog request to '{}' failed: {}".format(http.redact(url), e)) from e
        log.debug("GET {} -> {}", http.redact(url), response.status_code)
        return response

    def find_package(self, version, vendor):
        """ Searches the catalog for a JDK package matching the host platform.

        The catalog's own ranking decides which package is best: the first
        search result is used and its package information is fetched to
        obtain the direct download URL.

        Returns:
            PackageMatch: The filename and download URL, or None if the
                catalog has no matching package.

        Raises:
            TransportError: If the catalog can't be reached or returns
                an invalid response.
        """
        query = build_query(version, vendor, self.system, self.machine)
        params = [(key, value) for key, value in query.params() if value] + FIXED_FILTERS

        response = self._get(self.uri + "/packages", params=params)
        if response.status_code != 200:
            log.verbose("JDK catalog search failed with status '{}'", response.status_code)
            return None
        package = _first_result(response)
        if package is None:
            log.verbose("No JDK package found for version '{}' from '{}'", version, vendor)
            return None

        filename = package.get("filename")
        pkg_info_uri = (package.get("links") or {}).get("pkg_info_uri")
        if not filename or not pkg_info_uri:
            log.verbose("JDK catalog search result is incomplete: {}", package)
            return None

        response = self._get(pkg_info_uri)
        if response.status_code != 200:
            log.verbose("JDK catalog package lookup failed with status '{}'", response.status_code)
            return None
        info = _first_result(response)
        download_url = info.get("direct_download_uri") if info else None
        if not download_url:
            log.verbose("JDK catalog has no download URL for {}", filename)
            return None

        return PackageMatch(filename, download_url)
