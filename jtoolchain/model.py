from jtoolchain import utils
from jtoolchain.error import raise_misconfigured_if


JDK = "jdk"

MATCHED_EXISTING = "matched"
PROVISIONED = "provisioned"
FAILED = "failed"

ORIGIN_EXISTING = "existing"
ORIGIN_JBANG = "jbang"
ORIGIN_CATALOG = "catalog"


class ToolchainRequirement(object):
    """ A toolchain type and the attributes a build requires from it. """

    def __init__(self, type, params=None):
        raise_misconfigured_if(not type or not type.strip(), "Toolchain requirement has no type")
        params = dict(params or {})
        for key in params:
            raise_misconfigured_if(
                not key, "Toolchain requirement '{}' has a parameter without name", type)
        self._type = type.strip()
        self._params = params

    @property
    def type(self):
        return self._type

    @property
    def params(self):
        return dict(self._params)

    def get(self, key, default=None):
        return self._params.get(key, default)

    def describe(self):
        if not self._params:
            return "{} [ any ]".format(self._type)
        params = " ".join("{}='{}'".format(key, value) for key, value in self._params.items())
        return "{} [ {} ]".format(self._type, params)

    @staticmethod
    def parse(string):
        type, params = utils.parse_requirement(string)
        raise_misconfigured_if(not type, "Invalid toolchain requirement: '{}'", string)
        return ToolchainRequirement(type, params)

    def __str__(self):
        return utils.format_requirement(self._type, self._params)

    def __repr__(self):
        return "ToolchainRequirement({})".format(self.describe())

    def __eq__(self, other):
        return isinstance(other, ToolchainRequirement) and \
            self._type == other._type and self._params == other._params

    def __hash__(self):
        return hash((self._type, tuple(sorted(self._params.items()))))


class ResolvedToolchain(object):
    def __init__(self, type, jdk_home=None, version=None, vendor=None, origin=ORIGIN_EXISTING, candidate=None):
        self.type = type
        self.jdk_home = jdk_home
        self.version = version
        self.vendor = vendor
        self.origin = origin
        self.candidate = candidate

    @staticmethod
    def from_candidate(candidate):
        return ResolvedToolchain(
            candidate.type,
            jdk_home=candidate.configuration.get("jdkHome"),
            version=candidate.provides.get("version"),
            vendor=candidate.provides.get("vendor"),
            origin=ORIGIN_EXISTING,
            candidate=candidate)

    def as_dict(self):
        return {
            "type": self.type,
            "jdkHome": self.jdk_home,
            "version": self.version,
            "vendor": self.vendor,
            "origin": self.origin,
        }

    def __str__(self):
        details = ", ".join("{}={}".format(key, value)
                            for key, value in self.as_dict().items()
                            if key != "type" and value is not None)
        return "{} [{}]".format(self.type, details)


class BuildContext(object):
    """ Toolchains selected for the remainder of the build, by type. """

    def __init__(self):
        self._toolchains = {}

    def store(self, toolchain):
        self._toolchains[toolchain.type] = toolchain

    def get(self, type):
        return self._toolchains.get(type)

    def types(self):
        return list(self._toolchains.keys())

    def __contains__(self, type):
        return type in self._toolchains

    def __len__(self):
        return len(self._toolchains)

    def __iter__(self):
        return iter(self._toolchains.values())

    def as_dict(self):
        return {type: toolchain.as_dict() for type, toolchain in self._toolchains.items()}

    def export(self, path):
        utils.tojson(path, self.as_dict())


class PackageQuery(object):
    def __init__(self, vendor, version, os, architecture, bitness, libc_type, archive_type):
        self.vendor = vendor
        self.version = version
        self.os = os
        self.architecture = architecture
        self.bitness = bitness
        self.libc_type = libc_type
        self.archive_type = archive_type

    def params(self):
        return [
            ("distribution", self.vendor),
            ("version", self.version),
            ("operating_system", self.os),
            ("architecture", self.architecture),
            ("bitness", self.bitness),
            ("archive_type", self.archive_type),
            ("libc_type", self.libc_type),
        ]


class PackageMatch(object):
    def __init__(self, filename, download_url):
        self.filename = filename
        self.download_url = download_url

    def __repr__(self):
        return "PackageMatch({}, {})".format(self.filename, self.download_url)
