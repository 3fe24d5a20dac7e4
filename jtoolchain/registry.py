from lxml import etree

from jtoolchain import config
from jtoolchain import filesystem as fs
from jtoolchain import log
from jtoolchain import utils
from jtoolchain.error import RegistryWriteError
from jtoolchain.error import raise_misconfigured, raise_misconfigured_if
from jtoolchain.model import JDK
from jtoolchain.versions import version_range
from jtoolchain.xmldom import Attribute, Composition, Properties, SubElement


@Attribute("type")
@Composition(Properties, "provides")
@Composition(Properties, "configuration")
class _Toolchain(SubElement):
    def __init__(self, elem=None):
        super(_Toolchain, self).__init__("toolchain", elem=elem)


@Composition(_Toolchain, "toolchain", "toolchains")
class ToolchainsDocument(SubElement):
    """ The toolchains.xml registry document. """

    def __init__(self, elem=None):
        super(ToolchainsDocument, self).__init__("toolchains", elem=elem)

    @staticmethod
    def parse(path):
        parser = etree.XMLParser(remove_blank_text=True)
        tree = etree.parse(path, parser)
        root = tree.getroot()
        if ToolchainsDocument(elem=root).tag != "toolchains":
            raise ValueError("root element is <{}>, expected <toolchains>".format(root.tag))
        return ToolchainsDocument(elem=root)

    def append_jdk(self, jdk_home, version, vendor):
        toolchain = self.create_toolchain()
        toolchain.type = JDK
        provides = toolchain.create_provides()
        if version:
            provides.set("version", version)
        provides.set("vendor", vendor)
        configuration = toolchain.create_configuration()
        configuration.set("jdkHome", jdk_home)
        return toolchain

    def tostring(self):
        return etree.tostring(
            self.elem.getroottree(),
            xml_declaration=True,
            encoding="UTF-8",
            pretty_print=True)


class ToolchainCandidate(object):
    """ A toolchain already declared in the registry. """

    def __init__(self, type, provides=None, configuration=None):
        self.type = type
        self.provides = dict(provides or {})
        self.configuration = dict(configuration or {})

    @staticmethod
    def from_element(toolchain):
        provides = toolchain.get_provides()
        configuration = toolchain.get_configuration()
        return ToolchainCandidate(
            toolchain.type,
            provides.as_dict() if provides is not None else {},
            configuration.as_dict() if configuration is not None else {})

    def matches(self, params):
        """ Returns True if every requirement parameter is provided.

        The version parameter may be a version range. Other parameters
        are compared case insensitively.
        """
        for key, required in params.items():
            provided = self.provides.get(key)
            if provided is None:
                return False
            if key == "version":
                try:
                    spec = version_range(required)
                except ValueError:
                    raise_misconfigured("Invalid version requirement for toolchain type '{}': '{}'",
                                        self.type, required)
                try:
                    if not spec.contains(provided):
                        return False
                except ValueError:
                    return False
            elif provided.lower() != required.lower():
                return False
        return True

    def __str__(self):
        return "{} [ {} ]".format(
            self.type,
            " ".join("{}='{}'".format(key, value) for key, value in self.provides.items()) or "any")


class ToolchainRegistry(object):
    """ Reads and appends to the toolchains.xml registry document. """

    def __init__(self, path=None):
        self.path = path or config.get_registry_path()

    def _load(self):
        if not fs.path.exists(self.path):
            return None
        return ToolchainsDocument.parse(self.path)

    def entries(self):
        """ All declared toolchains, in document order, without validation. """
        try:
            document = self._load()
        except (etree.XMLSyntaxError, ValueError, OSError) as e:
            raise_misconfigured("Failed to read toolchains from '{}': {}", self.path, e)
        if document is None:
            return []
        return [ToolchainCandidate.from_element(toolchain) for toolchain in document.toolchains]

    def toolchains_for_type(self, type):
        candidates = [candidate for candidate in self.entries() if candidate.type == type]
        if type.lower() == JDK:
            for candidate in candidates:
                self._validate_jdk(candidate)
        return candidates

    @staticmethod
    def _validate_jdk(candidate):
        jdk_home = candidate.configuration.get("jdkHome")
        raise_misconfigured_if(
            not jdk_home,
            "Java toolchain without jdkHome configuration element: {}", candidate)
        raise_misconfigured_if(
            not fs.isdir(jdk_home),
            "Non-existing JDK home configuration: {}", jdk_home)

    def append_jdk_toolchain(self, jdk_home, version, vendor):
        """ Registers a provisioned JDK and returns it as a candidate.

        The document is re-read under an inter-process lock and replaced
        atomically, so entries appended concurrently by other processes are
        preserved and a crash never leaves a truncated document behind.
        """
        jdk_home = fs.path.abspath(jdk_home)
        try:
            dirname = fs.path.dirname(fs.path.abspath(self.path))
            fs.makedirs(dirname)
            with utils.LockFile(self.path + ".lock", log.info, "Waiting for lock on {}", self.path):
                document = self._load() or ToolchainsDocument()
                document.append_jdk(jdk_home, version, vendor)
                with fs.atomic_open(self.path, "wb") as f:
                    f.write(document.tostring())
        except (etree.XMLSyntaxError, ValueError, OSError) as e:
            raise RegistryWriteError("Failed to add JDK toolchain to '{}': {}".format(self.path, e)) from e

        log.info("Registered JDK toolchain in {}: {}", self.path, jdk_home)
        provides = {"version": version, "vendor": vendor} if version else {"vendor": vendor}
        return ToolchainCandidate(JDK, provides, {"jdkHome": jdk_home})
