import os

from jtoolchain import config
from jtoolchain import filesystem as fs
from jtoolchain import log
from jtoolchain.catalog import Catalog
from jtoolchain.error import ResolutionError, ToolchainError
from jtoolchain.jbang import JBang
from jtoolchain.model import BuildContext, ResolvedToolchain
from jtoolchain.model import FAILED, JDK, MATCHED_EXISTING, PROVISIONED
from jtoolchain.model import ORIGIN_CATALOG, ORIGIN_JBANG
from jtoolchain.registry import ToolchainRegistry
from jtoolchain.tools import Tools


DEFAULT_VENDOR = "oracle_open_jdk"


class ToolchainResolver(object):
    """ Selects a toolchain for each requirement of a build.

    Toolchains already declared in the registry are preferred. A missing
    JDK is provisioned, first through JBang when the default vendor is
    requested, then from the JDK catalog. Provisioned JDKs are added to
    the registry so that later builds find them without downloading.
    Selected toolchains are stored in the build context.
    """

    def __init__(self, registry=None, catalog=None, tools=None, jbang=None, jdksdir=None, context=None):
        self.tools = tools or Tools()
        self.registry = registry or ToolchainRegistry()
        self.catalog = catalog or Catalog(session=self.tools.session)
        self.jbang = jbang or JBang(self.tools)
        self.jdksdir = jdksdir or config.get_jdksdir()
        self.context = context if context is not None else BuildContext()
        self.states = {}

    def resolve(self, requirements, skip=None):
        """ Resolves all requirements and returns the build context.

        Raises:
            ResolutionError: If one or more requirements could not be met.
            MisconfiguredToolchainError: If a requirement or a registry
                entry is malformed.
        """
        skip = config.get_skip() if skip is None else skip
        if skip:
            log.info("Toolchain resolution skipped")
            return self.context

        requirements = list(requirements)
        if not requirements:
            log.warning("No toolchain requirements configured")
            return self.context

        failed = []
        for requirement in requirements:
            state = self.select(requirement)
            self.states[requirement.type] = state
            if state == FAILED:
                failed.append(requirement)

        if failed:
            message = "Cannot find matching toolchain definitions for the following toolchain types:"
            for requirement in failed:
                message += "\n" + requirement.describe()
            message += "\nPlease make sure you define the required toolchains in your {} file.".format(
                self.registry.path)
            raise ResolutionError(message, failed)

        for toolchain in self.context:
            log.verbose("Using toolchain: {}", toolchain)
        return self.context

    def select(self, requirement):
        """ Resolves a single requirement and returns its final state. """
        log.info("Required toolchain: {}", requirement.describe())

        found = 0
        for candidate in self.registry.toolchains_for_type(requirement.type):
            if candidate.type != requirement.type:
                continue
            found += 1
            if candidate.matches(requirement.params):
                log.info("Found matching toolchain for type {}: {}", requirement.type, candidate)
                self.context.store(ResolvedToolchain.from_candidate(candidate))
                return MATCHED_EXISTING

        if requirement.type.lower() == JDK:
            toolchain = self.provision_jdk(requirement)
            if toolchain is not None:
                self.context.store(toolchain)
                return PROVISIONED

        if found == 0:
            log.error("No toolchain found for type {}", requirement.type)
        else:
            log.error("No toolchain matched from {} found for type {}", found, requirement.type)
        return FAILED

    def provision_jdk(self, requirement):
        version = requirement.get("version")
        vendor = requirement.get("vendor") or DEFAULT_VENDOR

        toolchain = None
        if vendor.lower() == DEFAULT_VENDOR and self.jbang.available():
            toolchain = self._provision_from_jbang(version, vendor)
        if toolchain is None:
            toolchain = self._provision_from_catalog(version, vendor)
        return toolchain

    def _provision_from_jbang(self, version, vendor):
        try:
            jdk_home = self.jbang.find_jdk(version)
            candidate = self.registry.append_jdk_toolchain(jdk_home, version, vendor)
        except (ToolchainError, OSError) as e:
            log.verbose("Failed to find JDK from JBang: {}", e)
            return None
        return self._resolved(candidate, ORIGIN_JBANG)

    def _provision_from_catalog(self, version, vendor):
        log.info("Begin to install JDK {} from '{}'", version or "(latest)", vendor)
        elapsed = log.Elapsed()
        try:
            match = self.catalog.find_package(version, vendor)
            if match is None:
                log.warning("The JDK catalog has no package for version '{}' from '{}'", version, vendor)
                return None

            archive = self.tools.ensure_downloaded(match.download_url, match.filename, self.jdksdir)
            log.info("Extract {}", match.filename)
            root = self.tools.archive_root(archive)
            self.tools.extract(archive, self.jdksdir)

            jdk_home = fs.path.join(self.tools.expand_path(self.jdksdir), root)
            bundle_home = fs.path.join(jdk_home, "Contents", "Home")
            if fs.isdir(bundle_home):
                jdk_home = bundle_home
            log.info("JDK installed in {}: {}", elapsed, jdk_home)

            if "graalvm" in vendor.lower():
                self._install_native_image(jdk_home)

            candidate = self.registry.append_jdk_toolchain(jdk_home, version, vendor)
        except (ToolchainError, OSError) as e:
            log.error("Failed to download and install JDK: {}", e)
            log.exception(e, error=False)
            return None
        return self._resolved(candidate, ORIGIN_CATALOG)

    def _install_native_image(self, jdk_home):
        """ Starts installation of the native-image component. Best effort, not awaited. """
        gu = fs.path.join(jdk_home, "bin", "gu.cmd" if os.name == "nt" else "gu")
        try:
            with self.tools.environ(GRAALVM_HOME=jdk_home):
                self.tools.spawn([gu, "install", "native-image", "--ignore"])
        except ToolchainError as e:
            log.warning("Failed to start GraalVM native-image installation: {}", e)

    @staticmethod
    def _resolved(candidate, origin):
        toolchain = ResolvedToolchain.from_candidate(candidate)
        toolchain.origin = origin
        return toolchain
