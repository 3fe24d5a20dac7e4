import os

from jtoolchain import config
from jtoolchain import filesystem as fs
from jtoolchain import log
from jtoolchain.error import SubprocessError


def major_version(version):
    """ Returns the Java feature release of a version string.

    Legacy 1.x version numbers collapse to 8: "1.8" -> "8",
    "11.0.2" -> "11", "17" -> "17".
    """
    if "." not in version:
        return version
    if version.startswith("1."):
        return "8"
    return version[:version.index(".")]


class JBang(object):
    """ JDKs managed by a locally installed JBang.

    JBang keeps installed JDKs in ``<home>/cache/jdks/<major>`` and
    installs missing ones with ``jbang jdk install <major>``.
    """

    def __init__(self, tools, home=None):
        self.tools = tools
        self.home = home or config.get_jbanghome()

    def available(self):
        return fs.isdir(self.home)

    @property
    def executable(self):
        name = "jbang.cmd" if os.name == "nt" else "jbang"
        return fs.path.join(self.home, "bin", name)

    def jdk_home(self, major):
        return fs.path.join(self.home, "cache", "jdks", major)

    def find_jdk(self, version):
        """ Returns the home of a JBang managed JDK, installing it if needed.

        Raises:
            SubprocessError: If the JDK isn't installed and JBang fails
                to install it.
        """
        if not version:
            raise SubprocessError("JBang requires a JDK version")

        major = major_version(version)
        jdk_home = self.jdk_home(major)
        if not fs.isdir(jdk_home):
            log.info("Installing JDK {} with JBang", major)
            self.tools.run([self.executable, "jdk", "install", major])
            if not fs.isdir(jdk_home):
                raise SubprocessError(
                    "JBang did not install JDK {} into {}".format(major, jdk_home))
        return jdk_home
