from configparser import ConfigParser, NoOptionError, NoSectionError
import os

from jtoolchain import filesystem as fs
from jtoolchain import utils
from jtoolchain.error import raise_error_if


if os.getenv("JTOOLCHAIN_CONFIG_PATH"):
    location = fs.path.join(os.getenv("JTOOLCHAIN_CONFIG_PATH"), "config")
    location_user = fs.path.join(os.getenv("JTOOLCHAIN_CONFIG_PATH"), "user")
    location_overlay = os.getenv("JTOOLCHAIN_CONFIG_OVERLAY")
    if location_overlay:
        location_overlay = fs.path.join(os.getenv("JTOOLCHAIN_CONFIG_PATH"), location_overlay)
elif os.name == "nt":
    appdata = os.getenv("APPDATA", fs.path.join(fs.userhome(), "AppData", "Roaming"))
    location = fs.path.join(appdata, "jtoolchain", "config")
    location_user = fs.path.join(appdata, "jtoolchain", "user")
    location_overlay = os.getenv("JTOOLCHAIN_CONFIG_OVERLAY")
else:
    location = fs.path.join(fs.userhome(), ".config", "jtoolchain", "config")
    location_user = fs.path.join(fs.userhome(), ".config", "jtoolchain", "user")
    location_overlay = os.getenv("JTOOLCHAIN_CONFIG_OVERLAY")


DEFAULT_CATALOG_URI = "https://api.foojay.io/disco/v3.0"


class ConfigFile(ConfigParser):
    def __init__(self, location, *args, **kwargs):
        super().__init__(*args, interpolation=None, **kwargs)
        self._location = location

    def load(self):
        if self._location:
            super().read(self._location)

    def save(self, path=None):
        if self._location is None and path is None:
            return
        path = path or self._location
        dirname = fs.path.dirname(path)
        if dirname:
            fs.makedirs(dirname)
        with open(path, 'w') as configfile:
            super().write(configfile)

    def delete(self, section, key):
        if key is None:
            return self.remove_section(section)
        try:
            success = self.remove_option(section, key)
            if success and len(self[section].items()) <= 0:
                self.remove_section(section)
            return success
        except NoSectionError:
            return False

    def set(self, section, key, value):
        if not self.has_section(section):
            self.add_section(section)
        super().set(section, key, value)


class Config(object):
    def __init__(self):
        self._configs = []

    def configs(self, alias=None):
        return [config for name, config in self._configs if not alias or name == alias]

    def add_file(self, alias, location):
        file = ConfigFile(location)
        self._configs.append((alias, file))
        return file

    def get(self, section, key, default, alias=None):
        for config in reversed(self.configs(alias)):
            try:
                return config.get(section, key)
            except (NoOptionError, NoSectionError):
                continue
        return default

    def set(self, section, key, value, alias=None):
        count = 0
        for config in self.configs(alias):
            config.set(section, key, value)
            count += 1
        return count

    def delete(self, section, key, alias=None):
        count = 0
        for config in self.configs(alias):
            count += int(config.delete(section, key))
        return count

    def sections(self, alias=None):
        s = []
        for config in self.configs(alias):
            s += config.sections()
        return sorted({name: None for name in s})

    def options(self, section, alias=None):
        s = []
        for config in self.configs(alias):
            if config.has_section(section):
                s += config[section].items()
        return sorted(s)

    def items(self, alias=None):
        o = {}
        for section in self.sections(alias):
            for option, value in self.options(section, alias):
                o[(section, option)] = value
            if not any(s == section for s, _ in o):
                o[(section, None)] = None
        return [(section, option, value) for (section, option), value in o.items()]

    def load(self):
        for config in self.configs():
            config.load()

    def save(self):
        for name, config in self._configs:
            config.save()


_config = Config()
_config.add_file("global", location)
_config.add_file("user", location_user)
if location_overlay:
    _config.add_file("overlay", location_overlay)
_config.add_file("cli", None)
_config.load()


def get(section, key, default=None, expand=True, alias=None):
    val = _config.get(section, key, default, alias)
    return utils.expand(val, ignore_errors=True) if expand and val is not None else val


def getint(section, key, default=None, alias=None):
    value = get(section, key, default=default, alias=alias)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            raise_error_if(True, "Config: value '{0}' invalid for '{1}.{2}', expected integer", value, section, key)
    return None


def getboolean(section, key, default=None, alias=None):
    value = get(section, key, default=default, alias=alias)
    return value is not None and str(value).lower() in ["true", "yes", "on", "1"]


def get_home():
    if os.name == "nt":
        return fs.path.join(os.getenv("LOCALAPPDATA", fs.path.join(fs.userhome(), "AppData", "Local")), "jtoolchain")
    else:
        return fs.path.join(fs.userhome(), ".jtoolchain")


def get_logpath():
    return get("jtoolchain", "logpath", get_home())


def get_m2home():
    return fs.path.join(fs.userhome(), ".m2")


def get_registry_path():
    """ Location of the toolchains.xml registry document. """
    return get("toolchain", "registry", fs.path.join(get_m2home(), "toolchains.xml"))


def get_jdksdir():
    """ Directory where provisioned JDK archives are downloaded and extracted. """
    return get("toolchain", "jdksdir", fs.path.join(get_m2home(), "jdks"))


def get_jbanghome():
    return get("toolchain", "jbanghome", fs.path.join(fs.userhome(), ".jbang"))


def get_catalog_uri():
    return get("catalog", "uri", DEFAULT_CATALOG_URI).rstrip("/")


def get_skip():
    return getboolean("toolchain", "skip", False)


def get_proxy():
    """ Returns the configured proxy as a dictionary, or None. """
    host = get("proxy", "host")
    if not host:
        return None
    return {
        "host": host,
        "port": getint("proxy", "port", 8080),
        "protocol": get("proxy", "protocol", "http"),
        "username": get("proxy", "username"),
        "password": get("proxy", "password", expand=False),
    }


def set(section, key, value, alias=None):
    _config.set(section, key, value, alias or "user")


def load_or_set(file_or_str):
    if fs.path.exists(file_or_str):
        _config.add_file("cli", file_or_str)
        _config.load()
    else:
        key_value = file_or_str.split("=", 1)
        raise_error_if(len(key_value) <= 1, "Syntax error in configuration: '{}'".format(file_or_str))
        section_key = key_value[0].split(".", 1)
        raise_error_if(len(section_key) <= 1, "Syntax error in configuration: '{}'".format(file_or_str))
        _config.set(section_key[0], section_key[1], key_value[1], alias="cli")


def save():
    _config.save()


def delete(key, alias=None):
    section, option = split(key)
    return _config.delete(section, option, alias)


def items(alias=None):
    return _config.items(alias)


def split(string):
    try:
        section, key = string.split(".", 1)
    except ValueError:
        section, key = string, None
    return section, key
